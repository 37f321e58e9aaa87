# -*- coding: utf-8 -*-
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from app.jobs.courier_sync_types import (
    CourierCommentBatch,
    CourierCommentPost,
    CourierStatus,
    EligibilityCriteria,
    NewLogisticsComment,
    OrderSnapshot,
    StoredComment,
)


class CourierClientPort(Protocol):
    async def pull_status(self, external_order_id: str) -> Optional[CourierStatus]: ...

    async def get_order_comments(self, external_order_id: str) -> CourierCommentBatch: ...

    async def post_order_comment(self, external_order_id: str, text: str) -> CourierCommentPost: ...


class OrderStorePort(Protocol):
    async def find_eligible_orders(self, criteria: EligibilityCriteria) -> List[OrderSnapshot]: ...

    async def get_order(self, order_id: int) -> Optional[OrderSnapshot]: ...

    async def update_order(self, order_id: int, fields: Dict[str, Any]) -> None: ...

    async def append_timeline_entry(self, order_id: int, status: str, note: str) -> None: ...


class CommentStorePort(Protocol):
    async def find_existing_comment(
        self,
        order_id: int,
        provider: str,
        external_id: Optional[str],
        text: str,
    ) -> Optional[StoredComment]: ...

    async def insert_comment(self, comment: NewLogisticsComment) -> int: ...

    async def get_comment(self, comment_id: int) -> Optional[StoredComment]: ...

    async def list_comments(self, order_id: int) -> List[StoredComment]: ...

    async def mark_comment_sync(
        self,
        comment_id: int,
        *,
        synced: bool,
        error: Optional[str] = None,
        external_id: Optional[str] = None,
    ) -> None: ...
