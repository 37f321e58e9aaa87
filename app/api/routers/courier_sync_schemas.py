# app/api/routers/courier_sync_schemas.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.jobs.courier_sync_types import RunResult, StoredComment
from app.services.logistics_comment_service import CommentListResult, CommentSendResult


class RunResultOut(BaseModel):
    success: bool
    trigger: str
    total_orders: int
    status_updated_count: int
    comments_added_count: int
    errors: List[str] = Field(default_factory=list)
    duration_ms: int
    timestamp: datetime

    @classmethod
    def from_result(cls, res: RunResult) -> "RunResultOut":
        return cls(
            success=res.success,
            trigger=res.trigger,
            total_orders=res.total_orders,
            status_updated_count=res.status_updated_count,
            comments_added_count=res.comments_added_count,
            errors=list(res.errors),
            duration_ms=res.duration_ms,
            timestamp=res.timestamp,
        )


class CourierSyncStatusOut(BaseModel):
    running: bool
    last_result: Optional[RunResultOut] = Field(
        None,
        description="最近一次完整对账的结果；进程启动后尚未跑过时为 null",
    )


class CommentCreateIn(BaseModel):
    order_id: int
    comment: str = Field(..., min_length=1)
    sender_name: Optional[str] = None


class CommentSendOut(BaseModel):
    comment_id: int
    synced: bool
    error: Optional[str] = None
    message: str

    @classmethod
    def from_result(cls, res: CommentSendResult) -> "CommentSendOut":
        return cls(
            comment_id=res.comment_id,
            synced=res.synced,
            error=res.error,
            message=(
                "Comment sent to courier successfully"
                if res.synced
                else "Comment saved but failed to sync to courier"
            ),
        )


class CommentOut(BaseModel):
    id: int
    order_id: int
    comment: str
    sender: str
    sender_name: Optional[str] = None
    provider: str
    external_id: Optional[str] = None
    is_synced: bool
    sync_error: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_stored(cls, c: StoredComment) -> "CommentOut":
        return cls(
            id=c.id,
            order_id=c.order_id,
            comment=c.comment,
            sender=str(c.sender),
            sender_name=c.sender_name,
            provider=c.provider,
            external_id=c.external_id,
            is_synced=c.is_synced,
            sync_error=c.sync_error,
            created_at=c.created_at,
        )


class CommentListOut(BaseModel):
    order_id: int
    external_order_id: Optional[str] = None
    comments: List[CommentOut] = Field(default_factory=list)
    refreshed: bool = False
    new_comments_from_courier: int = 0
    refresh_error: Optional[str] = Field(
        None,
        description="刷新物流商留言失败时的原因；本地列表照常返回",
    )

    @classmethod
    def from_result(cls, res: CommentListResult) -> "CommentListOut":
        return cls(
            order_id=res.order.id,
            external_order_id=res.order.external_order_id,
            comments=[CommentOut.from_stored(c) for c in res.comments],
            refreshed=res.refreshed,
            new_comments_from_courier=res.new_comments,
            refresh_error=res.refresh_error,
        )
