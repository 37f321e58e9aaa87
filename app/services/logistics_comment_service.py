# app/services/logistics_comment_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from app.adapters.gaaubesi import CourierApiError
from app.api.errors import NotFoundError, ValidationError
from app.jobs.courier_sync_apply import bounded_call, describe_error, sync_order_comments
from app.jobs.courier_sync_config import PROVIDER_CODE
from app.jobs.courier_sync_types import NewLogisticsComment, OrderSnapshot, StoredComment
from app.models.enums import CommentSender
from app.ports import CommentStorePort, CourierClientPort, OrderStorePort

logger = logging.getLogger("courier_sync.comments")


@dataclass
class CommentSendResult:
    comment_id: int
    synced: bool
    error: Optional[str] = None


@dataclass
class CommentListResult:
    order: OrderSnapshot
    comments: List[StoredComment] = field(default_factory=list)
    refreshed: bool = False
    new_comments: int = 0
    refresh_error: Optional[str] = None


class LogisticsCommentService:
    """
    我方 → 物流商 留言：

    1) 校验订单存在、已推送物流商（is_synced + external_order_id）
    2) 先落库（ERP_USER，is_synced=False）
    3) 调物流商接口推送
    4) 成功标记已同步；失败记录 sync_error，可稍后重试

    另提供订单留言列表（可选先从物流商刷新一次）。
    """

    def __init__(
        self,
        *,
        courier: CourierClientPort,
        orders: OrderStorePort,
        comments: CommentStorePort,
        provider: str = PROVIDER_CODE,
        call_timeout: Optional[float] = None,
    ) -> None:
        self.courier = courier
        self.orders = orders
        self.comments = comments
        self.provider = provider
        self.call_timeout = call_timeout

    async def send_comment(
        self,
        order_id: int,
        text: str,
        *,
        sender_name: Optional[str] = None,
    ) -> CommentSendResult:
        body = (text or "").strip()
        if not body:
            raise ValidationError("comment text is required")

        order = await self.orders.get_order(order_id)
        if order is None:
            raise NotFoundError(f"order {order_id} not found")
        if not order.is_synced or not order.external_order_id:
            raise ValidationError(
                f"order {order.ref} has not been synced to the courier; sync the order first"
            )

        comment_id = await self.comments.insert_comment(
            NewLogisticsComment(
                order_id=order.id,
                comment=body,
                sender=CommentSender.ERP_USER,
                sender_name=sender_name or "Staff",
                provider=self.provider,
                is_synced=False,
            )
        )
        return await self._push(comment_id, order.external_order_id, body)

    async def retry_comment_sync(self, comment_id: int) -> CommentSendResult:
        comment = await self.comments.get_comment(comment_id)
        if comment is None:
            raise NotFoundError(f"comment {comment_id} not found")
        if comment.sender != CommentSender.ERP_USER:
            raise ValidationError("only ERP-originated comments can be retried")
        if comment.is_synced:
            return CommentSendResult(comment_id=comment.id, synced=True)

        order = await self.orders.get_order(comment.order_id)
        if order is None or not order.external_order_id:
            raise ValidationError("order has not been synced to the courier")

        return await self._push(comment.id, order.external_order_id, comment.comment)

    async def list_comments(self, order_id: int, *, refresh: bool = False) -> CommentListResult:
        """
        订单的留言列表（本地库为准）。
        refresh=True 且订单已推送物流商时，先拉一次物流商留言落库；拉取失败不影响返回本地列表。
        """
        order = await self.orders.get_order(order_id)
        if order is None:
            raise NotFoundError(f"order {order_id} not found")

        out = CommentListResult(order=order)
        if refresh and order.is_synced and order.external_order_id:
            res = await sync_order_comments(
                order,
                self.courier,
                self.comments,
                provider=self.provider,
                call_timeout=self.call_timeout,
            )
            out.refreshed = True
            out.new_comments = res.new_comments
            if not res.success:
                out.refresh_error = res.error
                logger.warning("refresh comments for %s failed: %s", order.ref, res.error)

        out.comments = await self.comments.list_comments(order.id)
        return out

    async def _push(self, comment_id: int, external_order_id: str, body: str) -> CommentSendResult:
        error: Optional[str] = None
        external_id: Optional[str] = None
        try:
            posted = await bounded_call(
                self.courier.post_order_comment(external_order_id, body), self.call_timeout
            )
            synced = posted.success
            external_id = posted.external_id
            if not synced:
                error = posted.message or "courier rejected the comment"
        except (CourierApiError, TimeoutError) as e:
            synced = False
            error = describe_error(e)
            logger.error("failed to push comment %s to courier: %s", comment_id, error)

        await self.comments.mark_comment_sync(
            comment_id, synced=synced, error=error, external_id=external_id
        )
        logger.info("comment %s pushed to courier: synced=%s", comment_id, synced)
        return CommentSendResult(comment_id=comment_id, synced=synced, error=error)
