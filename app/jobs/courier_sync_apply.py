# app/jobs/courier_sync_apply.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, Optional, TypeVar

from app.jobs.courier_sync_config import PROVIDER_CODE, TIMELINE_NOTE
from app.jobs.courier_sync_mapping import (
    can_transition,
    classify_comment_sender,
    extract_comment_fields,
    is_terminal_status,
    map_courier_status,
)
from app.jobs.courier_sync_types import (
    CommentSyncResult,
    NewLogisticsComment,
    OrderSnapshot,
    StatusSyncResult,
)
from app.models.enums import OrderStatus
from app.ports import CommentStorePort, CourierClientPort, OrderStorePort
from app.services.order_timeline_writer import OrderTimelineWriter

logger = logging.getLogger("courier_sync.apply")

T = TypeVar("T")


async def bounded_call(awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    """物流商调用统一加超时，避免单个无响应请求卡住整轮对账。"""
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        raise TimeoutError(f"courier call timed out after {timeout:g}s") from None


def describe_error(exc: BaseException) -> str:
    msg = str(exc).strip()
    return msg or exc.__class__.__name__


async def reconcile_order_status(
    order: OrderSnapshot,
    courier: CourierClientPort,
    orders: OrderStorePort,
    *,
    call_timeout: Optional[float] = None,
    now: Optional[datetime] = None,
) -> StatusSyncResult:
    """
    拉取物流商最新状态并写回订单：

      1) 物流商无状态 → 成功、无变化
      2) 原文与 logistics_status 相同（忽略大小写）→ 成功、无变化
      3) 否则无论能否映射，都覆盖 logistics_status / courier_raw_status
      4) 映射为 rto_initiated 且 rto_initiated_at 为空 → 一次性写入时间与原因
      5) 映射为 rto_verification_pending → 只改状态，不碰库存
      6) 当前非终态且守卫放行 → 写 status
      7) 写时间线（best-effort）
    """
    if not order.external_order_id:
        return StatusSyncResult(success=False, error="order has no external_order_id")

    try:
        fetched = await bounded_call(courier.pull_status(order.external_order_id), call_timeout)
        if fetched is None or not fetched.status:
            logger.info("order %s: courier returned no status", order.ref)
            return StatusSyncResult(success=True)

        courier_status = fetched.status
        if (order.logistics_status or "").lower() == courier_status.lower():
            return StatusSyncResult(success=True)

        ts = now or datetime.now(timezone.utc)
        logger.info(
            "order %s: courier status %r → %r",
            order.ref,
            order.logistics_status,
            courier_status,
        )

        fields: Dict[str, Any] = {
            "logistics_status": courier_status,
            "courier_raw_status": courier_status,
            "updated_at": ts,
        }

        mapped = map_courier_status(courier_status)

        if mapped is OrderStatus.RTO_INITIATED:
            # 只认第一次：已有 rto_initiated_at 时不覆盖时间和原因
            if order.rto_initiated_at is None:
                fields["rto_initiated_at"] = ts
                fields["rto_reason"] = courier_status
            logger.warning("order %s: RTO initiated (%r)", order.ref, courier_status)
        elif mapped is OrderStatus.RTO_VERIFICATION_PENDING:
            # 待仓库验收：不动库存，returned 只能由验收动作写入
            logger.info("order %s: RTO verification pending, awaiting warehouse scan", order.ref)

        applied: Optional[OrderStatus] = None
        if (
            mapped is not None
            and not is_terminal_status(order.status)
            and can_transition(order.status, mapped)
        ):
            fields["status"] = mapped.value
            applied = mapped

        await orders.update_order(order.id, fields)
    except Exception as e:
        logger.error("order %s: status sync failed: %s", order.ref, e)
        return StatusSyncResult(success=False, error=describe_error(e))

    await OrderTimelineWriter.write_best_effort(
        orders,
        order_id=order.id,
        status=courier_status,
        note=TIMELINE_NOTE,
    )

    return StatusSyncResult(
        success=True,
        changed=True,
        new_status=courier_status,
        internal_status=applied,
    )


async def sync_order_comments(
    order: OrderSnapshot,
    courier: CourierClientPort,
    comments: CommentStorePort,
    *,
    provider: str = PROVIDER_CODE,
    call_timeout: Optional[float] = None,
    now: Optional[datetime] = None,
) -> CommentSyncResult:
    """
    拉取物流商留言并落库（幂等）：

    - 没有正文的留言跳过
    - (order_id, provider, external_id) 或 (order_id, provider, 原文) 已存在 → 跳过
    - 单条插入失败只记日志，继续处理后面的留言
    """
    if not order.external_order_id:
        return CommentSyncResult(success=False, error="order has no external_order_id")

    try:
        batch = await bounded_call(
            courier.get_order_comments(order.external_order_id), call_timeout
        )
        if batch is None or not batch.success or not batch.comments:
            return CommentSyncResult(success=True)

        ts = now or datetime.now(timezone.utc)
        added = 0

        for raw in batch.comments:
            parsed = extract_comment_fields(raw)
            if parsed is None:
                continue

            existing = await comments.find_existing_comment(
                order.id, provider, parsed.external_id, parsed.text
            )
            if existing is not None:
                continue

            sender = classify_comment_sender(parsed.author)
            logger.debug("order %s: comment from %r → %s", order.ref, parsed.author, sender)

            record = NewLogisticsComment(
                order_id=order.id,
                comment=parsed.text,
                sender=sender,
                sender_name=parsed.author,
                provider=provider,
                external_id=parsed.external_id,
                is_synced=True,  # 来自物流商，本身就是已同步
                synced_at=ts,
                created_at=parsed.created_at or ts,
            )
            try:
                await comments.insert_comment(record)
            except Exception as e:
                logger.error("order %s: failed to insert comment: %s", order.ref, e)
                continue
            added += 1
    except Exception as e:
        logger.error("order %s: comment sync failed: %s", order.ref, e)
        return CommentSyncResult(success=False, error=describe_error(e))

    if added:
        logger.info("order %s: added %d new comments", order.ref, added)
    return CommentSyncResult(success=True, new_comments=added)
