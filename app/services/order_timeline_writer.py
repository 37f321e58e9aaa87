# app/services/order_timeline_writer.py
from __future__ import annotations

import logging

from app.ports import OrderStorePort

logger = logging.getLogger("courier_sync.timeline")


class OrderTimelineWriter:
    """
    订单时间线写入器（best-effort）：

    - 唯一职责：往 order_timeline 追加一行（actor 固定 system）。
    - 契约：write_best_effort 永远不抛异常；失败只记日志，
      绝不影响调用方的状态对账结果。
    """

    @staticmethod
    async def write_best_effort(
        orders: OrderStorePort,
        *,
        order_id: int,
        status: str,
        note: str,
    ) -> bool:
        """返回 True 表示写入成功，False 表示已吞掉失败。"""
        try:
            await orders.append_timeline_entry(order_id, status, note)
            return True
        except Exception as e:
            logger.warning(
                "[timeline-fallback] order_id=%s status=%r note=%r error=%s",
                order_id,
                status,
                note,
                e,
            )
            return False
