# app/models/enums.py
from __future__ import annotations

from enum import StrEnum


class OrderStatus(StrEnum):
    """
    订单生命周期状态（orders.status 落库值，统一小写）：

    主流程（happy path）：
      pending → confirmed → handover_to_courier → in_transit → out_for_delivery → delivered

    RTO 分支（任何时刻都可能进入）：
      rto_initiated → rto_verification_pending → returned

    旁路 / 终态：
      cancelled / hold / lost_in_transit

    注意：
    - returned 只能由仓库实物验收动作写入，自动同步永远不会产出 returned。
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    HANDOVER_TO_COURIER = "handover_to_courier"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"

    RTO_INITIATED = "rto_initiated"
    RTO_VERIFICATION_PENDING = "rto_verification_pending"
    RETURNED = "returned"

    CANCELLED = "cancelled"
    HOLD = "hold"
    LOST_IN_TRANSIT = "lost_in_transit"


class CommentSender(StrEnum):
    """物流留言的发送方：我方 ERP 用户 / 物流商（含物流商系统、骑手）。"""

    ERP_USER = "ERP_USER"
    LOGISTICS_PROVIDER = "LOGISTICS_PROVIDER"
