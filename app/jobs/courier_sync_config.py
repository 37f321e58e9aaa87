# app/jobs/courier_sync_config.py
from __future__ import annotations

from types import MappingProxyType
from typing import FrozenSet, Mapping, Tuple

from app.models.enums import OrderStatus

# 物流商代码（logistics_comments.provider）
PROVIDER_CODE = "GBL"

# orders.logistics_provider 的历史写法，都视为 Gaau Besi 订单
AFFILIATION_TAGS: Tuple[str, ...] = ("GBL", "GAAUBESI", "gaaubesi", "gaau_besi", "gaau-besi")

# 内部终态：不再轮询，也不再被物流商状态覆盖
TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.RETURNED,
        OrderStatus.LOST_IN_TRANSIT,
    }
)

# 主流程顺序（只用于判断“是否前进”）
HAPPY_PATH: Tuple[OrderStatus, ...] = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.HANDOVER_TO_COURIER,
    OrderStatus.IN_TRANSIT,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

# 主流程之外的平行轨道（RTO 分支 + 丢件）：
# 当前处在这些状态时，主流程状态不能再把它“拉回去”
PARALLEL_TRACK: FrozenSet[OrderStatus] = frozenset(
    {
        OrderStatus.RTO_INITIATED,
        OrderStatus.RTO_VERIFICATION_PENDING,
        OrderStatus.RETURNED,
        OrderStatus.LOST_IN_TRANSIT,
    }
)

# 任何时刻都允许写入的状态
ALWAYS_ALLOWED: FrozenSet[OrderStatus] = frozenset(
    {
        OrderStatus.RTO_INITIATED,
        OrderStatus.RTO_VERIFICATION_PENDING,
        OrderStatus.LOST_IN_TRANSIT,
    }
)

# ⚠️ 精确匹配表：按物流商文档原文（区分大小写）
# “已退回”类文案一律进 rto_verification_pending，绝不直接进 returned
EXACT_STATUS_MAP: Mapping[str, OrderStatus] = MappingProxyType(
    {
        # 正向流程
        "Pickup Order Created": OrderStatus.HANDOVER_TO_COURIER,
        "Drop Off Order Created": OrderStatus.HANDOVER_TO_COURIER,
        "Package Picked": OrderStatus.IN_TRANSIT,
        "Package in Transit": OrderStatus.IN_TRANSIT,
        "Out for Delivery": OrderStatus.OUT_FOR_DELIVERY,
        "Delivered": OrderStatus.DELIVERED,
        "Cancelled": OrderStatus.CANCELLED,
        "On Hold": OrderStatus.HOLD,
        # 客户拒收 / 未送达 → RTO 发起
        "Customer Cancelled": OrderStatus.RTO_INITIATED,
        "Customer Rejected": OrderStatus.RTO_INITIATED,
        "Rejected": OrderStatus.RTO_INITIATED,
        "Undelivered": OrderStatus.RTO_INITIATED,
        "RTO": OrderStatus.RTO_INITIATED,
        "RTO Initiated": OrderStatus.RTO_INITIATED,
        # 物流商声称已退回 → 待仓库验收
        "Returned": OrderStatus.RTO_VERIFICATION_PENDING,
        "Returned to Vendor": OrderStatus.RTO_VERIFICATION_PENDING,
        "Returned to Merchant": OrderStatus.RTO_VERIFICATION_PENDING,
        "Delivered to Merchant": OrderStatus.RTO_VERIFICATION_PENDING,
        "Return Complete": OrderStatus.RTO_VERIFICATION_PENDING,
        "Return Completed": OrderStatus.RTO_VERIFICATION_PENDING,
        "RTO Complete": OrderStatus.RTO_VERIFICATION_PENDING,
        "RTO Completed": OrderStatus.RTO_VERIFICATION_PENDING,
    }
)

# 模糊匹配关键字（已小写）
RTO_INITIATED_PHRASES: Tuple[str, ...] = (
    "customer cancelled",
    "customer rejected",
    "rejected",
    "undelivered",
    "rto",
    "rto initiated",
)

RTO_VERIFICATION_PHRASES: Tuple[str, ...] = (
    "returned",
    "returned to vendor",
    "returned to merchant",
    "delivered to merchant",
    "return complete",
    "return completed",
    "rto complete",
    "rto completed",
)

# 留言作者识别（已小写，按顺序：先物流商，再我方）
PROVIDER_AUTHOR_MARKERS: Tuple[str, ...] = (
    "gaaubesi",
    "gaau besi",
    "staff",
    "admin",
    "system",
    "courier",
    "rider",
    "delivery",
)

ERP_AUTHOR_MARKERS: Tuple[str, ...] = (
    "seetara",
    "today",
    "todaytrend",
    "vendor",
)

# 留言 payload 字段别名（不同接口字段名不一致，按优先级取第一个有值的）
COMMENT_ID_FIELDS: Tuple[str, ...] = ("id", "comment_id")
COMMENT_TEXT_FIELDS: Tuple[str, ...] = ("comments", "comment", "message")
COMMENT_DATE_FIELDS: Tuple[str, ...] = ("created_on", "created_at", "date", "timestamp")
COMMENT_AUTHOR_FIELDS: Tuple[str, ...] = ("created_by", "addedBy", "user")
DEFAULT_COMMENT_AUTHOR = "GBL Staff"

TIMELINE_NOTE = "GBL Status Update (Auto-Sync)"
