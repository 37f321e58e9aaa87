# app/jobs/courier_sync_types.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from app.models.enums import CommentSender, OrderStatus


@dataclass(frozen=True)
class OrderSnapshot:
    """对账读取的订单视图（只读；写回一律走 OrderStore.update_order）。"""

    id: int
    readable_id: Optional[str]
    status: Optional[str]
    logistics_status: Optional[str]
    external_order_id: Optional[str]
    rto_initiated_at: Optional[datetime] = None
    logistics_provider: Optional[str] = None
    is_synced: bool = True
    created_at: Optional[datetime] = None

    @property
    def ref(self) -> str:
        return self.readable_id or str(self.id)


@dataclass
class CourierStatus:
    status: str  # 物流商原文状态
    raw_fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CourierCommentBatch:
    success: bool
    comments: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class CourierCommentPost:
    success: bool
    message: Optional[str] = None
    external_id: Optional[str] = None


@dataclass(frozen=True)
class CourierCommentFields:
    """从物流商留言 payload 中抽出来的规范字段。"""

    external_id: Optional[str]
    text: str
    created_at: Optional[datetime]
    author: str


@dataclass
class NewLogisticsComment:
    order_id: int
    comment: str
    sender: CommentSender
    sender_name: Optional[str]
    provider: str
    external_id: Optional[str] = None
    is_synced: bool = False
    synced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class StoredComment:
    id: int
    order_id: int
    comment: str
    sender: str
    sender_name: Optional[str]
    provider: str
    external_id: Optional[str] = None
    is_synced: bool = False
    sync_error: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class EligibilityCriteria:
    """
    轮询工作集筛选条件：
      - logistics_provider ∈ affiliation_tags（忽略大小写）
      - is_synced = true（require_synced）
      - external_order_id 非空
      - status ∉ terminal_statuses（忽略大小写）
    结果按 created_at 倒序。
    """

    affiliation_tags: Tuple[str, ...]
    terminal_statuses: FrozenSet[OrderStatus]
    require_synced: bool = True


@dataclass
class StatusSyncResult:
    success: bool
    changed: bool = False
    new_status: Optional[str] = None  # 物流商原文
    internal_status: Optional[OrderStatus] = None  # 本次实际写入的内部状态
    error: Optional[str] = None


@dataclass
class CommentSyncResult:
    success: bool
    new_comments: int = 0
    error: Optional[str] = None


@dataclass
class RunResult:
    """一次对账 pass 的汇总结果（管理端 / CLI / 定时任务统一返回这个形状）。"""

    timestamp: datetime
    trigger: str = "manual"
    success: bool = False
    total_orders: int = 0
    status_updated_count: int = 0
    comments_added_count: int = 0
    errors: List[str] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["timestamp"] = self.timestamp.isoformat()
        return out
