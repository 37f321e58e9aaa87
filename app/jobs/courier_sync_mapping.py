# app/jobs/courier_sync_mapping.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from app.jobs.courier_sync_config import (
    ALWAYS_ALLOWED,
    COMMENT_AUTHOR_FIELDS,
    COMMENT_DATE_FIELDS,
    COMMENT_ID_FIELDS,
    COMMENT_TEXT_FIELDS,
    DEFAULT_COMMENT_AUTHOR,
    ERP_AUTHOR_MARKERS,
    EXACT_STATUS_MAP,
    HAPPY_PATH,
    PARALLEL_TRACK,
    PROVIDER_AUTHOR_MARKERS,
    RTO_INITIATED_PHRASES,
    RTO_VERIFICATION_PHRASES,
    TERMINAL_STATUSES,
)
from app.jobs.courier_sync_types import CourierCommentFields
from app.models.enums import CommentSender, OrderStatus

logger = logging.getLogger("courier_sync.mapping")


# ---------------------------------------------------------------------------
# 状态映射：物流商原文 → 内部状态
# ---------------------------------------------------------------------------


def map_courier_status(raw_status: Optional[str]) -> Optional[OrderStatus]:
    """
    将物流商原文状态映射为内部状态，无法识别时返回 None（调用方只更新原文镜像）。

    优先级（先命中先返回）：
      1) 精确匹配表（区分大小写）
      2) 含 delivered 且不含 merchant / vendor → delivered
         （"Delivered to Merchant" 实际是退回，不是妥投）
      3) 拒收 / 未送达关键字 → rto_initiated
      4) 已退回关键字 → rto_verification_pending
      5) 其余含 return / rto 的文案 → rto_verification_pending（保守兜底）
      6) cancel / transit / picked / hold / created / out for delivery 等常规关键字

    ⚠️ 永远不会返回 returned：returned 只能由仓库实物验收写入。
    """
    if not raw_status:
        return None

    mapped = EXACT_STATUS_MAP.get(raw_status)
    if mapped is not None:
        return mapped

    normalized = raw_status.lower().strip()
    if not normalized:
        return None

    if "delivered" in normalized and "merchant" not in normalized and "vendor" not in normalized:
        return OrderStatus.DELIVERED

    if any(p in normalized for p in RTO_INITIATED_PHRASES):
        logger.info("RTO initiated by courier status %r", raw_status)
        return OrderStatus.RTO_INITIATED

    if any(p in normalized for p in RTO_VERIFICATION_PHRASES):
        logger.info("RTO verification pending for courier status %r", raw_status)
        return OrderStatus.RTO_VERIFICATION_PENDING

    if "return" in normalized or "rto" in normalized:
        logger.info("return-like courier status %r → rto_verification_pending", raw_status)
        return OrderStatus.RTO_VERIFICATION_PENDING

    if "cancel" in normalized:
        return OrderStatus.CANCELLED
    if "transit" in normalized or "picked" in normalized:
        return OrderStatus.IN_TRANSIT
    if "hold" in normalized or "undeliver" in normalized:
        return OrderStatus.HOLD
    if "created" in normalized:
        return OrderStatus.HANDOVER_TO_COURIER
    if "out for delivery" in normalized or "ofd" in normalized:
        return OrderStatus.OUT_FOR_DELIVERY

    return None


# ---------------------------------------------------------------------------
# 留言发送方识别
# ---------------------------------------------------------------------------


def classify_comment_sender(author_name: Optional[str]) -> CommentSender:
    """
    根据物流商 created_by 字段判断留言来自谁：

      "Gaaubesi Staff" → LOGISTICS_PROVIDER
      "Seetara"        → ERP_USER（我方商户账号）

    先查物流商标记，再查我方标记；都不命中、或作者为空，一律按物流商处理
    （宁可把我方留言显示成物流商，也不要反过来）。
    """
    if not author_name:
        return CommentSender.LOGISTICS_PROVIDER

    author = author_name.lower().strip()

    if any(m in author for m in PROVIDER_AUTHOR_MARKERS):
        return CommentSender.LOGISTICS_PROVIDER

    if any(m in author for m in ERP_AUTHOR_MARKERS):
        return CommentSender.ERP_USER

    return CommentSender.LOGISTICS_PROVIDER


# ---------------------------------------------------------------------------
# 推进守卫
# ---------------------------------------------------------------------------


def coerce_order_status(status: Optional[str]) -> Optional[OrderStatus]:
    """库里的 status 字符串 → OrderStatus（大小写不敏感；未知值返回 None）。"""
    key = (status or "").strip().lower()
    if not key:
        return None
    try:
        return OrderStatus(key)
    except ValueError:
        return None


def is_terminal_status(status: Optional[str]) -> bool:
    return coerce_order_status(status) in TERMINAL_STATUSES


def _is_forward(current: Optional[OrderStatus], candidate: OrderStatus) -> bool:
    if candidate not in HAPPY_PATH:
        return False
    if current in PARALLEL_TRACK:
        return False
    # 不在主流程上的当前状态（hold / 未知 / 空）视为起点之前
    current_idx = HAPPY_PATH.index(current) if current in HAPPY_PATH else -1
    return HAPPY_PATH.index(candidate) > current_idx


def can_transition(current_status: Optional[str], candidate: OrderStatus) -> bool:
    """
    是否允许把订单从 current_status 推到 candidate：
      - candidate 在主流程上且严格靠后（防止重放 / 乱序的旧状态回退订单），或
      - candidate 属于 RTO / 丢件（任何时刻都放行）
    """
    if candidate in ALWAYS_ALLOWED:
        return True
    return _is_forward(coerce_order_status(current_status), candidate)


# ---------------------------------------------------------------------------
# 留言 payload 字段抽取
# ---------------------------------------------------------------------------


def _first_present(raw: Mapping[str, Any], keys: Sequence[str]) -> Any:
    """按 keys 顺序返回第一个非 None、非空串的值。"""
    for key in keys:
        value = raw.get(key)
        if value is None or value == "":
            continue
        return value
    return None


def parse_courier_datetime(value: Any) -> Optional[datetime]:
    """
    物流商时间字段：ISO-8601 字符串 / epoch 秒或毫秒 / datetime。
    解析不了返回 None；无时区的按 UTC 处理。
    """
    if value is None or value == "":
        return None

    dt: Optional[datetime] = None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e12 else value
        try:
            dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError:
            return None

    if dt is not None and dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def extract_comment_fields(raw: Mapping[str, Any]) -> Optional[CourierCommentFields]:
    """
    从一条物流商留言里抽出 id / 正文 / 时间 / 作者。

    字段别名（按优先级）：
      - id:     id, comment_id
      - 正文:   comments, comment, message
      - 时间:   created_on, created_at, date, timestamp
      - 作者:   created_by, addedBy, user（缺省 "GBL Staff"）

    没有正文的留言返回 None（调用方跳过）。
    """
    if not isinstance(raw, Mapping):
        return None

    text = _first_present(raw, COMMENT_TEXT_FIELDS)
    if text is None or not str(text).strip():
        return None

    ext_id = _first_present(raw, COMMENT_ID_FIELDS)
    author = _first_present(raw, COMMENT_AUTHOR_FIELDS)

    return CourierCommentFields(
        external_id=str(ext_id) if ext_id is not None else None,
        text=str(text),
        created_at=parse_courier_datetime(_first_present(raw, COMMENT_DATE_FIELDS)),
        author=str(author) if author is not None else DEFAULT_COMMENT_AUTHOR,
    )
