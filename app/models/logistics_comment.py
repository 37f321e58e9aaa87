# app/models/logistics_comment.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class LogisticsComment(Base):
    """
    订单 ↔ 物流商 双向留言（追加写）。

    去重键（插入前都要查）：
      - (order_id, provider, external_id)
      - (order_id, provider, comment 原文)
    """

    __tablename__ = "logistics_comments"
    __table_args__ = (
        Index("ix_logistics_comments_order_provider", "order_id", "provider"),
        Index("ix_logistics_comments_external", "order_id", "provider", "external_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )

    comment: Mapped[str] = mapped_column(Text, nullable=False)
    sender: Mapped[str] = mapped_column(String(32), nullable=False)  # CommentSender
    sender_name: Mapped[str | None] = mapped_column(String(128), nullable=True)

    external_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    provider: Mapped[str] = mapped_column(String(16), nullable=False)

    is_synced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<LogisticsComment id={self.id} order_id={self.order_id} "
            f"sender={self.sender} synced={self.is_synced}>"
        )
