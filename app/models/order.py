# app/models/order.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Order(Base):
    """
    订单主档（只声明物流对账用到的列）
    - status：内部生命周期（OrderStatus 的小写值），只经过推进守卫修改
    - logistics_status / courier_raw_status：物流商原文镜像，变化即覆盖
    - rto_initiated_at / rto_reason：首次进入 rto_initiated 时一起写入，之后不再覆盖
    """

    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_provider_synced", "logistics_provider", "is_synced"),
        Index("ix_orders_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    readable_id: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    logistics_provider: Mapped[str | None] = mapped_column(String(32), nullable=True)
    external_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_synced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    logistics_status: Mapped[str | None] = mapped_column(String(255), nullable=True)
    courier_raw_status: Mapped[str | None] = mapped_column(String(255), nullable=True)

    rto_initiated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rto_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<Order id={self.id} ref={self.readable_id!r} status={self.status} "
            f"provider={self.logistics_provider!r} ext={self.external_order_id!r}>"
        )
