"""
courier_sync_tables

Revision ID: 0001_courier_sync_tables
Revises:
Create Date: 2026-10-16 10:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "0001_courier_sync_tables"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _add_missing_order_columns(insp) -> None:
    """orders 已存在（共享订单库）时，只补对账需要的列。"""
    existing = {c["name"] for c in insp.get_columns("orders")}
    wanted = [
        sa.Column("logistics_provider", sa.String(length=32), nullable=True),
        sa.Column("external_order_id", sa.String(length=64), nullable=True),
        sa.Column("is_synced", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("logistics_status", sa.String(length=255), nullable=True),
        sa.Column("courier_raw_status", sa.String(length=255), nullable=True),
        sa.Column("rto_initiated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rto_reason", sa.Text(), nullable=True),
    ]
    for col in wanted:
        if col.name not in existing:
            op.add_column("orders", col)


def upgrade() -> None:
    """
    新增 / 补齐：orders、logistics_comments、order_timeline

    - orders 存在则只补列，不存在则建表
    - logistics_comments：(order_id, provider) / (order_id, provider, external_id) 两个去重查询索引
    """
    bind = op.get_bind()
    insp = inspect(bind)

    if insp.has_table("orders"):
        _add_missing_order_columns(insp)
    else:
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("readable_id", sa.String(length=32), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False),
            sa.Column("logistics_provider", sa.String(length=32), nullable=True),
            sa.Column("external_order_id", sa.String(length=64), nullable=True),
            sa.Column("is_synced", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("logistics_status", sa.String(length=255), nullable=True),
            sa.Column("courier_raw_status", sa.String(length=255), nullable=True),
            sa.Column("rto_initiated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("rto_reason", sa.Text(), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
        )
        op.create_index("ix_orders_readable_id", "orders", ["readable_id"])
        op.create_index("ix_orders_status", "orders", ["status"])
        op.create_index("ix_orders_created_at", "orders", ["created_at"])

    op.create_index(
        "ix_orders_provider_synced",
        "orders",
        ["logistics_provider", "is_synced"],
        if_not_exists=True,
    )

    op.create_table(
        "logistics_comments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "order_id",
            sa.Integer(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("sender", sa.String(length=32), nullable=False),
        sa.Column("sender_name", sa.String(length=128), nullable=True),
        sa.Column("external_id", sa.String(length=64), nullable=True),
        sa.Column("provider", sa.String(length=16), nullable=False),
        sa.Column("is_synced", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sync_error", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_logistics_comments_order_provider", "logistics_comments", ["order_id", "provider"]
    )
    op.create_index(
        "ix_logistics_comments_external",
        "logistics_comments",
        ["order_id", "provider", "external_id"],
    )

    op.create_table(
        "order_timeline",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "order_id",
            sa.Integer(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(length=255), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=False, server_default="system"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_order_timeline_order_id", "order_timeline", ["order_id"])


def downgrade() -> None:
    """
    回滚：删除 order_timeline / logistics_comments。

    orders 可能是共享表，这里不删表也不删列。
    """
    op.drop_index("ix_order_timeline_order_id", table_name="order_timeline")
    op.drop_table("order_timeline")

    op.drop_index("ix_logistics_comments_external", table_name="logistics_comments")
    op.drop_index("ix_logistics_comments_order_provider", table_name="logistics_comments")
    op.drop_table("logistics_comments")

    op.drop_index("ix_orders_provider_synced", table_name="orders", if_exists=True)
