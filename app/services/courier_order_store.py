# app/services/courier_order_store.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.jobs.courier_sync_types import (
    EligibilityCriteria,
    NewLogisticsComment,
    OrderSnapshot,
    StoredComment,
)
from app.models.logistics_comment import LogisticsComment
from app.models.order import Order
from app.models.order_timeline import OrderTimelineEntry

# update_order 允许写的列
_UPDATABLE_COLUMNS = frozenset(
    {
        "status",
        "logistics_status",
        "courier_raw_status",
        "rto_initiated_at",
        "rto_reason",
        "updated_at",
    }
)
# 只能写一次的列：条件更新 WHERE rto_initiated_at IS NULL
_WRITE_ONCE_COLUMNS = ("rto_initiated_at", "rto_reason")


def _to_snapshot(row: Order) -> OrderSnapshot:
    return OrderSnapshot(
        id=row.id,
        readable_id=row.readable_id,
        status=row.status,
        logistics_status=row.logistics_status,
        external_order_id=row.external_order_id,
        rto_initiated_at=row.rto_initiated_at,
        logistics_provider=row.logistics_provider,
        is_synced=bool(row.is_synced),
        created_at=row.created_at,
    )


def _to_stored_comment(row: LogisticsComment) -> StoredComment:
    return StoredComment(
        id=row.id,
        order_id=row.order_id,
        comment=row.comment,
        sender=row.sender,
        sender_name=row.sender_name,
        provider=row.provider,
        external_id=row.external_id,
        is_synced=bool(row.is_synced),
        sync_error=row.sync_error,
        created_at=row.created_at,
    )


class SqlOrderStore:
    """
    订单仓储（SQLAlchemy Async）：
    - 每个操作一个短会话，成功即 commit；失败只回滚这一次操作
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def find_eligible_orders(self, criteria: EligibilityCriteria) -> List[OrderSnapshot]:
        tags = sorted({t.lower() for t in criteria.affiliation_tags})
        terminals = sorted(s.value for s in criteria.terminal_statuses)

        stmt = (
            select(Order)
            .where(
                func.lower(Order.logistics_provider).in_(tags),
                Order.external_order_id.is_not(None),
                Order.external_order_id != "",
                func.lower(Order.status).not_in(terminals),
            )
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        if criteria.require_synced:
            stmt = stmt.where(Order.is_synced.is_(True))

        async with self._session_maker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_snapshot(r) for r in rows]

    async def get_order(self, order_id: int) -> Optional[OrderSnapshot]:
        async with self._session_maker() as session:
            row = await session.get(Order, order_id)
        return _to_snapshot(row) if row is not None else None

    async def update_order(self, order_id: int, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"unsupported order fields: {sorted(unknown)}")

        values = dict(fields)
        once = {k: values.pop(k) for k in _WRITE_ONCE_COLUMNS if k in values}

        async with self._session_maker() as session:
            if values:
                res = await session.execute(
                    update(Order).where(Order.id == order_id).values(**values)
                )
                if res.rowcount == 0:
                    raise LookupError(f"order {order_id} not found")
            if once:
                await session.execute(
                    update(Order)
                    .where(Order.id == order_id, Order.rto_initiated_at.is_(None))
                    .values(**once)
                )
            await session.commit()

    async def append_timeline_entry(self, order_id: int, status: str, note: str) -> None:
        async with self._session_maker() as session:
            session.add(
                OrderTimelineEntry(
                    order_id=order_id,
                    status=status,
                    notes=note,
                    created_by="system",
                    created_at=datetime.now(timezone.utc),
                )
            )
            await session.commit()


class SqlCommentStore:
    """物流留言仓储（SQLAlchemy Async）。"""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def find_existing_comment(
        self,
        order_id: int,
        provider: str,
        external_id: Optional[str],
        text: str,
    ) -> Optional[StoredComment]:
        matches = [LogisticsComment.comment == text]
        if external_id:
            matches.append(LogisticsComment.external_id == external_id)

        stmt = (
            select(LogisticsComment)
            .where(
                LogisticsComment.order_id == order_id,
                LogisticsComment.provider == provider,
                or_(*matches),
            )
            .order_by(LogisticsComment.id)
            .limit(1)
        )
        async with self._session_maker() as session:
            row = (await session.execute(stmt)).scalars().first()
        return _to_stored_comment(row) if row is not None else None

    async def insert_comment(self, comment: NewLogisticsComment) -> int:
        row = LogisticsComment(
            order_id=comment.order_id,
            comment=comment.comment,
            sender=str(comment.sender),
            sender_name=comment.sender_name,
            external_id=comment.external_id,
            provider=comment.provider,
            is_synced=comment.is_synced,
            synced_at=comment.synced_at,
            created_at=comment.created_at or datetime.now(timezone.utc),
        )
        async with self._session_maker() as session:
            session.add(row)
            await session.flush()
            new_id = row.id
            await session.commit()
        return new_id

    async def get_comment(self, comment_id: int) -> Optional[StoredComment]:
        async with self._session_maker() as session:
            row = await session.get(LogisticsComment, comment_id)
        return _to_stored_comment(row) if row is not None else None

    async def list_comments(self, order_id: int) -> List[StoredComment]:
        """订单的全部留言（双向），按 created_at 正序。"""
        stmt = (
            select(LogisticsComment)
            .where(LogisticsComment.order_id == order_id)
            .order_by(LogisticsComment.created_at.asc(), LogisticsComment.id.asc())
        )
        async with self._session_maker() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_stored_comment(r) for r in rows]

    async def mark_comment_sync(
        self,
        comment_id: int,
        *,
        synced: bool,
        error: Optional[str] = None,
        external_id: Optional[str] = None,
    ) -> None:
        values: Dict[str, Any] = {
            "is_synced": synced,
            "synced_at": datetime.now(timezone.utc) if synced else None,
            "sync_error": None if synced else error,
        }
        if external_id:
            values["external_id"] = external_id

        async with self._session_maker() as session:
            res = await session.execute(
                update(LogisticsComment).where(LogisticsComment.id == comment_id).values(**values)
            )
            if res.rowcount == 0:
                raise LookupError(f"comment {comment_id} not found")
            await session.commit()
