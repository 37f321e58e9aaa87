# tests/services/test_sql_order_store.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.jobs.courier_sync_apply import reconcile_order_status, sync_order_comments
from app.jobs.courier_sync_runner import DEFAULT_CRITERIA
from app.jobs.courier_sync_types import NewLogisticsComment
from app.models.enums import CommentSender
from app.models.logistics_comment import LogisticsComment
from app.models.order import Order
from app.models.order_timeline import OrderTimelineEntry
from app.services.courier_order_store import SqlCommentStore, SqlOrderStore
from tests.factories import FakeCourier

BASE = datetime(2024, 5, 1, 8, 0)


async def _seed_order(session_maker, **kw) -> int:
    values = dict(
        readable_id="ORD-1",
        status="in_transit",
        logistics_provider="GBL",
        external_order_id="GB-1",
        is_synced=True,
        created_at=BASE,
    )
    values.update(kw)
    async with session_maker() as session:
        row = Order(**values)
        session.add(row)
        await session.commit()
        return row.id


@pytest.mark.asyncio
async def test_find_eligible_orders_filters_and_orders(async_session_maker):
    keep_old = await _seed_order(async_session_maker, readable_id="A", created_at=BASE)
    keep_new = await _seed_order(
        async_session_maker,
        readable_id="B",
        logistics_provider="gaau-besi",
        created_at=BASE + timedelta(days=1),
    )
    await _seed_order(async_session_maker, readable_id="C", status="Delivered")
    await _seed_order(async_session_maker, readable_id="D", is_synced=False)
    await _seed_order(async_session_maker, readable_id="E", external_order_id="")
    await _seed_order(async_session_maker, readable_id="F", external_order_id=None)
    await _seed_order(async_session_maker, readable_id="G", logistics_provider="pathao")
    await _seed_order(async_session_maker, readable_id="H", status="lost_in_transit")

    store = SqlOrderStore(async_session_maker)
    found = await store.find_eligible_orders(DEFAULT_CRITERIA)

    assert [o.id for o in found] == [keep_new, keep_old]
    assert found[0].readable_id == "B"
    assert found[0].is_synced is True


@pytest.mark.asyncio
async def test_update_order_writes_rto_fields_once(async_session_maker):
    order_id = await _seed_order(async_session_maker)
    store = SqlOrderStore(async_session_maker)
    t1 = datetime(2024, 5, 2, 9, 0, tzinfo=timezone.utc)
    t2 = datetime(2024, 5, 3, 9, 0, tzinfo=timezone.utc)

    await store.update_order(
        order_id,
        {
            "status": "rto_initiated",
            "logistics_status": "Customer Rejected",
            "rto_initiated_at": t1,
            "rto_reason": "Customer Rejected",
        },
    )
    await store.update_order(
        order_id,
        {
            "logistics_status": "Undelivered",
            "rto_initiated_at": t2,
            "rto_reason": "Undelivered",
        },
    )

    async with async_session_maker() as session:
        row = await session.get(Order, order_id)
    assert row.status == "rto_initiated"
    assert row.logistics_status == "Undelivered"
    assert row.rto_reason == "Customer Rejected"
    assert row.rto_initiated_at.replace(tzinfo=None) == t1.replace(tzinfo=None)


@pytest.mark.asyncio
async def test_update_order_rejects_unknown_fields_and_missing_rows(async_session_maker):
    order_id = await _seed_order(async_session_maker)
    store = SqlOrderStore(async_session_maker)

    with pytest.raises(ValueError):
        await store.update_order(order_id, {"logistics_provider": "other"})
    with pytest.raises(LookupError):
        await store.update_order(order_id + 100, {"logistics_status": "x"})


@pytest.mark.asyncio
async def test_comment_store_dedup_and_mark_sync(async_session_maker):
    order_id = await _seed_order(async_session_maker)
    store = SqlCommentStore(async_session_maker)

    cid = await store.insert_comment(
        NewLogisticsComment(
            order_id=order_id,
            comment="Please call first",
            sender=CommentSender.ERP_USER,
            sender_name="Staff",
            provider="GBL",
        )
    )

    by_text = await store.find_existing_comment(order_id, "GBL", None, "Please call first")
    assert by_text is not None and by_text.id == cid
    assert await store.find_existing_comment(order_id, "OTHER", None, "Please call first") is None
    assert await store.find_existing_comment(order_id, "GBL", "x-1", "different") is None

    await store.mark_comment_sync(cid, synced=True, external_id="x-1")
    by_ext = await store.find_existing_comment(order_id, "GBL", "x-1", "different")
    assert by_ext is not None and by_ext.id == cid

    stored = await store.get_comment(cid)
    assert stored.is_synced is True
    assert stored.sender == "ERP_USER"
    assert stored.sync_error is None

    await store.mark_comment_sync(cid, synced=False, error="HTTP 500")
    stored = await store.get_comment(cid)
    assert stored.is_synced is False
    assert stored.sync_error == "HTTP 500"

    with pytest.raises(LookupError):
        await store.mark_comment_sync(cid + 100, synced=True)


@pytest.mark.asyncio
async def test_list_comments_oldest_first(async_session_maker):
    order_id = await _seed_order(async_session_maker)
    other_id = await _seed_order(async_session_maker, readable_id="ORD-2", external_order_id="GB-2")
    store = SqlCommentStore(async_session_maker)

    for text, sender, offset in [
        ("Out for delivery today", CommentSender.LOGISTICS_PROVIDER, 2),
        ("Please call first", CommentSender.ERP_USER, 0),
        ("Customer not reachable", CommentSender.LOGISTICS_PROVIDER, 1),
    ]:
        await store.insert_comment(
            NewLogisticsComment(
                order_id=order_id,
                comment=text,
                sender=sender,
                sender_name="Staff",
                provider="GBL",
                created_at=BASE + timedelta(hours=offset),
            )
        )
    await store.insert_comment(
        NewLogisticsComment(
            order_id=other_id,
            comment="other order",
            sender=CommentSender.ERP_USER,
            sender_name="Staff",
            provider="GBL",
        )
    )

    rows = await store.list_comments(order_id)

    assert [r.comment for r in rows] == [
        "Please call first",
        "Customer not reachable",
        "Out for delivery today",
    ]
    assert rows[0].sender == "ERP_USER"
    assert rows[0].created_at is not None
    assert await store.list_comments(other_id + 100) == []


@pytest.mark.asyncio
async def test_reconcile_against_database(async_session_maker):
    """SQL 仓储 + 假物流商：状态、时间线、留言都落库，且重复跑幂等。"""
    order_id = await _seed_order(async_session_maker, logistics_status="Package in Transit")
    orders = SqlOrderStore(async_session_maker)
    comments = SqlCommentStore(async_session_maker)
    courier = FakeCourier()
    courier.statuses["GB-1"] = "Returned to Vendor"
    courier.comments["GB-1"] = [{"id": 77, "comments": "Returned to hub", "created_by": "Gaaubesi Staff"}]

    order = await orders.get_order(order_id)
    status_res = await reconcile_order_status(order, courier, orders)
    first = await sync_order_comments(order, courier, comments)
    second = await sync_order_comments(order, courier, comments)

    assert status_res.changed
    assert (first.new_comments, second.new_comments) == (1, 0)

    async with async_session_maker() as session:
        row = await session.get(Order, order_id)
        timeline = (await session.execute(select(OrderTimelineEntry))).scalars().all()
        stored = (await session.execute(select(LogisticsComment))).scalars().all()

    assert row.status == "rto_verification_pending"
    assert row.courier_raw_status == "Returned to Vendor"
    assert [(t.status, t.created_by) for t in timeline] == [("Returned to Vendor", "system")]
    assert len(stored) == 1
    assert stored[0].sender == "LOGISTICS_PROVIDER"
    assert stored[0].external_id == "77"
