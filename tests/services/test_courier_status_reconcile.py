# tests/services/test_courier_status_reconcile.py
from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from app.adapters.gaaubesi import CourierApiError
from app.jobs.courier_sync_apply import reconcile_order_status
from app.jobs.courier_sync_config import TIMELINE_NOTE
from app.models.enums import OrderStatus
from tests.factories import FakeCourier, InMemoryOrderStore, make_order

T1 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 5, 2, 9, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_returned_to_vendor_goes_to_verification_pending(courier: FakeCourier):
    """
    物流商说 Returned to Vendor：
    - 内部状态进 rto_verification_pending（不是 returned）
    - logistics_status 原文镜像
    - 时间线追加一行
    """
    order = make_order(1, status="in_transit", logistics_status="Package in Transit")
    store = InMemoryOrderStore([order])
    courier.statuses["GB-1"] = "Returned to Vendor"

    res = await reconcile_order_status(order, courier, store, now=T1)

    assert res.success and res.changed
    assert res.new_status == "Returned to Vendor"
    assert res.internal_status is OrderStatus.RTO_VERIFICATION_PENDING

    saved = store.orders[1]
    assert saved.status == "rto_verification_pending"
    assert saved.status != OrderStatus.RETURNED.value
    assert saved.logistics_status == "Returned to Vendor"
    assert saved.rto_initiated_at is None

    _, fields = store.updates[-1]
    assert fields["courier_raw_status"] == "Returned to Vendor"
    assert fields["updated_at"] == T1
    assert store.timeline == [(1, "Returned to Vendor", TIMELINE_NOTE)]


@pytest.mark.asyncio
async def test_rto_initiated_timestamp_and_reason_written_once(courier: FakeCourier):
    order = make_order(1, status="out_for_delivery", logistics_status="Out for Delivery")
    store = InMemoryOrderStore([order])

    courier.statuses["GB-1"] = "Customer Rejected"
    res1 = await reconcile_order_status(order, courier, store, now=T1)
    assert res1.internal_status is OrderStatus.RTO_INITIATED
    assert store.orders[1].rto_initiated_at == T1
    assert store.rto_reason[1] == "Customer Rejected"

    # 第二次又是 RTO 类原文：时间和原因都不能被覆盖
    courier.statuses["GB-1"] = "Undelivered"
    res2 = await reconcile_order_status(store.orders[1], courier, store, now=T2)
    assert res2.changed
    _, fields = store.updates[-1]
    assert "rto_initiated_at" not in fields
    assert "rto_reason" not in fields
    assert store.orders[1].rto_initiated_at == T1
    assert store.rto_reason[1] == "Customer Rejected"
    assert store.orders[1].logistics_status == "Undelivered"


@pytest.mark.asyncio
async def test_no_status_from_courier_is_noop(courier: FakeCourier):
    order = make_order(1)
    store = InMemoryOrderStore([order])

    res = await reconcile_order_status(order, courier, store)

    assert res.success and not res.changed
    assert store.updates == []
    assert store.timeline == []


@pytest.mark.asyncio
async def test_same_status_ignoring_case_is_noop(courier: FakeCourier):
    order = make_order(1, logistics_status="package in transit")
    store = InMemoryOrderStore([order])
    courier.statuses["GB-1"] = "Package in Transit"

    res = await reconcile_order_status(order, courier, store)

    assert res.success and not res.changed
    assert store.updates == []


@pytest.mark.asyncio
async def test_terminal_order_only_mirrors_raw_status(courier: FakeCourier):
    order = make_order(1, status="delivered", logistics_status="Delivered")
    store = InMemoryOrderStore([order])
    courier.statuses["GB-1"] = "Package in Transit"

    res = await reconcile_order_status(order, courier, store)

    assert res.success and res.changed
    assert res.internal_status is None
    _, fields = store.updates[-1]
    assert "status" not in fields
    assert store.orders[1].status == "delivered"
    assert store.orders[1].logistics_status == "Package in Transit"


@pytest.mark.asyncio
async def test_stale_happy_path_status_does_not_move_order_back(courier: FakeCourier):
    order = make_order(1, status="out_for_delivery", logistics_status="Out for Delivery")
    store = InMemoryOrderStore([order])
    courier.statuses["GB-1"] = "Package in Transit"

    res = await reconcile_order_status(order, courier, store)

    assert res.changed
    assert res.internal_status is None
    assert store.orders[1].status == "out_for_delivery"


@pytest.mark.asyncio
async def test_unmapped_status_still_updates_mirror(courier: FakeCourier):
    order = make_order(1, status="in_transit", logistics_status="Package in Transit")
    store = InMemoryOrderStore([order])
    courier.statuses["GB-1"] = "Sorting at hub"

    res = await reconcile_order_status(order, courier, store)

    assert res.success and res.changed
    assert res.internal_status is None
    _, fields = store.updates[-1]
    assert set(fields) == {"logistics_status", "courier_raw_status", "updated_at"}


@pytest.mark.asyncio
async def test_timeline_failure_does_not_fail_status_sync(courier: FakeCourier):
    order = make_order(1, status="handover_to_courier")
    store = InMemoryOrderStore([order])
    store.timeline_error = RuntimeError("timeline table missing")
    courier.statuses["GB-1"] = "Package in Transit"

    res = await reconcile_order_status(order, courier, store)

    assert res.success and res.changed
    assert res.internal_status is OrderStatus.IN_TRANSIT
    assert store.orders[1].status == "in_transit"


@pytest.mark.asyncio
async def test_update_failure_reports_error(courier: FakeCourier):
    order = make_order(1)
    store = InMemoryOrderStore([order])
    store.update_error = RuntimeError("db down")
    courier.statuses["GB-1"] = "Out for Delivery"

    res = await reconcile_order_status(order, courier, store)

    assert not res.success
    assert res.error == "db down"
    assert store.timeline == []


@pytest.mark.asyncio
async def test_courier_error_reports_error(courier: FakeCourier):
    order = make_order(1)
    store = InMemoryOrderStore([order])
    courier.statuses["GB-1"] = CourierApiError("Failed to get status", status_code=404)

    res = await reconcile_order_status(order, courier, store)

    assert not res.success
    assert res.error == "Failed to get status"


@pytest.mark.asyncio
async def test_missing_external_id_fails():
    order = make_order(1, external_order_id=None)
    store = InMemoryOrderStore([order])

    res = await reconcile_order_status(order, FakeCourier(), store)

    assert not res.success
    assert store.updates == []


@pytest.mark.asyncio
async def test_unresponsive_courier_times_out(courier: FakeCourier):
    order = make_order(1)
    store = InMemoryOrderStore([order])
    courier.status_gate = asyncio.Event()  # 永远不 set

    res = await reconcile_order_status(order, courier, store, call_timeout=0.01)

    assert not res.success
    assert "timed out" in res.error
