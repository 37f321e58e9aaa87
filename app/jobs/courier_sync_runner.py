# app/jobs/courier_sync_runner.py
from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from app.api.errors import NotFoundError, ValidationError
from app.core.config import AppSettings
from app.jobs.courier_sync_apply import describe_error, reconcile_order_status, sync_order_comments
from app.jobs.courier_sync_config import AFFILIATION_TAGS, PROVIDER_CODE, TERMINAL_STATUSES
from app.jobs.courier_sync_types import EligibilityCriteria, OrderSnapshot, RunResult
from app.ports import CommentStorePort, CourierClientPort, OrderStorePort

logger = logging.getLogger("courier_sync.runner")

T = TypeVar("T")

DEFAULT_CRITERIA = EligibilityCriteria(
    affiliation_tags=AFFILIATION_TAGS,
    terminal_statuses=TERMINAL_STATUSES,
)


@dataclass(frozen=True)
class SyncOptions:
    """对账节奏（秒）。延迟只是照顾物流商限流，不影响正确性。"""

    batch_size: int = 10
    delay_between_orders: float = 0.5
    delay_between_batches: float = 2.0
    call_timeout: Optional[float] = 30.0

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "SyncOptions":
        return cls(
            batch_size=settings.COURIER_SYNC_BATCH_SIZE,
            delay_between_orders=settings.COURIER_SYNC_ORDER_DELAY_MS / 1000,
            delay_between_batches=settings.COURIER_SYNC_BATCH_DELAY_MS / 1000,
            call_timeout=settings.COURIER_TIMEOUT_SECONDS,
        )


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    if size < 1:
        raise ValueError("batch size must be >= 1")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class CourierSyncRunner:
    """
    Gaau Besi 订单状态 + 留言对账驱动器。

    - 选出工作集（GBL 订单、已推送、有运单号、非终态），按 created_at 倒序
    - 分批、逐单顺序处理：状态 → 等待 → 留言 → 等待；批间再等待
    - 单个订单失败只记入 errors，不影响其他订单
    - 同一 runner 同时只跑一轮：运行中再次触发会被跳过（记日志），
      并等待当前这一轮结束，拿到同一个 RunResult
    - 单单同步与整轮对账不会交叠
    """

    def __init__(
        self,
        *,
        courier: CourierClientPort,
        orders: OrderStorePort,
        comments: CommentStorePort,
        options: Optional[SyncOptions] = None,
        criteria: Optional[EligibilityCriteria] = None,
        provider: str = PROVIDER_CODE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._courier = courier
        self._orders = orders
        self._comments = comments
        self._options = options or SyncOptions()
        self._criteria = criteria or DEFAULT_CRITERIA
        self._provider = provider
        self._sleep = sleep

        self._inflight: Optional[asyncio.Task[RunResult]] = None
        # 整轮对账与单单同步互斥
        self._order_lock = asyncio.Lock()
        self.last_result: Optional[RunResult] = None

    @property
    def running(self) -> bool:
        return self._inflight is not None

    @property
    def options(self) -> SyncOptions:
        return self._options

    # ------------------------------------------------------------------
    # 对外入口
    # ------------------------------------------------------------------

    async def run_pass(self, *, trigger: str = "manual") -> RunResult:
        """
        跑一整轮对账（定时 / 手动 / CLI 共用，行为一致），永不抛业务异常。

        这一轮由 runner 自己的 task 承载：发起方被取消只影响它自己的等待，
        其他被跳过的触发仍能拿到同一个 RunResult。
        """
        task = self._inflight
        if task is None:
            task = asyncio.create_task(self._run_owned(trigger), name=f"courier-sync-{trigger}")
            self._inflight = task
        else:
            logger.info("courier sync already running, trigger=%s skipped", trigger)
        return await asyncio.shield(task)

    async def sync_single_order(self, order_id: int) -> RunResult:
        """
        手动同步单个订单（状态 + 留言），不看工作集条件，只要求有运单号。
        与整轮对账互斥：有一轮在跑时先等它结束；单单同步期间新触发的一轮也会等单单结束。
        """
        async with self._order_lock:
            order = await self._orders.get_order(order_id)
            if order is None:
                raise NotFoundError(f"order {order_id} not found")
            if not order.external_order_id:
                raise ValidationError(f"order {order.ref} has not been pushed to the courier")

            started = time.monotonic()
            result = RunResult(timestamp=datetime.now(timezone.utc), trigger="single", total_orders=1)
            await self._process_order(order, result, pace=False)
            result.success = True
            result.duration_ms = int((time.monotonic() - started) * 1000)
            return result

    # ------------------------------------------------------------------
    # 内部
    # ------------------------------------------------------------------

    async def _run_owned(self, trigger: str) -> RunResult:
        try:
            async with self._order_lock:
                result = await self._execute(trigger)
        except Exception as e:
            logger.exception("courier sync pass crashed (trigger=%s)", trigger)
            result = RunResult(
                timestamp=datetime.now(timezone.utc),
                trigger=trigger,
                success=False,
                errors=[describe_error(e)],
            )
        finally:
            self._inflight = None
        self.last_result = result
        return result

    async def _execute(self, trigger: str) -> RunResult:
        started = time.monotonic()
        result = RunResult(timestamp=datetime.now(timezone.utc), trigger=trigger)
        logger.info("courier sync pass started (trigger=%s)", trigger)

        try:
            orders = await self._orders.find_eligible_orders(self._criteria)
        except Exception as e:
            result.errors.append(describe_error(e))
            result.duration_ms = int((time.monotonic() - started) * 1000)
            logger.exception("courier sync pass failed: cannot load eligible orders")
            return result

        result.total_orders = len(orders)
        if not orders:
            logger.info("no active courier orders to sync")

        batches = chunked(orders, self._options.batch_size)
        for idx, batch in enumerate(batches):
            logger.info("batch %d/%d (%d orders)", idx + 1, len(batches), len(batch))
            for order in batch:
                await self._process_order(order, result, pace=True)

            if idx < len(batches) - 1:
                await self._sleep(self._options.delay_between_batches)

        result.success = True
        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "courier sync pass done: orders=%d status_updated=%d comments_added=%d errors=%d duration_ms=%d",
            result.total_orders,
            result.status_updated_count,
            result.comments_added_count,
            len(result.errors),
            result.duration_ms,
        )
        return result

    async def _process_order(self, order: OrderSnapshot, result: RunResult, *, pace: bool) -> None:
        opts = self._options

        status_res = await reconcile_order_status(
            order, self._courier, self._orders, call_timeout=opts.call_timeout
        )
        if status_res.changed:
            result.status_updated_count += 1
        if not status_res.success:
            result.errors.append(f"Status sync failed for {order.ref}: {status_res.error}")

        if pace:
            await self._sleep(opts.delay_between_orders)

        comment_res = await sync_order_comments(
            order,
            self._courier,
            self._comments,
            provider=self._provider,
            call_timeout=opts.call_timeout,
        )
        result.comments_added_count += comment_res.new_comments
        if not comment_res.success:
            result.errors.append(f"Comments sync failed for {order.ref}: {comment_res.error}")

        if pace:
            await self._sleep(opts.delay_between_orders)


# ----------------------------------------------------------------------
# CLI：python -m app.jobs.courier_sync
# ----------------------------------------------------------------------


async def main() -> int:
    from app.core.config import get_settings
    from app.core.logging import setup_logging
    from app.jobs.courier_sync_runtime import build_runtime

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.JSON_LOG)

    runtime = build_runtime(settings)
    try:
        result = await runtime.runner.run_pass(trigger="cli")
    finally:
        await runtime.aclose()

    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0 if result.success else 1


def run_cli() -> None:
    sys.exit(asyncio.run(main()))
