# app/jobs/courier_sync_runtime.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from app.adapters.gaaubesi import GaauBesiClient
from app.core.config import AppSettings
from app.db.session import get_async_engine, make_session_maker
from app.jobs.courier_sync_runner import CourierSyncRunner, SyncOptions
from app.services.courier_order_store import SqlCommentStore, SqlOrderStore
from app.services.logistics_comment_service import LogisticsCommentService


@dataclass
class CourierSyncRuntime:
    """一套完整的对账依赖（API 进程 / CLI 各自持有一份）。"""

    runner: CourierSyncRunner
    comment_service: LogisticsCommentService
    courier: GaauBesiClient
    engine: Optional[AsyncEngine] = None

    async def aclose(self) -> None:
        await self.courier.aclose()
        if self.engine is not None:
            await self.engine.dispose()


def build_runtime(settings: AppSettings, *, engine: Optional[AsyncEngine] = None) -> CourierSyncRuntime:
    engine = engine or get_async_engine(settings.DATABASE_URL)
    session_maker = make_session_maker(engine)

    courier = GaauBesiClient.from_settings(settings)
    orders = SqlOrderStore(session_maker)
    comments = SqlCommentStore(session_maker)

    runner = CourierSyncRunner(
        courier=courier,
        orders=orders,
        comments=comments,
        options=SyncOptions.from_settings(settings),
    )
    comment_service = LogisticsCommentService(
        courier=courier,
        orders=orders,
        comments=comments,
        call_timeout=settings.COURIER_TIMEOUT_SECONDS,
    )
    return CourierSyncRuntime(
        runner=runner,
        comment_service=comment_service,
        courier=courier,
        engine=engine,
    )
