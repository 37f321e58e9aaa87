# app/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.errors import BizError, biz_error_handler
from app.api.routers.courier_sync import router as courier_sync_router
from app.core.config import AppSettings, get_settings
from app.core.logging import setup_logging
from app.core.scheduler import init_scheduler
from app.jobs.courier_sync_runtime import CourierSyncRuntime, build_runtime

logger = logging.getLogger("courier_sync")


def _bind_runtime(app: FastAPI, runtime: CourierSyncRuntime) -> None:
    app.state.courier_sync_runtime = runtime
    app.state.courier_sync_runner = runtime.runner
    app.state.logistics_comment_service = runtime.comment_service


def create_app(
    settings: Optional[AppSettings] = None,
    runtime: Optional[CourierSyncRuntime] = None,
) -> FastAPI:
    """
    应用工厂：
    - runtime 由调用方注入时（测试）直接绑定，不在 lifespan 里重复创建
    - 否则在 lifespan 启动时按 settings 组装（DB 引擎 / 物流客户端 / runner）
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL, settings.JSON_LOG)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = runtime is None
        rt = runtime or build_runtime(settings)
        _bind_runtime(app, rt)

        scheduler = init_scheduler(rt.runner, settings)
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)
            if owned:
                await rt.aclose()

    app = FastAPI(
        title="Courier Sync",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    if runtime is not None:
        _bind_runtime(app, runtime)

    app.add_exception_handler(BizError, biz_error_handler)

    @app.exception_handler(Exception)
    async def _unhandled_exc(_req: Request, exc: Exception):
        logger.exception("UNHANDLED_EXC: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "INTERNAL_ERROR"})

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"ok": True}

    app.include_router(courier_sync_router)
    return app


app = create_app()
