# app/core/scheduler.py
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import AppSettings
from app.jobs.courier_sync_runner import CourierSyncRunner

logger = logging.getLogger("courier_sync.scheduler")

COURIER_SYNC_JOB_ID = "gbl-order-sync"


def build_courier_sync_trigger(settings: AppSettings) -> CronTrigger:
    # 默认 08/11/14/17/20 点整；22:00-08:00 不轮询，节省物流商配额
    return CronTrigger(
        minute=0,
        hour=settings.COURIER_SYNC_CRON_HOURS,
        timezone=settings.SCHEDULER_TIMEZONE,
    )


def init_scheduler(runner: CourierSyncRunner, settings: AppSettings, *, start: bool = True):
    """
    注册 Gaau Besi 对账定时任务；ENABLE_COURIER_SYNC_SCHEDULER 关闭时返回 None。
    """
    if not settings.ENABLE_COURIER_SYNC_SCHEDULER:
        return None

    async def _job_courier_sync() -> None:
        await runner.run_pass(trigger="scheduled")

    scheduler = AsyncIOScheduler(timezone=settings.SCHEDULER_TIMEZONE)
    scheduler.add_job(
        _job_courier_sync,
        build_courier_sync_trigger(settings),
        id=COURIER_SYNC_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    if start:
        scheduler.start()
    logger.info(
        "courier sync scheduled at hours %s (%s)",
        settings.COURIER_SYNC_CRON_HOURS,
        settings.SCHEDULER_TIMEZONE,
    )
    return scheduler
