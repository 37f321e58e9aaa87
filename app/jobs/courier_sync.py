# app/jobs/courier_sync.py
from __future__ import annotations

from app.jobs.courier_sync_apply import reconcile_order_status, sync_order_comments
from app.jobs.courier_sync_config import EXACT_STATUS_MAP, TERMINAL_STATUSES
from app.jobs.courier_sync_mapping import (
    can_transition,
    classify_comment_sender,
    map_courier_status,
)
from app.jobs.courier_sync_runner import CourierSyncRunner, SyncOptions, main, run_cli
from app.jobs.courier_sync_types import RunResult

__all__ = [
    "EXACT_STATUS_MAP",
    "TERMINAL_STATUSES",
    "CourierSyncRunner",
    "RunResult",
    "SyncOptions",
    "can_transition",
    "classify_comment_sender",
    "map_courier_status",
    "reconcile_order_status",
    "sync_order_comments",
    "main",
    "run_cli",
]


if __name__ == "__main__":
    run_cli()
