# app/api/routers/courier_sync.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status

from app.api.routers.courier_sync_schemas import (
    CommentCreateIn,
    CommentListOut,
    CommentSendOut,
    CourierSyncStatusOut,
    RunResultOut,
)
from app.jobs.courier_sync_runner import CourierSyncRunner
from app.services.logistics_comment_service import LogisticsCommentService

router = APIRouter(
    prefix="/logistics/courier-sync",
    tags=["logistics-courier-sync"],
)


def get_courier_sync_runner(request: Request) -> CourierSyncRunner:
    return request.app.state.courier_sync_runner


def get_comment_service(request: Request) -> LogisticsCommentService:
    return request.app.state.logistics_comment_service


# ------------------------- 对账 ------------------------- #


@router.post("/run", response_model=RunResultOut)
async def run_courier_sync(
    runner: CourierSyncRunner = Depends(get_courier_sync_runner),
) -> RunResultOut:
    """手动触发一轮对账（与定时任务行为一致）；已有一轮在跑时返回那一轮的结果。"""
    res = await runner.run_pass(trigger="manual")
    return RunResultOut.from_result(res)


@router.get("/status", response_model=CourierSyncStatusOut)
async def courier_sync_status(
    runner: CourierSyncRunner = Depends(get_courier_sync_runner),
) -> CourierSyncStatusOut:
    last = runner.last_result
    return CourierSyncStatusOut(
        running=runner.running,
        last_result=RunResultOut.from_result(last) if last is not None else None,
    )


@router.post("/orders/{order_id}/sync", response_model=RunResultOut)
async def sync_one_order(
    order_id: int,
    runner: CourierSyncRunner = Depends(get_courier_sync_runner),
) -> RunResultOut:
    res = await runner.sync_single_order(order_id)
    return RunResultOut.from_result(res)


# ------------------------- 留言 ------------------------- #


@router.post("/comments", response_model=CommentSendOut, status_code=status.HTTP_201_CREATED)
async def create_comment(
    payload: CommentCreateIn,
    svc: LogisticsCommentService = Depends(get_comment_service),
) -> CommentSendOut:
    res = await svc.send_comment(
        payload.order_id,
        payload.comment,
        sender_name=payload.sender_name,
    )
    return CommentSendOut.from_result(res)


@router.post("/comments/{comment_id}/retry", response_model=CommentSendOut)
async def retry_comment(
    comment_id: int,
    svc: LogisticsCommentService = Depends(get_comment_service),
) -> CommentSendOut:
    res = await svc.retry_comment_sync(comment_id)
    return CommentSendOut.from_result(res)


@router.get("/comments/{order_id}", response_model=CommentListOut)
async def list_comments(
    order_id: int,
    refresh: bool = Query(False, description="先从物流商拉取一次留言再返回"),
    svc: LogisticsCommentService = Depends(get_comment_service),
) -> CommentListOut:
    res = await svc.list_comments(order_id, refresh=refresh)
    return CommentListOut.from_result(res)
