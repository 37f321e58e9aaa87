# app/adapters/gaaubesi.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import AppSettings
from app.jobs.courier_sync_types import CourierCommentBatch, CourierCommentPost, CourierStatus

logger = logging.getLogger("courier_sync.gaaubesi")


class CourierApiError(Exception):
    """物流商接口失败（网络 / 超时 / 4xx / 5xx / success=false）。"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GaauBesiClient:
    """
    Gaau Besi 物流 API 客户端（只实现对账需要的三个接口）：

      GET  /order/status/?order_id=        → {"success", "status": ["Package in Transit", ...]}
      GET  /order/comment/list/?order_id=  → {"success", "comments": [...]}
      POST /order/comment/create/          → {"success", "message"}

    认证：Authorization: Token <token>
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not token:
            logger.warning("GAAUBESI_API_TOKEN not configured; courier calls will be rejected")
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Token {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "GaauBesiClient":
        return cls(
            base_url=settings.GAAUBESI_API_URL,
            token=settings.GAAUBESI_API_TOKEN,
            timeout=settings.COURIER_TIMEOUT_SECONDS,
        )

    async def __aenter__(self) -> "GaauBesiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ---------- 内部辅助 ----------

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            code = exc.response.status_code
            raise CourierApiError(f"GBL {method} {path} returned HTTP {code}", status_code=code) from exc
        except httpx.HTTPError as exc:
            raise CourierApiError(f"GBL {method} {path} failed: {exc!r}") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise CourierApiError(f"GBL {method} {path} returned non-JSON body") from exc
        if not isinstance(data, dict):
            raise CourierApiError(f"GBL {method} {path} returned unexpected payload")
        return data

    # ---------- 状态 ----------

    async def pull_status(self, external_order_id: str) -> Optional[CourierStatus]:
        """
        拉取订单当前状态；status 数组第一个元素即最新原文。
        数组为空时返回 None（物流商暂无数据，不算错误）。
        """
        data = await self._request("GET", "/order/status/", params={"order_id": external_order_id})
        if not data.get("success"):
            raise CourierApiError(str(data.get("message") or "Failed to get status"), status_code=404)

        raw = data.get("status")
        if isinstance(raw, list):
            text = raw[0] if raw else None
        else:
            text = raw
        if text is None or not str(text).strip():
            return None
        return CourierStatus(status=str(text), raw_fields=data)

    # ---------- 留言 ----------

    async def get_order_comments(self, external_order_id: str) -> CourierCommentBatch:
        """
        接口失败只记 warning，返回 success=False 的空批次：
        同一订单的物流商故障已由状态拉取计入一次错误。
        """
        try:
            data = await self._request(
                "GET", "/order/comment/list/", params={"order_id": external_order_id}
            )
        except CourierApiError as e:
            logger.warning("get comments failed for %s: %s", external_order_id, e)
            return CourierCommentBatch(success=False, comments=[])

        if not data.get("success"):
            return CourierCommentBatch(success=True, comments=[])

        comments = data.get("comments") or []
        if not isinstance(comments, list):
            comments = []
        return CourierCommentBatch(
            success=True,
            comments=[c for c in comments if isinstance(c, dict)],
        )

    async def post_order_comment(self, external_order_id: str, text: str) -> CourierCommentPost:
        data = await self._request(
            "POST",
            "/order/comment/create/",
            json={"order": external_order_id, "comments": text},
        )
        ext_id = data.get("id") or data.get("comment_id")
        return CourierCommentPost(
            success=bool(data.get("success")),
            message=data.get("message") or "Comment posted",
            external_id=str(ext_id) if ext_id is not None else None,
        )
