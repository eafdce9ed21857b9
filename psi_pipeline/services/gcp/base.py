"""
Google Cloud REST 基础客户端

提供 Access Token 管理和 HTTP 请求封装，供 GCS / Pub/Sub / BigQuery 子客户端共享
"""
from __future__ import annotations

import asyncio
import logging
import time
from json import JSONDecodeError
from typing import Any, Dict, Optional

import httpx

from psi_pipeline.config import Settings, get_settings
from psi_pipeline.services.gcp.errors import GoogleAPIError

logger = logging.getLogger(__name__)

_TOKEN_PATH = "/computeMetadata/v1/instance/service-accounts/default/token"


def mask_token(token: str) -> str:
    return f"{token[:4]}...{token[-4:]}" if len(token) > 8 else "***"


class GoogleBaseClient:
    """
    Google Cloud REST 基础客户端

    负责：
    - Access Token 获取与缓存（静态 token 或 metadata server）
    - HTTP 请求封装（带认证、日志、错误处理）
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        # 测试时注入 httpx.MockTransport
        self._transport = transport
        self._access_token: Optional[str] = None
        self._access_token_expire_at: float = 0.0
        self._token_lock: Optional[asyncio.Lock] = None
        self._token_lock_loop: Optional[asyncio.AbstractEventLoop] = None

    def _get_token_lock(self) -> asyncio.Lock:
        # Cloud Functions 入口每个事件都会 asyncio.run 一个新 loop，锁必须跟随当前 loop
        loop = asyncio.get_running_loop()
        if self._token_lock is None or self._token_lock_loop is not loop:
            self._token_lock = asyncio.Lock()
            self._token_lock_loop = loop
        return self._token_lock

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        # 每次调用新建 client，避免跨 event loop 复用连接池
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.settings.GCP_HTTP_TIMEOUT_S,
            transport=self._transport,
        )

    async def get_access_token(self) -> str:
        """
        获取并缓存 OAuth access token，带有简单的 TTL 控制。
        """
        if self.settings.GCP_ACCESS_TOKEN:
            return self.settings.GCP_ACCESS_TOKEN

        async with self._get_token_lock():
            if self._access_token and time.time() < self._access_token_expire_at - 60:
                return self._access_token

            url = f"{self.settings.GCP_METADATA_HOST}{_TOKEN_PATH}"
            logger.info("Requesting access token from metadata server %s", url)
            async with self._client() as client:
                resp = await client.get(url, headers={"Metadata-Flavor": "Google"})
            try:
                data = resp.json()
            except JSONDecodeError:
                data = {"body": resp.text[:200]}
            if resp.status_code != 200 or "access_token" not in data:
                logger.error(
                    "Failed to get access token: status=%s, response=%s",
                    resp.status_code,
                    data,
                )
                raise GoogleAPIError(
                    f"Failed to get access token: {data}", status_code=resp.status_code
                )

            token = data["access_token"]
            expire = data.get("expires_in", 3600)
            self._access_token = token
            self._access_token_expire_at = time.time() + expire
            logger.info(
                "Refreshed access token: token=%s, expire_in=%ss", mask_token(token), expire
            )
            return token

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Any] = None,
        json: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        authenticated: bool = True,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """
        发送 HTTP 请求到 Google API

        自动处理：
        - Token 注入（authenticated=True 时）
        - 请求/响应日志
        - 非 2xx 响应转换为 GoogleAPIError
        """
        req_headers = dict(headers or {})
        if authenticated:
            token = await self.get_access_token()
            req_headers["Authorization"] = f"Bearer {token}"

        body_summary: Dict[str, Any] = {}
        if json is not None:
            body_summary["keys"] = list(json.keys())
        if content is not None:
            body_summary["content_len"] = len(content)
        logger.debug("Google API Request: %s %s BodySummary: %s", method, url, body_summary or None)

        async with self._client(timeout) as client:
            resp = await client.request(
                method,
                url,
                params=params,
                json=json,
                content=content,
                headers=req_headers,
            )

        logger.debug("Google API Response: %s %s -> status=%s", method, url, resp.status_code)

        if resp.status_code < 200 or resp.status_code >= 300:
            try:
                detail: Any = resp.json()
            except JSONDecodeError:
                detail = resp.text[:200]
            # 404 在 state 读取场景是常态，交由调用方决定日志级别
            if resp.status_code != 404:
                logger.error(
                    "Google API error: %s %s -> status=%s, detail=%s",
                    method,
                    url,
                    resp.status_code,
                    detail,
                )
            raise GoogleAPIError(
                f"Google API error url={url}, status={resp.status_code}, detail={detail}",
                status_code=resp.status_code,
            )
        return resp
