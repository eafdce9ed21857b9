from __future__ import annotations

import logging
from json import JSONDecodeError
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from psi_pipeline.services.gcp.errors import GoogleAPIError

logger = logging.getLogger(__name__)

PAGESPEED_API_URL = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"


class PageSpeedClient:
    """
    PageSpeed Insights v5 `runPagespeed` 的薄封装。

    PSI 不需要 OAuth，api_key 可选（无 key 时配额很低）。
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        timeout_s: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout_s
        self._transport = transport

    async def run_pagespeed(
        self,
        *,
        url: str,
        strategy: str,
        categories: Sequence[str] = (),
    ) -> Dict[str, Any]:
        params: List[Tuple[str, str]] = [("url", url), ("strategy", strategy)]
        params.extend(("category", c) for c in categories)
        if self._api_key:
            params.append(("key", self._api_key))

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.get(PAGESPEED_API_URL, params=params)

        try:
            data = resp.json()
        except JSONDecodeError as exc:
            raise GoogleAPIError(
                f"PSI returned non-JSON response. Status: {resp.status_code}, Body: {resp.text[:200]}",
                status_code=resp.status_code,
            ) from exc

        if resp.status_code != 200:
            error = data.get("error") if isinstance(data, dict) else None
            message = (error or {}).get("message") or data
            logger.error("PSI error for url=%s strategy=%s: status=%s, %s", url, strategy, resp.status_code, message)
            raise GoogleAPIError(
                f"PSI error url={url}, status={resp.status_code}, message={message}",
                status_code=resp.status_code,
            )
        return data
