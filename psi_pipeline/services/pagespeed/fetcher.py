from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

# PSI 响应 + 本项目附加字段（id / url / emulatedFormFactor / job_id）
Report = Dict[str, Any]


class PageSpeedClientLike(Protocol):
    async def run_pagespeed(
        self, *, url: str, strategy: str, categories: Sequence[str] = ()
    ) -> Dict[str, Any]: ...


class ReportFetcher:
    def __init__(self, client: PageSpeedClientLike) -> None:
        self._client = client

    async def fetch(
        self,
        source_id: str,
        url: str,
        strategy: str,
        categories: Optional[Sequence[str]] = None,
    ) -> Report:
        """
        调用 PSI 获取报告，并标注 source id / url / strategy。
        """
        logger.info("%s: Requesting Pagespeed Insight report for %s on %s", source_id, url, strategy)

        report: Report = await self._client.run_pagespeed(
            url=url, strategy=strategy, categories=list(categories or [])
        )
        report["id"] = source_id
        report["url"] = url
        report["emulatedFormFactor"] = strategy

        logger.info("%s: Pagespeed Insight report received for %s on %s", source_id, url, strategy)
        return report
