"""
PageSpeed Insights 接入：client 负责 HTTP，fetcher 负责标注与日志
"""
from __future__ import annotations

from psi_pipeline.services.pagespeed.client import PageSpeedClient
from psi_pipeline.services.pagespeed.fetcher import Report, ReportFetcher

__all__ = [
    "PageSpeedClient",
    "Report",
    "ReportFetcher",
]
