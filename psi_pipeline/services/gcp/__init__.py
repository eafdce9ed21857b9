"""
Google Cloud 客户端模块

按服务划分，共享同一个 GoogleBaseClient（token 与 http 能力）：
- storage: GCS 对象读写
- pubsub: 消息发布
- bigquery: load job 提交
"""
from __future__ import annotations

from typing import Optional

import httpx

from psi_pipeline.config import Settings
from psi_pipeline.services.gcp.base import GoogleBaseClient
from psi_pipeline.services.gcp.bigquery import BigQueryClient, load_reports_schema
from psi_pipeline.services.gcp.errors import GoogleAPIError
from psi_pipeline.services.gcp.pubsub import PubSubClient
from psi_pipeline.services.gcp.storage import GcsClient


class GoogleCloudClient:
    """
    Google Cloud 统一入口客户端

    - gcp.storage.xxx - GCS 操作
    - gcp.pubsub.xxx - Pub/Sub 操作
    - gcp.bigquery.xxx - BigQuery 操作
    """

    def __init__(
        self,
        *,
        project_id: str,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base = GoogleBaseClient(settings, transport=transport)

        self.storage = GcsClient(self._base)
        self.pubsub = PubSubClient(self._base, project_id=project_id)
        self.bigquery = BigQueryClient(self._base, project_id=project_id)


__all__ = [
    "GoogleCloudClient",
    "GoogleAPIError",
    "load_reports_schema",
]
