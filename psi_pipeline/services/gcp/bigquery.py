"""
BigQuery REST 客户端
"""
from __future__ import annotations

import json
import logging
import uuid
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List

if TYPE_CHECKING:
    from psi_pipeline.services.gcp.base import GoogleBaseClient

logger = logging.getLogger(__name__)

BIGQUERY_UPLOAD_HOST = "https://bigquery.googleapis.com/upload"

_SCHEMA_PATH = Path(__file__).resolve().parent / "reports_schema.json"


@lru_cache
def load_reports_schema() -> List[Dict[str, Any]]:
    """
    读取 `reports` 表的固定 schema（BigQuery fields 列表）。
    """
    return json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))


def _multipart_related(metadata: Dict[str, Any], data: bytes) -> tuple[bytes, str]:
    boundary = uuid.uuid4().hex
    head = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        "Content-Type: application/octet-stream\r\n\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--\r\n".encode("utf-8")
    return head + data + tail, f"multipart/related; boundary={boundary}"


class BigQueryClient:
    def __init__(self, base: "GoogleBaseClient", *, project_id: str) -> None:
        self._base = base
        self._project_id = project_id

    async def load_ndjson(
        self,
        *,
        dataset_id: str,
        table_id: str,
        source_path: Path,
        job_id: str,
        schema_fields: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        把本地 NDJSON 文件作为 load job 提交（只负责提交，不等待 job 完成）。

        API: POST /upload/bigquery/v2/projects/{project}/jobs?uploadType=multipart
        """
        job_body = {
            "jobReference": {"projectId": self._project_id, "jobId": job_id},
            "configuration": {
                "load": {
                    "sourceFormat": "NEWLINE_DELIMITED_JSON",
                    "schema": {"fields": schema_fields},
                    "destinationTable": {
                        "projectId": self._project_id,
                        "datasetId": dataset_id,
                        "tableId": table_id,
                    },
                    # PSI 响应字段远多于表结构，只落 schema 覆盖的部分
                    "ignoreUnknownValues": True,
                }
            },
        }
        body, content_type = _multipart_related(job_body, source_path.read_bytes())
        resp = await self._base.request(
            "POST",
            f"{BIGQUERY_UPLOAD_HOST}/bigquery/v2/projects/{self._project_id}/jobs",
            params={"uploadType": "multipart"},
            content=body,
            headers={"Content-Type": content_type},
        )
        job = resp.json()
        logger.info(
            "BigQuery load job submitted: job_id=%s, table=%s.%s, state=%s",
            job_id,
            dataset_id,
            table_id,
            (job.get("status") or {}).get("state"),
        )
        return job
