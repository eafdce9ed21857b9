from __future__ import annotations

import json
import logging

from psi_pipeline.core.job_config_models import OutputFormat
from psi_pipeline.services.gcp.storage import ObjectStorageLike
from psi_pipeline.services.outputs.base import BaseOutputHandler, OutputResult, report_object_path
from psi_pipeline.services.pagespeed.fetcher import Report

logger = logging.getLogger(__name__)


class JsonReportOutputHandler(BaseOutputHandler):
    """
    把完整报告以 JSON 写入 GCS：`{id}/{formFactor}/report_{ts}.json`
    """

    output_format = OutputFormat.JSON

    def __init__(self, *, storage: ObjectStorageLike, bucket_name: str) -> None:
        self._storage = storage
        self._bucket = bucket_name

    async def handle(self, *, report: Report, source_id: str) -> OutputResult:
        path = report_object_path(source_id, report, "report")
        logger.info("%s: Writing %s report to bucket %s", source_id, self.output_format.value, self._bucket)
        await self._storage.upload_bytes(
            self._bucket,
            path,
            json.dumps(report, ensure_ascii=False).encode("utf-8"),
            content_type="application/json",
        )
        return OutputResult(output_format=self.output_format, status="written", path=path)
