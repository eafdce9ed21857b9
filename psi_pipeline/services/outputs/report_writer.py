from __future__ import annotations

import asyncio
import json
import logging
from typing import List, Sequence

from psi_pipeline.core.job_config_models import OutputFormat
from psi_pipeline.services.gcp.storage import ObjectStorageLike
from psi_pipeline.services.outputs.base import OutputResult, report_object_path
from psi_pipeline.services.outputs.registry import UnsupportedOutputFormatError, get_output_factory
from psi_pipeline.services.pagespeed.fetcher import Report

logger = logging.getLogger(__name__)


class ReportWriter:
    """
    报告落地：按配置的 outputFormat 逐个写报告，最后总是写一份 log。

    任何写入失败都直接抛出，已写入的对象不回滚。
    """

    def __init__(
        self,
        *,
        storage: ObjectStorageLike,
        bucket_name: str,
        output_formats: Sequence[OutputFormat] = (),
    ) -> None:
        self._storage = storage
        self._bucket = bucket_name
        self._formats = list(output_formats)

    async def persist(self, report: Report, source_id: str) -> List[OutputResult]:
        results = list(
            await asyncio.gather(*(self._write_report(fmt, report, source_id) for fmt in self._formats))
        )

        log_path = report_object_path(source_id, report, "log")
        logger.info("%s: Writing log to bucket %s", source_id, self._bucket)
        await self._storage.upload_bytes(
            self._bucket,
            log_path,
            json.dumps(report, indent=1, ensure_ascii=False).encode("utf-8"),
            content_type="application/json",
        )
        results.append(OutputResult(output_format=None, status="written", path=log_path))
        return results

    async def _write_report(
        self, output_format: OutputFormat, report: Report, source_id: str
    ) -> OutputResult:
        try:
            factory = get_output_factory(output_format)
        except UnsupportedOutputFormatError:
            logger.warning(
                "%s: Output format %s is not supported yet, skipping report",
                source_id,
                output_format.value,
            )
            return OutputResult(output_format=output_format, status="unsupported")

        handler = factory(self._storage, self._bucket)
        return await handler.handle(report=report, source_id=source_id)
