from __future__ import annotations

import json
import unittest
from unittest.mock import AsyncMock

from psi_pipeline.core.job_config_models import OutputFormat
from psi_pipeline.services.outputs.registry import UnsupportedOutputFormatError, get_output_factory
from psi_pipeline.services.outputs.report_writer import ReportWriter
from tests.helpers import InMemoryStorage

BUCKET = "pagespeedinsights-reports"
REPORT = {"analysisUTCTimestamp": "2018-12-17T10:56:56.420Z", "emulatedFormFactor": "desktop"}


class TestReportWriter(unittest.IsolatedAsyncioTestCase):
    async def test_writes_report_and_log_when_json_configured(self) -> None:
        storage = InMemoryStorage()
        writer = ReportWriter(storage=storage, bucket_name=BUCKET, output_formats=[OutputFormat.JSON])

        results = await writer.persist(dict(REPORT), "ebay")

        self.assertEqual(
            [(bucket, name) for bucket, name, _, _ in storage.uploads],
            [
                (BUCKET, "ebay/desktop/report_2018-12-17T10:56:56.420Z.json"),
                (BUCKET, "ebay/desktop/log_2018-12-17T10:56:56.420Z.json"),
            ],
        )
        self.assertEqual([r.status for r in results], ["written", "written"])
        _, _, log_data, content_type = storage.uploads[-1]
        self.assertEqual(log_data.decode(), json.dumps(REPORT, indent=1))
        self.assertEqual(content_type, "application/json")

    async def test_writes_only_log_without_output_formats(self) -> None:
        storage = InMemoryStorage()
        writer = ReportWriter(storage=storage, bucket_name=BUCKET, output_formats=[])

        await writer.persist(dict(REPORT), "ebay")

        self.assertEqual(len(storage.uploads), 1)
        self.assertEqual(storage.uploads[0][1], "ebay/desktop/log_2018-12-17T10:56:56.420Z.json")

    async def test_unimplemented_format_reports_unsupported(self) -> None:
        storage = InMemoryStorage()
        writer = ReportWriter(
            storage=storage, bucket_name=BUCKET, output_formats=[OutputFormat.CSV, OutputFormat.HTML]
        )

        with self.assertLogs("psi_pipeline.services.outputs.report_writer", level="WARNING"):
            results = await writer.persist(dict(REPORT), "ebay")

        self.assertEqual([r.status for r in results], ["unsupported", "unsupported", "written"])
        self.assertEqual([r.output_format for r in results[:2]], [OutputFormat.CSV, OutputFormat.HTML])
        self.assertEqual(len(storage.uploads), 1)

    async def test_write_failure_propagates(self) -> None:
        storage = InMemoryStorage()
        storage.upload_bytes = AsyncMock(side_effect=OSError("disk full"))
        writer = ReportWriter(storage=storage, bucket_name=BUCKET, output_formats=[OutputFormat.JSON])

        with self.assertRaises(OSError):
            await writer.persist(dict(REPORT), "ebay")

    def test_registry_rejects_unimplemented_format(self) -> None:
        get_output_factory(OutputFormat.JSON)
        with self.assertRaises(UnsupportedOutputFormatError):
            get_output_factory(OutputFormat.HTML)


if __name__ == "__main__":
    unittest.main()
