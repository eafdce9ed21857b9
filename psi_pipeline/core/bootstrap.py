from __future__ import annotations

import logging
from typing import Optional

import httpx

from psi_pipeline.config import Settings, get_settings
from psi_pipeline.core.debounce_store import DebounceStore
from psi_pipeline.core.job_config_models import JobConfig
from psi_pipeline.core.manager import JobOrchestrator
from psi_pipeline.services.gcp import GoogleCloudClient, load_reports_schema
from psi_pipeline.services.outputs.report_writer import ReportWriter
from psi_pipeline.services.pagespeed import PageSpeedClient, ReportFetcher
from psi_pipeline.services.triggers.service import FanOutPublisher

logger = logging.getLogger(__name__)


def build_orchestrator(
    config: JobConfig,
    *,
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> JobOrchestrator:
    """
    按 job config 组装所有组件；每个进程调用一次。
    """
    settings = settings or get_settings()
    gcp = GoogleCloudClient(project_id=config.project_id, settings=settings, transport=transport)
    bucket = config.gcs.bucket_name

    orchestrator = JobOrchestrator(
        config=config,
        debounce_store=DebounceStore(
            storage=gcp.storage,
            bucket_name=bucket,
            min_time_between_triggers_ms=config.min_time_between_triggers,
        ),
        fetcher=ReportFetcher(
            PageSpeedClient(
                api_key=config.auth,
                timeout_s=settings.PAGESPEED_TIMEOUT_S,
                transport=transport,
            )
        ),
        writer=ReportWriter(
            storage=gcp.storage,
            bucket_name=bucket,
            output_formats=config.output_format,
        ),
        publisher=FanOutPublisher(publisher=gcp.pubsub, topic_id=config.pubsub_topic_id),
        loader=gcp.bigquery,
        schema_fields=load_reports_schema(),
        scratch_dir=settings.SCRATCH_DIR,
    )
    logger.info(
        "Built orchestrator: project=%s, dataset=%s, bucket=%s, sources=%s",
        config.project_id,
        config.dataset_id,
        bucket,
        len(config.source),
    )
    return orchestrator
