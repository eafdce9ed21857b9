"""
PageSpeed Insights 审计任务编排

一条触发消息对应一次 run()：`all` 扇出到每个 source，单个 source 则走完整的审计与入库流程。
"""
from __future__ import annotations

import base64
import logging
import re
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from psi_pipeline.core.debounce_store import DebounceResult, round_half_up
from psi_pipeline.core.job_config_models import JobConfig
from psi_pipeline.services.outputs.base import OutputResult
from psi_pipeline.services.pagespeed.fetcher import Report
from psi_pipeline.services.utils.ndjson import to_ndjson

logger = logging.getLogger(__name__)

ALL_SOURCES_MESSAGE = "all"
REPORTS_TABLE_ID = "reports"

_NON_BASE64 = re.compile(r"[^A-Za-z0-9+/]")


class JobStage(str, Enum):
    RECEIVED = "received"
    RESOLVED = "resolved"
    DEBOUNCE_CHECKED = "debounce_checked"
    FETCHED = "fetched"
    STORED = "stored"
    LOADED = "loaded"


class JobOutcome(str, Enum):
    INVALID_MESSAGE = "invalid_message"
    FAN_OUT = "fan_out"
    DEBOUNCED = "debounced"
    LOADED = "loaded"
    ERRORED = "errored"


@dataclass
class JobResult:
    outcome: JobOutcome
    stage: JobStage
    source_id: Optional[str] = None
    job_id: Optional[str] = None
    delta_seconds: Optional[int] = None


class DebounceStoreLike(Protocol):
    async def check_and_record(self, source_id: str, strategy: str, now_ms: int) -> DebounceResult: ...


class ReportFetcherLike(Protocol):
    async def fetch(
        self, source_id: str, url: str, strategy: str, categories: Optional[Sequence[str]] = None
    ) -> Report: ...


class ReportWriterLike(Protocol):
    async def persist(self, report: Report, source_id: str) -> List[OutputResult]: ...


class FanOutPublisherLike(Protocol):
    async def broadcast(self, source_ids: Sequence[str]) -> None: ...


class WarehouseLoaderLike(Protocol):
    async def load_ndjson(
        self,
        *,
        dataset_id: str,
        table_id: str,
        source_path: Path,
        job_id: str,
        schema_fields: List[Dict[str, Any]],
    ) -> Dict[str, Any]: ...


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def _new_job_id() -> str:
    return uuid.uuid4().hex


def decode_trigger(payload: str) -> str:
    """
    触发消息是 base64 编码的 UTF-8 文本：`all` 或某个 source id。

    解码宽松且不抛异常：接受 url-safe 字母表和缺失的 padding，忽略非法字符，
    非法 UTF-8 字节替换为 U+FFFD。解出的垃圾文本由调用方按无效消息处理。
    """
    data = payload.split("=", 1)[0].replace("-", "+").replace("_", "/")
    data = _NON_BASE64.sub("", data)
    # 余 1 个字符无法构成完整字节
    if len(data) % 4 == 1:
        data = data[:-1]
    data += "=" * (-len(data) % 4)
    return base64.b64decode(data).decode("utf-8", errors="replace")


class JobOrchestrator:
    """
    单次触发的完整流程：解码 -> 解析 source -> debounce -> PSI -> GCS -> BigQuery。

    任何异常都在 run() 内记录并吞掉，不会抛给调用方（重投由上游负责）。
    """

    def __init__(
        self,
        *,
        config: JobConfig,
        debounce_store: DebounceStoreLike,
        fetcher: ReportFetcherLike,
        writer: ReportWriterLike,
        publisher: FanOutPublisherLike,
        loader: WarehouseLoaderLike,
        schema_fields: List[Dict[str, Any]],
        scratch_dir: str,
        clock: Callable[[], int] = _epoch_millis,
        job_id_factory: Callable[[], str] = _new_job_id,
    ) -> None:
        self._config = config
        self._debounce = debounce_store
        self._fetcher = fetcher
        self._writer = writer
        self._publisher = publisher
        self._loader = loader
        self._schema_fields = schema_fields
        self._scratch_dir = Path(scratch_dir)
        self._clock = clock
        self._new_job_id = job_id_factory

    async def run(self, payload: str) -> JobResult:
        result = JobResult(outcome=JobOutcome.ERRORED, stage=JobStage.RECEIVED)
        try:
            return await self._run(payload, result)
        except Exception:  # noqa: BLE001
            logger.exception(
                "Pagespeed Insights job failed at stage=%s source=%s",
                result.stage.value,
                result.source_id,
            )
            result.outcome = JobOutcome.ERRORED
            return result

    async def _run(self, payload: str, result: JobResult) -> JobResult:
        msg = decode_trigger(payload)
        if msg == ALL_SOURCES_MESSAGE:
            await self._publisher.broadcast(self._config.source_ids)
            result.outcome = JobOutcome.FAN_OUT
            return result

        src = self._config.get_source(msg)
        if src is None:
            logger.error("No valid message found!")
            result.outcome = JobOutcome.INVALID_MESSAGE
            return result

        source_id, url, strategy = src.id, src.url, src.strategy.value
        result.source_id = source_id
        result.stage = JobStage.RESOLVED
        logger.info("%s: Received message to start with URL %s on %s", source_id, url, strategy)

        event_state = await self._debounce.check_and_record(source_id, strategy, self._clock())
        result.stage = JobStage.DEBOUNCE_CHECKED
        if event_state.active:
            logger.info(
                "%s: Found active event on %s (%ss < %ss), aborting...",
                source_id,
                strategy,
                event_state.delta_seconds,
                round_half_up(self._config.min_time_between_triggers / 1000),
            )
            result.outcome = JobOutcome.DEBOUNCED
            result.delta_seconds = event_state.delta_seconds
            return result

        report = await self._fetcher.fetch(source_id, url, strategy, src.category)
        result.stage = JobStage.FETCHED

        await self._writer.persist(report, source_id)
        result.stage = JobStage.STORED

        job_id = self._new_job_id()
        result.job_id = job_id
        report["job_id"] = job_id

        scratch_path = self._scratch_dir / f"{job_id}.json"
        scratch_path.write_text(to_ndjson(report), encoding="utf-8")
        try:
            logger.info("%s: BigQuery job with ID %s starting for %s on %s", source_id, job_id, url, strategy)
            await self._loader.load_ndjson(
                dataset_id=self._config.dataset_id,
                table_id=REPORTS_TABLE_ID,
                source_path=scratch_path,
                job_id=job_id,
                schema_fields=self._schema_fields,
            )
        finally:
            scratch_path.unlink(missing_ok=True)

        result.stage = JobStage.LOADED
        result.outcome = JobOutcome.LOADED
        return result
