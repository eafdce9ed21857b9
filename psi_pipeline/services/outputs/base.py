from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal, Optional

from psi_pipeline.core.job_config_models import OutputFormat
from psi_pipeline.services.pagespeed.fetcher import Report

OutputStatus = Literal["written", "unsupported"]


def report_object_path(source_id: str, report: Report, kind: str) -> str:
    """
    `{sourceId}/{formFactor}/{kind}_{analysisTimestamp}.json`
    """
    return (
        f"{source_id}/{report.get('emulatedFormFactor')}/"
        f"{kind}_{report.get('analysisUTCTimestamp')}.json"
    )


@dataclass
class OutputResult:
    """
    单个输出格式的落地结果。
    """

    output_format: Optional[OutputFormat]
    status: OutputStatus
    path: Optional[str] = None


class BaseOutputHandler(ABC):
    """
    报告输出策略抽象：一个 OutputFormat 对应一个实现。

    - 输入：report + source id
    - 输出：OutputResult（写入的对象路径）
    """

    output_format: OutputFormat

    @abstractmethod
    async def handle(self, *, report: Report, source_id: str) -> OutputResult:
        raise NotImplementedError
