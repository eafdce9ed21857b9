from __future__ import annotations

from typing import Callable, Dict

from psi_pipeline.core.job_config_models import OutputFormat
from psi_pipeline.services.gcp.storage import ObjectStorageLike
from psi_pipeline.services.outputs.base import BaseOutputHandler
from psi_pipeline.services.outputs.json_report import JsonReportOutputHandler


OutputFactory = Callable[[ObjectStorageLike, str], BaseOutputHandler]


class UnsupportedOutputFormatError(ValueError):
    """
    配置里允许、但还没有实现 handler 的输出格式（csv / html）。
    """


def _make_json_output(storage: ObjectStorageLike, bucket_name: str) -> BaseOutputHandler:
    return JsonReportOutputHandler(storage=storage, bucket_name=bucket_name)


OUTPUT_REGISTRY: Dict[OutputFormat, OutputFactory] = {
    OutputFormat.JSON: _make_json_output,
}


def get_output_factory(output_format: OutputFormat) -> OutputFactory:
    try:
        return OUTPUT_REGISTRY[output_format]
    except KeyError as exc:  # noqa: B904
        raise UnsupportedOutputFormatError(
            f"Unsupported output format: {output_format.value}"
        ) from exc
