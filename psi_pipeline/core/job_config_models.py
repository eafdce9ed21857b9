from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Strategy(str, Enum):
    """
    PSI 模拟的设备类型（form factor）。
    """

    MOBILE = "mobile"
    DESKTOP = "desktop"


class OutputFormat(str, Enum):
    """
    配置允许的报告输出格式；是否真正落地取决于 outputs 注册表。
    """

    JSON = "json"
    CSV = "csv"
    HTML = "html"


class SourceConfig(BaseModel):
    """
    单个被审计的页面。
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="source 唯一标识，也是 Pub/Sub 消息内容")
    url: str = Field(..., min_length=1)
    strategy: Strategy
    category: List[str] = Field(default_factory=list, description="Lighthouse 审计类别")


class GcsConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    bucket_name: str = Field(..., alias="bucketName", min_length=1)


class JobConfig(BaseModel):
    """
    从 config.json 解析出的整体业务配置。
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: List[SourceConfig]
    project_id: str = Field(..., alias="projectId", min_length=1)
    dataset_id: str = Field(..., alias="datasetId", min_length=1)
    pubsub_topic_id: str = Field(..., alias="pubsubTopicId", min_length=1)
    min_time_between_triggers: int = Field(
        ..., alias="minTimeBetweenTriggers", ge=0, description="毫秒"
    )
    output_format: List[OutputFormat] = Field(..., alias="outputFormat")
    gcs: GcsConfig
    auth: Optional[str] = Field(default=None, description="PSI API key")

    @field_validator("source")
    @classmethod
    def _unique_source_ids(cls, value: List[SourceConfig]) -> List[SourceConfig]:
        seen: set[str] = set()
        for src in value:
            if src.id in seen:
                raise ValueError(f"duplicate source id: {src.id}")
            seen.add(src.id)
        return value

    @property
    def source_ids(self) -> List[str]:
        return [src.id for src in self.source]

    def get_source(self, source_id: str) -> Optional[SourceConfig]:
        for src in self.source:
            if src.id == source_id:
                return src
        return None
