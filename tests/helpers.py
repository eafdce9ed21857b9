from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Tuple

from psi_pipeline.core.job_config_models import JobConfig

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def load_fixture(name: str) -> Dict[str, Any]:
    return json.loads((FIXTURES / name).read_text(encoding="utf-8"))


def raw_test_config() -> Dict[str, Any]:
    return copy.deepcopy(load_fixture("config.test.json"))


def make_job_config(**overrides: Any) -> JobConfig:
    raw = raw_test_config()
    raw.update(overrides)
    return JobConfig.model_validate(raw)


class InMemoryStorage:
    """
    GCS 的内存替身：记录每次 upload，download 不存在时抛 KeyError。
    """

    def __init__(self, objects: Dict[Tuple[str, str], bytes] | None = None) -> None:
        self.objects: Dict[Tuple[str, str], bytes] = dict(objects or {})
        self.uploads: List[Tuple[str, str, bytes, str]] = []

    async def upload_bytes(
        self, bucket: str, name: str, data: bytes, *, content_type: str = "application/json"
    ) -> None:
        self.uploads.append((bucket, name, data, content_type))
        self.objects[(bucket, name)] = data

    async def download_bytes(self, bucket: str, name: str) -> bytes:
        return self.objects[(bucket, name)]
