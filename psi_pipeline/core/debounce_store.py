"""
Debounce 状态存储

每个 (source, strategy) 一个 GCS 对象 `{id}/{strategy}/state.json`，内容形如
`{"<id>": {"created": <epoch ms>}}`。

读-改-写之间没有锁：两个几乎同时到达的触发可能都读到旧状态并都继续执行，
这是已知且接受的竞争。
"""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional

from psi_pipeline.services.gcp.storage import ObjectStorageLike

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventStateRecord:
    source_id: str
    created_at_ms: int

    def to_json(self) -> Dict[str, int]:
        return {"created": self.created_at_ms}


@dataclass(frozen=True)
class DebounceResult:
    active: bool
    delta_seconds: Optional[int] = None


EventState = Dict[str, EventStateRecord]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class DebounceStore:
    def __init__(
        self,
        *,
        storage: ObjectStorageLike,
        bucket_name: str,
        min_time_between_triggers_ms: int,
    ) -> None:
        self._storage = storage
        self._bucket = bucket_name
        self._min_time_ms = min_time_between_triggers_ms

    @staticmethod
    def state_path(source_id: str, strategy: str) -> str:
        return f"{source_id}/{strategy}/state.json"

    async def load_state(self, source_id: str, strategy: str) -> EventState:
        """
        读取状态；任何读取失败（含不存在、内容损坏）都按空状态处理。
        """
        path = self.state_path(source_id, strategy)
        try:
            raw = json.loads(await self._storage.download_bytes(self._bucket, path))
        except Exception as exc:  # noqa: BLE001
            logger.info("%s: No usable event state at %s, starting fresh (%s)", source_id, path, exc)
            return {}

        if not isinstance(raw, dict):
            logger.info("%s: Event state at %s is not an object, starting fresh", source_id, path)
            return {}

        state: EventState = {}
        for key, value in raw.items():
            created = value.get("created") if isinstance(value, dict) else None
            if isinstance(created, (int, float)) and not isinstance(created, bool):
                state[key] = EventStateRecord(source_id=key, created_at_ms=int(created))
            else:
                logger.debug(
                    "%s: Dropping malformed event state entry %r at %s: %r", source_id, key, path, value
                )
        return state

    async def save_state(self, source_id: str, strategy: str, state: EventState) -> None:
        """
        整体写回状态；写入失败直接抛出。
        """
        payload = {key: record.to_json() for key, record in state.items()}
        await self._storage.upload_bytes(
            self._bucket,
            self.state_path(source_id, strategy),
            json.dumps(payload, indent=1).encode("utf-8"),
            content_type="application/json",
        )

    async def check_and_record(self, source_id: str, strategy: str, now_ms: int) -> DebounceResult:
        state = await self.load_state(source_id, strategy)

        record = state.get(source_id)
        delta = now_ms - record.created_at_ms if record is not None else None
        if delta is not None and delta < self._min_time_ms:
            return DebounceResult(active=True, delta_seconds=round_half_up(delta / 1000))

        state[source_id] = EventStateRecord(source_id=source_id, created_at_ms=now_ms)
        await self.save_state(source_id, strategy, state)
        return DebounceResult(active=False)
