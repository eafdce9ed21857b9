from __future__ import annotations

import json
import unittest
from unittest.mock import AsyncMock

from psi_pipeline.core.debounce_store import DebounceResult, DebounceStore
from tests.helpers import InMemoryStorage

BUCKET = "pagespeedinsights-reports"
MIN_TIME_MS = 300000
NOW_MS = 1_545_044_216_420


def _state_blob(**created: int) -> bytes:
    return json.dumps({key: {"created": value} for key, value in created.items()}).encode()


class TestDebounceStore(unittest.IsolatedAsyncioTestCase):
    def _store(self, storage) -> DebounceStore:
        return DebounceStore(
            storage=storage, bucket_name=BUCKET, min_time_between_triggers_ms=MIN_TIME_MS
        )

    async def test_active_when_triggered_within_window(self) -> None:
        storage = InMemoryStorage(
            {(BUCKET, "googlesearch/mobile/state.json"): _state_blob(googlesearch=NOW_MS - 10000)}
        )

        result = await self._store(storage).check_and_record("googlesearch", "mobile", NOW_MS)

        self.assertEqual(result, DebounceResult(active=True, delta_seconds=10))
        self.assertEqual(storage.uploads, [])

    async def test_inactive_when_window_elapsed_rewrites_timestamp(self) -> None:
        storage = InMemoryStorage(
            {(BUCKET, "googlesearch/mobile/state.json"): _state_blob(googlesearch=NOW_MS - MIN_TIME_MS)}
        )

        result = await self._store(storage).check_and_record("googlesearch", "mobile", NOW_MS)

        self.assertEqual(result, DebounceResult(active=False))
        self.assertEqual(len(storage.uploads), 1)
        bucket, name, data, content_type = storage.uploads[0]
        self.assertEqual((bucket, name, content_type), (BUCKET, "googlesearch/mobile/state.json", "application/json"))
        self.assertEqual(json.loads(data), {"googlesearch": {"created": NOW_MS}})

    async def test_missing_state_is_cold_start(self) -> None:
        storage = InMemoryStorage()

        result = await self._store(storage).check_and_record("ebay", "desktop", NOW_MS)

        self.assertFalse(result.active)
        self.assertIsNone(result.delta_seconds)
        self.assertEqual(storage.uploads[0][1], "ebay/desktop/state.json")

    async def test_corrupt_state_is_cold_start(self) -> None:
        storage = InMemoryStorage({(BUCKET, "ebay/desktop/state.json"): b"{not json"})

        result = await self._store(storage).check_and_record("ebay", "desktop", NOW_MS)

        self.assertFalse(result.active)
        self.assertEqual(json.loads(storage.uploads[0][2]), {"ebay": {"created": NOW_MS}})

    async def test_back_to_back_calls_debounce_second(self) -> None:
        store = self._store(InMemoryStorage())

        first = await store.check_and_record("googlesearch", "mobile", NOW_MS)
        second = await store.check_and_record("googlesearch", "mobile", NOW_MS)

        self.assertFalse(first.active)
        self.assertEqual(second, DebounceResult(active=True, delta_seconds=0))

    async def test_other_entries_preserved_on_write(self) -> None:
        storage = InMemoryStorage(
            {(BUCKET, "googlesearch/mobile/state.json"): _state_blob(legacy=123)}
        )

        await self._store(storage).check_and_record("googlesearch", "mobile", NOW_MS)

        self.assertEqual(
            json.loads(storage.uploads[0][2]),
            {"legacy": {"created": 123}, "googlesearch": {"created": NOW_MS}},
        )

    async def test_malformed_entries_are_dropped_with_debug_log(self) -> None:
        blob = json.dumps({"legacy": {"created": 123}, "broken": "yesterday", "flag": {"created": True}})
        storage = InMemoryStorage({(BUCKET, "googlesearch/mobile/state.json"): blob.encode()})

        with self.assertLogs("psi_pipeline.core.debounce_store", level="DEBUG") as logs:
            await self._store(storage).check_and_record("googlesearch", "mobile", NOW_MS)

        dropped = [r for r in logs.records if "Dropping malformed" in r.getMessage()]
        self.assertEqual([r.levelname for r in dropped], ["DEBUG", "DEBUG"])
        self.assertIn("'broken'", dropped[0].getMessage())
        self.assertEqual(
            json.loads(storage.uploads[0][2]),
            {"legacy": {"created": 123}, "googlesearch": {"created": NOW_MS}},
        )

    async def test_delta_seconds_rounds_half_up(self) -> None:
        storage = InMemoryStorage(
            {(BUCKET, "googlesearch/mobile/state.json"): _state_blob(googlesearch=NOW_MS - 2500)}
        )

        result = await self._store(storage).check_and_record("googlesearch", "mobile", NOW_MS)

        self.assertEqual(result.delta_seconds, 3)

    async def test_write_failure_propagates(self) -> None:
        storage = InMemoryStorage()
        storage.upload_bytes = AsyncMock(side_effect=RuntimeError("bucket unavailable"))

        with self.assertRaises(RuntimeError):
            await self._store(storage).check_and_record("googlesearch", "mobile", NOW_MS)

    async def test_read_failure_is_swallowed(self) -> None:
        storage = InMemoryStorage()
        storage.download_bytes = AsyncMock(side_effect=ConnectionError("reset"))

        state = await self._store(storage).load_state("googlesearch", "mobile")

        self.assertEqual(state, {})


if __name__ == "__main__":
    unittest.main()
