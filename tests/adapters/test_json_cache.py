from __future__ import annotations

import asyncio
import json
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path  # noqa: TC003

import pytest

from regsync.adapters.json_cache import JsonFileCacheStore


class Clock:
    def __init__(self) -> None:
        self.now = datetime(2025, 3, 1, 12, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


def test_put_without_event_loop_writes_immediately(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    store = JsonFileCacheStore(path)

    store.put("key", {"value": [1, 2]})

    document = json.loads(path.read_text())
    assert document["entries"][0]["key"] == "key"
    assert document["entries"][0]["value"] == {"value": [1, 2]}


def test_values_survive_reload(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    JsonFileCacheStore(path).put("key", "value")

    reloaded = JsonFileCacheStore(path)

    assert reloaded.try_get("key", timedelta(hours=1)) == "value"


def test_try_get_respects_max_age(tmp_path: Path) -> None:
    clock = Clock()
    store = JsonFileCacheStore(tmp_path / "cache.json", clock=clock)
    store.put("key", "value")

    clock.now += timedelta(minutes=59)
    assert store.try_get("key", timedelta(hours=1)) == "value"
    clock.now += timedelta(minutes=2)
    assert store.try_get("key", timedelta(hours=1)) is None
    assert store.try_get("key", timedelta.max) == "value"
    assert store.try_get("missing", timedelta.max) is None


def test_corrupt_file_is_treated_as_empty(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    path.write_text("{not json")

    store = JsonFileCacheStore(path)

    assert store.try_get("key", timedelta.max) is None
    store.put("key", 1)
    assert json.loads(path.read_text())["entries"][0]["value"] == 1


def test_queued_writes_land_in_order(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    store = JsonFileCacheStore(path)

    async def run() -> None:
        for index in range(5):
            store.put("counter", index)
        store.put("other", "x")
        await store.flush()

    asyncio.run(run())

    reloaded = JsonFileCacheStore(path)
    assert reloaded.try_get("counter", timedelta.max) == 4
    assert reloaded.try_get("other", timedelta.max) == "x"


def test_clear_removes_file_and_entries(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    store = JsonFileCacheStore(path)
    store.put("key", "value")

    store.clear()

    assert not path.exists()
    assert store.try_get("key", timedelta.max) is None


def test_clear_waits_for_in_flight_write(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "cache.json"
    store = JsonFileCacheStore(path)
    release = threading.Event()
    write = store._write  # noqa: SLF001  # type: ignore[reportPrivateUsage]

    def slow_write(payload: str | None) -> None:
        release.wait(timeout=5)
        write(payload)

    monkeypatch.setattr(store, "_write", slow_write)

    async def run() -> None:
        store.put("stale", "value")
        await asyncio.sleep(0)
        store.clear()
        release.set()
        await store.flush()

    asyncio.run(run())

    assert not path.exists()
    assert store.try_get("stale", timedelta.max) is None


def test_put_after_clear_keeps_only_new_entries(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    store = JsonFileCacheStore(path)
    store.put("old", 1)

    async def run() -> None:
        store.clear()
        store.put("new", 2)
        await store.flush()

    asyncio.run(run())

    document = json.loads(path.read_text())
    assert [entry["key"] for entry in document["entries"]] == ["new"]
