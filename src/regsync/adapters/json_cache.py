"""Key/value cache persisted to a single JSON file."""

from __future__ import annotations

import asyncio
import os
from collections import deque
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, JsonValue, ValidationError

from regsync.common.storage import get_cache_path

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import timedelta
    from pathlib import Path

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CacheEntry(BaseModel):
    key: str
    value: JsonValue
    timestamp: datetime


class CacheFile(BaseModel):
    entries: list[CacheEntry] = Field(default_factory=list[CacheEntry])


class JsonFileCacheStore:
    """Age-gated key/value store backed by ``key_value_pairs.json``.

    Reads are served from memory. Every :meth:`put` queues a snapshot of the
    whole store and :meth:`clear` queues a removal; a single writer task
    drains the queue in FIFO order, so the file always ends up in the state
    of the newest call. Without a running event loop the queue is written
    out immediately.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._path = path or get_cache_path()
        self._clock = clock
        self._entries: dict[str, CacheEntry] = self._load()
        # None marks a removal of the file.
        self._pending: deque[str | None] = deque()
        self._writer: asyncio.Task[None] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def put(self, key: str, value: object) -> None:
        entry = CacheEntry.model_validate({"key": key, "value": value, "timestamp": self._clock()})
        self._entries[key] = entry
        self._pending.append(self._serialize())
        self._schedule_write()

    def try_get(self, key: str, max_age: timedelta) -> object | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        age = self._clock() - entry.timestamp
        if age > max_age:
            log.debug("Cache entry %s expired (age %s)", key, age)
            return None
        return entry.value

    def clear(self) -> None:
        """Drop every entry; the file is removed once earlier writes have finished."""

        self._entries.clear()
        self._pending.clear()
        self._pending.append(None)
        self._schedule_write()

    async def flush(self) -> None:
        """Wait until every queued snapshot has been written."""

        while self._writer is not None and not self._writer.done():
            await self._writer
        if self._pending:
            await self._drain()

    def _load(self) -> dict[str, CacheEntry]:
        if not self._path.is_file():
            return {}
        try:
            document = CacheFile.model_validate_json(self._path.read_bytes())
        except (OSError, ValidationError) as exc:
            log.warning("Ignoring unreadable cache file %s: %s", self._path, exc)
            return {}
        return {entry.key: entry for entry in document.entries}

    def _serialize(self) -> str:
        return CacheFile(entries=list(self._entries.values())).model_dump_json()

    def _schedule_write(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            while self._pending:
                self._write(self._pending.popleft())
            return
        if self._writer is None or self._writer.done():
            self._writer = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._pending:
            payload = self._pending.popleft()
            await asyncio.to_thread(self._write, payload)

    def _write(self, payload: str | None) -> None:
        if payload is None:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as exc:
                log.error("Failed to clear cache file %s: %s", self._path, exc)
            return
        temporary = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            temporary.write_text(payload, encoding="utf-8")
            os.replace(temporary, self._path)
        except OSError as exc:
            log.error("Failed to write cache file %s: %s", self._path, exc)
