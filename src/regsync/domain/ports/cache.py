"""Port for the keyed, age-gated cache store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import timedelta


@runtime_checkable
class CacheStore(Protocol):
    def put(self, key: str, value: object) -> None: ...

    def try_get(self, key: str, max_age: timedelta) -> object | None:
        """Return the stored value, or ``None`` when missing or older than ``max_age``."""
        ...
