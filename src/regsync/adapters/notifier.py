"""Signals telling the host application to re-read its package state."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from regsync.adapters.http_resilience import CacheConfig, ResilienceConfig, ResilientClient

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class HttpHostNotifier:
    """POSTs a refresh event to ``url`` after each pass."""

    def __init__(
        self,
        url: str,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._url = url
        self._client_factory = client_factory or _default_client_factory
        self._config = ResilienceConfig(
            name="host-notifier",
            timeout_seconds=5.0,
            cache=CacheConfig(enabled=False),
        )

    async def notify_refresh(self) -> None:
        async with self._client_factory(self._config) as client:
            response = await client.post(self._url, json={"event": "refresh"})
        if response.status_code >= httpx.codes.BAD_REQUEST:
            raise httpx.HTTPStatusError(
                f"Host refresh returned status code {response.status_code}",
                request=response.request,
                response=response,
            )
        log.debug("Notified host at %s", self._url)


class LoggingHostNotifier:
    """Used when no host endpoint is configured."""

    async def notify_refresh(self) -> None:
        log.info("Package state refreshed")
