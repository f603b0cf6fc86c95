from __future__ import annotations

import asyncio

import httpx
import pytest

from regsync.adapters.http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    ResilientClient,
    _build_cache_storage,  # pyright: ignore[reportPrivateUsage]
)
from tests.helpers.http import make_client_factory


def test_disabled_cache_builds_no_storage() -> None:
    assert _build_cache_storage(None) is None
    assert _build_cache_storage(CacheConfig(enabled=False)) is None


def test_unknown_cache_backend_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unsupported cache backend"):
        _build_cache_storage(CacheConfig(backend="redis"))  # type: ignore[arg-type]


def test_rate_limited_client_sends_every_request() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(200, json={"ok": True})

    config = ResilienceConfig(
        name="test",
        ratelimit=RateLimit(max_calls=2, per_seconds=0.05),
        cache=CacheConfig(enabled=False),
    )
    client: ResilientClient = make_client_factory(handler)(config)

    async def run() -> list[int]:
        async with client:
            responses = await asyncio.gather(
                *(client.get(f"https://example.com/{index}") for index in range(4))
            )
        return [response.status_code for response in responses]

    assert asyncio.run(run()) == [200, 200, 200, 200]
    assert sorted(calls) == ["/0", "/1", "/2", "/3"]
