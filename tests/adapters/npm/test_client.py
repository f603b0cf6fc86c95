from __future__ import annotations

import asyncio
import json
from collections.abc import Callable  # noqa: TC003

import httpx
import pytest

from regsync.adapters.npm import ManifestPayload, NpmRegistryClient, RegistryAPIError, manifest_url
from regsync.domain.errors import ArchiveFetchError
from regsync.domain.model import RegistryCredential
from regsync.domain.versions import SemanticVersion
from tests.helpers.http import make_client_factory, offline_resilience

REGISTRY_URL = "https://registry.example.com/"


def _manifest_payload() -> dict[str, object]:
    return {
        "_id": "com.example.tool",
        "_rev": "3-abc",
        "name": "com.example.tool",
        "dist-tags": {"latest": "1.1.0"},
        "versions": {
            "1.0.0": {
                "name": "com.example.tool",
                "version": "1.0.0",
                "dist": {"tarball": "https://registry.example.com/t/-/t-1.0.0.tgz"},
            },
            "1.1.0": {
                "name": "com.example.tool",
                "version": "1.1.0",
                "dependencies": {"com.example.core": "2.0.0"},
                "dist": {
                    "tarball": "https://registry.example.com/t/-/t-1.1.0.tgz",
                    "shasum": "abc123",
                },
            },
        },
    }


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> NpmRegistryClient:
    return NpmRegistryClient(
        resilience=offline_resilience(),
        client_factory=make_client_factory(handler),
    )


def test_manifest_url_joins_registry_and_package_id() -> None:
    assert manifest_url(REGISTRY_URL, "com.example.tool") == (
        "https://registry.example.com/com.example.tool"
    )
    assert manifest_url(REGISTRY_URL, "@scope/tool") == "https://registry.example.com/@scope%2Ftool"


def test_fetch_manifest_translates_payload_and_sends_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_manifest_payload())

    client = _client(handler)
    credential = RegistryCredential(token="secret", always_auth=True)

    async def run() -> None:
        async with client:
            manifest = await client.fetch_manifest(REGISTRY_URL, credential, "com.example.tool")
        record = manifest.resolve()
        assert manifest.id == "com.example.tool"
        assert manifest.revision == "3-abc"
        assert record.version == SemanticVersion.parse("1.1.0")
        assert record.shasum == "abc123"
        assert dict(record.dependencies) == {"com.example.core": "2.0.0"}

    asyncio.run(run())

    assert str(seen[0].url) == "https://registry.example.com/com.example.tool"
    assert seen[0].headers["Authorization"] == "Bearer secret"


def test_fetch_manifest_without_token_sends_no_auth_header() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_manifest_payload())

    asyncio.run(_client(handler).fetch_manifest(REGISTRY_URL, None, "com.example.tool"))

    assert "Authorization" not in seen[0].headers


def test_fetch_manifest_reports_registry_error_reason() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "not_found", "reason": "document not found"})

    client = _client(handler)

    with pytest.raises(RegistryAPIError, match="document not found") as excinfo:
        asyncio.run(client.fetch_manifest(REGISTRY_URL, None, "com.example.missing"))

    assert excinfo.value.status_code == 404


def test_fetch_manifest_rejects_invalid_version_keys() -> None:
    payload = _manifest_payload()
    versions = payload["versions"]
    assert isinstance(versions, dict)
    versions["banana"] = versions["1.0.0"]

    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps(payload).encode())

    with pytest.raises(RegistryAPIError, match="Invalid manifest"):
        asyncio.run(_client(handler).fetch_manifest(REGISTRY_URL, None, "com.example.tool"))


def test_fetch_archive_returns_bytes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith(".tgz")
        return httpx.Response(200, content=b"tarball-bytes")

    data = asyncio.run(
        _client(handler).fetch_archive_bytes("https://registry.example.com/t/-/t-1.0.0.tgz")
    )

    assert data == b"tarball-bytes"


def test_fetch_archive_raises_on_error_status() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    with pytest.raises(ArchiveFetchError, match="500"):
        asyncio.run(_client(handler).fetch_archive("https://registry.example.com/t.tgz"))


def test_fetch_archive_wraps_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ArchiveFetchError, match="refused"):
        asyncio.run(_client(handler).fetch_archive("https://registry.example.com/t.tgz"))


def test_search_pages_until_results_are_exhausted() -> None:
    offsets: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        offset = request.url.params["from"]
        offsets.append(offset)
        assert request.url.path == "/-/v1/search"
        assert request.url.params["text"] == "com.example"
        start = int(offset)
        count = min(250, 300 - start)
        objects = [{"package": {"name": f"com.example.p{start + i}"}} for i in range(count)]
        return httpx.Response(200, json={"objects": objects, "total": 300})

    names = asyncio.run(_client(handler).search(REGISTRY_URL, None, "com.example"))

    assert offsets == ["0", "250"]
    assert len(names) == 300
    assert names[0] == "com.example.p0"


def test_manifest_payload_ignores_presentation_fields() -> None:
    payload = _manifest_payload()
    payload["description"] = "A tool"
    payload["readme"] = "# Tool"
    versions = payload["versions"]
    assert isinstance(versions, dict)
    versions["1.0.0"]["dist"].update({"fileCount": 3, "unpackedSize": 1024})

    model = ManifestPayload.model_validate(payload)

    assert set(ManifestPayload.model_fields) == {"id", "rev", "name", "dist_tags", "versions"}
    assert model.versions["1.0.0"].dist.model_dump() == {
        "tarball": "https://registry.example.com/t/-/t-1.0.0.tgz",
        "shasum": None,
        "integrity": None,
    }
