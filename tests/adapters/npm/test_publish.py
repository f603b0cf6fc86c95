from __future__ import annotations

import asyncio
import base64
import hashlib
import json
from collections.abc import Callable  # noqa: TC003
from pathlib import Path  # noqa: TC003

import httpx
import pytest

from regsync.adapters.npm import (
    NpmRegistryClient,
    RegistryAPIError,
    build_unpublication,
    find_readme,
)
from regsync.config import ConfigurationError
from regsync.domain.errors import ManifestResolutionError
from regsync.domain.model import RegistryCredential
from regsync.domain.versions import SemanticVersion
from tests.helpers.archives import build_package
from tests.helpers.http import make_client_factory, offline_resilience

REGISTRY_URL = "https://registry.example.com/"
TOKEN = RegistryCredential(token="secret")
TARBALL_BASE = "https://registry.example.com/com.example.tool/-/com.example.tool"


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> NpmRegistryClient:
    return NpmRegistryClient(
        resilience=offline_resilience(),
        client_factory=make_client_factory(handler),
    )


def _published_manifest(*versions: str, latest: str) -> dict[str, object]:
    return {
        "_id": "com.example.tool",
        "_rev": "7-cafe",
        "name": "com.example.tool",
        "description": "A tool",
        "dist-tags": {"latest": latest, "beta": "1.1.0"},
        "time": {version: "2026-01-01T00:00:00.000Z" for version in versions},
        "versions": {
            version: {
                "name": "com.example.tool",
                "version": version,
                "dist": {"tarball": f"{TARBALL_BASE}-{version}.tgz"},
            }
            for version in versions
        },
    }


def test_publish_puts_document_with_attached_tarball() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"ok": True})

    archive = build_package(name="com.example.tool", version="1.2.0")
    package_json = {"name": "com.example.tool", "version": "1.2.0", "description": "A tool"}

    async def run() -> str:
        async with _client(handler) as client:
            return await client.publish(
                REGISTRY_URL, TOKEN, package_json, archive, readme=("README.md", "# Tool")
            )

    assert asyncio.run(run()) == "com.example.tool@1.2.0"

    request = seen[0]
    assert request.method == "PUT"
    assert str(request.url) == "https://registry.example.com/com.example.tool"
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["Content-Type"] == "application/json"
    body = json.loads(request.content)
    assert body["_id"] == "com.example.tool"
    assert body["dist-tags"] == {"latest": "1.2.0"}
    assert body["description"] == "A tool"
    assert body["readme"] == "# Tool"
    version = body["versions"]["1.2.0"]
    assert version["_id"] == "com.example.tool@1.2.0"
    assert version["readmeFilename"] == "README.md"
    assert version["dist"] == {
        "tarball": "https://registry.example.com/com.example.tool/-/com.example.tool-1.2.0.tgz",
        "shasum": hashlib.sha1(archive).hexdigest(),  # noqa: S324
        "integrity": "sha512-" + base64.b64encode(hashlib.sha512(archive).digest()).decode(),
    }
    attachment = body["_attachments"]["com.example.tool-1.2.0.tgz"]
    assert attachment["content_type"] == "application/octet-stream"
    assert attachment["length"] == len(archive)
    assert base64.b64decode(attachment["data"]) == archive


def test_publish_requires_a_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError(f"unexpected request {request.url}")

    async def run() -> None:
        async with _client(handler) as client:
            await client.publish(
                REGISTRY_URL,
                RegistryCredential(),
                {"name": "com.example.tool", "version": "1.0.0"},
                b"archive",
            )

    with pytest.raises(ConfigurationError, match="token is required to publish"):
        asyncio.run(run())


def test_publish_rejection_raises_with_status() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text="cannot modify pre-existing version")

    async def run() -> None:
        async with _client(handler) as client:
            await client.publish(
                REGISTRY_URL, TOKEN, {"name": "com.example.tool", "version": "1.0.0"}, b"archive"
            )

    with pytest.raises(RegistryAPIError) as excinfo:
        asyncio.run(run())

    assert excinfo.value.status_code == 403
    assert "pre-existing version" in str(excinfo.value)


def test_unpublish_only_version_deletes_package() -> None:
    seen: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        if request.method == "GET":
            return httpx.Response(200, json=_published_manifest("1.0.0", latest="1.0.0"))
        return httpx.Response(200, json={"ok": True})

    async def run() -> None:
        async with _client(handler) as client:
            await client.unpublish(
                REGISTRY_URL, TOKEN, "com.example.tool", SemanticVersion.parse("1.0.0")
            )

    asyncio.run(run())

    assert seen == [
        ("GET", "/com.example.tool"),
        ("DELETE", "/com.example.tool/-rev/7-cafe"),
    ]


def test_unpublish_version_deletes_tarball_then_rewrites_manifest() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "GET":
            return httpx.Response(
                200, json=_published_manifest("1.0.0", "1.1.0", "1.2.0", latest="1.2.0")
            )
        return httpx.Response(200, json={"ok": True})

    async def run() -> None:
        async with _client(handler) as client:
            await client.unpublish(
                REGISTRY_URL, TOKEN, "com.example.tool", SemanticVersion.parse("1.2.0")
            )

    asyncio.run(run())

    assert [(request.method, request.url.path) for request in seen] == [
        ("GET", "/com.example.tool"),
        ("DELETE", "/com.example.tool/-/com.example.tool-1.2.0.tgz/-rev/7-cafe"),
        ("PUT", "/com.example.tool/-rev/7-cafe"),
    ]
    assert seen[0].headers["Cache-Control"] == "no-cache"
    body = json.loads(seen[2].content)
    assert sorted(body["versions"]) == ["1.0.0", "1.1.0"]
    assert sorted(body["time"]) == ["1.0.0", "1.1.0"]
    assert body["dist-tags"] == {"latest": "1.1.0", "beta": "1.1.0"}
    assert body["description"] == "A tool"


def test_unpublish_unknown_version_sends_no_writes() -> None:
    methods: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(200, json=_published_manifest("1.0.0", latest="1.0.0"))

    async def run() -> None:
        async with _client(handler) as client:
            await client.unpublish(
                REGISTRY_URL, TOKEN, "com.example.tool", SemanticVersion.parse("2.0.0")
            )

    with pytest.raises(ManifestResolutionError):
        asyncio.run(run())

    assert methods == ["GET"]


def test_unpublication_drops_tags_of_removed_version() -> None:
    document = _published_manifest("1.0.0", "1.1.0", latest="1.0.0")

    remaining = build_unpublication(document, "1.1.0")

    assert remaining["dist-tags"] == {"latest": "1.0.0"}
    assert list(remaining["versions"]) == ["1.0.0"]
    assert "1.1.0" in document["versions"]  # type: ignore[operator]


def test_find_readme_prefers_markdown(tmp_path: Path) -> None:
    assert find_readme(tmp_path) is None

    (tmp_path / "README.txt").write_text("plain")
    (tmp_path / "README.md").write_text("# Tool")

    assert find_readme(tmp_path) == ("README.md", "# Tool")
