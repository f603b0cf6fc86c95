"""HTTP client for npm-compatible package registries."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from regsync.adapters.http_resilience import ResilienceConfig, ResilientClient
from regsync.config.errors import ConfigurationError
from regsync.config.registries import registry_resilience
from regsync.domain.errors import ArchiveFetchError, ManifestResolutionError

from .publication import build_publication, build_unpublication, tarball_name
from .schema import ErrorResponse, ManifestPayload, SearchResponse
from .translator import translate_manifest

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path
    from types import TracebackType

    from regsync.domain.model import PackageManifest, RegistryCredential
    from regsync.domain.versions import SemanticVersion

log = getLogger(__name__)

SEARCH_PAGE_SIZE = 250


class RegistryAPIError(RuntimeError):
    """Raised when a registry returns an error status or an unexpected payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _auth_headers(credential: RegistryCredential | None) -> dict[str, str]:
    if credential is None or not credential.token:
        return {}
    return {"Authorization": f"Bearer {credential.token}"}


def manifest_url(registry_url: str, package_id: str) -> str:
    return f"{registry_url.rstrip('/')}/{quote(package_id, safe='@')}"


class NpmRegistryClient:
    """Fetches manifests, archives and search pages from npm-style registries.

    One underlying HTTP client is opened lazily and shared by every request
    until :meth:`aclose`.
    """

    def __init__(
        self,
        *,
        resilience: ResilienceConfig | None = None,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._resilience = resilience or registry_resilience("npm")
        self._client_factory = client_factory or _default_client_factory
        self._client: ResilientClient | None = None

    async def __aenter__(self) -> NpmRegistryClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self._client_factory(self._resilience)
        return self._client

    async def fetch_manifest(
        self,
        registry_url: str,
        credential: RegistryCredential | None,
        package_id: str,
    ) -> PackageManifest:
        payload = await self.fetch_manifest_document(registry_url, credential, package_id)
        model = _validate_manifest(payload, package_id)
        log.debug("Fetched manifest of %s from %s", package_id, registry_url)
        return translate_manifest(model)

    async def fetch_manifest_document(
        self,
        registry_url: str,
        credential: RegistryCredential | None,
        package_id: str,
        *,
        revalidate: bool = False,
    ) -> dict[str, Any]:
        """Return the manifest exactly as the registry serves it."""

        url = manifest_url(registry_url, package_id)
        headers = {"Accept": "application/json", **_auth_headers(credential)}
        if revalidate:
            headers["Cache-Control"] = "no-cache"
        response = await self._http().get(url, headers=headers)
        return _json_payload(response, what=f"manifest of {package_id}")

    async def publish(
        self,
        registry_url: str,
        credential: RegistryCredential | None,
        package_json: Mapping[str, Any],
        archive: bytes,
        *,
        readme: tuple[str, str] | None = None,
    ) -> str:
        """Upload one version with its tarball; return ``name@version``."""

        headers = _write_headers(credential, action="publish")
        document = build_publication(registry_url, package_json, archive, readme=readme)
        package_id = document["name"]
        published = f"{package_id}@{package_json['version']}"
        response = await self._http().put(
            manifest_url(registry_url, package_id), json=document, headers=headers
        )
        _raise_for_write(response, what=f"publish {published}")
        log.info("Published %s to %s", published, registry_url)
        return published

    async def unpublish(
        self,
        registry_url: str,
        credential: RegistryCredential | None,
        package_id: str,
        version: SemanticVersion,
    ) -> None:
        """Remove one version, or the whole package when it is the only one."""

        headers = _write_headers(credential, action="unpublish")
        document = await self.fetch_manifest_document(
            registry_url, credential, package_id, revalidate=True
        )
        model = _validate_manifest(document, package_id)
        key = str(version)
        if key not in model.versions:
            raise ManifestResolutionError(f"{package_id} has no published version {key}")

        base_url = manifest_url(registry_url, package_id)
        if set(model.versions) == {key}:
            response = await self._http().delete(f"{base_url}/-rev/{model.rev}", headers=headers)
            _raise_for_write(response, what=f"delete {package_id}")
            log.info("Deleted %s from %s", package_id, registry_url)
            return

        tarball = f"{base_url}/-/{tarball_name(package_id, key)}/-rev/{model.rev}"
        response = await self._http().delete(tarball, headers=headers)
        _raise_for_write(response, what=f"delete tarball of {package_id}@{key}")
        response = await self._http().put(
            f"{base_url}/-rev/{model.rev}",
            json=build_unpublication(document, key),
            headers=headers,
        )
        _raise_for_write(response, what=f"unpublish {package_id}@{key}")
        log.info("Unpublished %s@%s from %s", package_id, key, registry_url)

    async def fetch_archive(self, url: str, credential: RegistryCredential | None = None) -> bytes:
        try:
            response = await self._http().get(url, headers=_auth_headers(credential))
        except httpx.HTTPError as exc:
            raise ArchiveFetchError(f"Failed to fetch archive {url}: {exc}") from exc
        if response.status_code != httpx.codes.OK:
            raise ArchiveFetchError(
                f"Failed to fetch archive {url} with status code {response.status_code}"
            )
        return response.content

    async def fetch_archive_bytes(
        self,
        source: str | Path,
        credential: RegistryCredential | None = None,
    ) -> bytes:
        return await self.fetch_archive(str(source), credential)

    async def search(
        self,
        registry_url: str,
        credential: RegistryCredential | None,
        text: str,
    ) -> list[str]:
        """Return every package name the registry's search endpoint yields for ``text``."""

        url = f"{registry_url.rstrip('/')}/-/v1/search"
        headers = {"Accept": "application/json", **_auth_headers(credential)}
        names: list[str] = []
        offset = 0
        while True:
            params = {"text": text, "size": str(SEARCH_PAGE_SIZE), "from": str(offset)}
            response = await self._http().get(url, params=params, headers=headers)
            payload = _json_payload(response, what=f"search for {text!r}")
            try:
                page = SearchResponse.model_validate(payload)
            except ValidationError as exc:
                raise RegistryAPIError(f"Invalid search response from {url}: {exc}") from exc
            names.extend(item.package.name for item in page.objects)
            offset += len(page.objects)
            if not page.objects or len(page.objects) < SEARCH_PAGE_SIZE or offset >= page.total:
                return names


def _json_payload(response: httpx.Response, *, what: str) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if response.status_code != httpx.codes.OK:
        reason = response.reason_phrase
        if isinstance(payload, dict) and "error" in payload:
            error = ErrorResponse.model_validate(payload)
            reason = error.reason or error.error
        raise RegistryAPIError(
            f"Failed to fetch {what} with status code {response.status_code}: {reason}",
            status_code=response.status_code,
        )

    if not isinstance(payload, dict):
        raise RegistryAPIError(f"Unexpected registry payload for {what}")
    return payload


def _validate_manifest(payload: dict[str, Any], package_id: str) -> ManifestPayload:
    try:
        return ManifestPayload.model_validate(payload)
    except ValidationError as exc:
        raise RegistryAPIError(f"Invalid manifest for {package_id}: {exc}") from exc


def _write_headers(credential: RegistryCredential | None, *, action: str) -> dict[str, str]:
    if credential is None or not credential.token or not credential.token.strip():
        raise ConfigurationError(f"A registry token is required to {action}")
    return {
        "Content-Type": "application/json",
        "Accept": "application/json",
        **_auth_headers(credential),
    }


def _raise_for_write(response: httpx.Response, *, what: str) -> None:
    if response.is_success:
        return
    raise RegistryAPIError(
        f"Failed to {what} with status code {response.status_code}: {response.text}",
        status_code=response.status_code,
    )
