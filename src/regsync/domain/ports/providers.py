"""Ports for reading remote and local package state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pathlib import Path

    from regsync.domain.model import (
        CatalogEntry,
        LocalPackageRecord,
        PackageManifest,
        RegistryCredential,
    )


@runtime_checkable
class CatalogProvider(Protocol):
    """Lists every package known to the configured registries."""

    async def list_all_packages(self, *, offline: bool = False) -> list[CatalogEntry]: ...


@runtime_checkable
class ManifestProvider(Protocol):
    async def fetch_manifest(
        self,
        registry_url: str,
        credential: RegistryCredential | None,
        package_id: str,
    ) -> PackageManifest: ...


@runtime_checkable
class LocalInventoryProvider(Protocol):
    def list_local_packages(self) -> list[LocalPackageRecord]: ...


@runtime_checkable
class ArchiveFetcher(Protocol):
    """Returns archive bytes for a remote archive URL or a local package directory."""

    async def fetch_archive_bytes(
        self,
        source: str | Path,
        credential: RegistryCredential | None = None,
    ) -> bytes: ...


@runtime_checkable
class HostNotifier(Protocol):
    """Fire-and-forget signal asking the host application to re-read package state."""

    async def notify_refresh(self) -> None: ...
