"""Remote catalog listing built on registry search."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx
from pydantic import BaseModel, ValidationError

from regsync.domain.errors import CatalogFetchError
from regsync.domain.model import CatalogEntry

from .client import RegistryAPIError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from regsync.domain.model import ConfiguredRegistry
    from regsync.domain.ports import CacheStore

    from .client import NpmRegistryClient

log = getLogger(__name__)

CATALOG_SNAPSHOT_KEY: Final[str] = "catalog_snapshot"


class CatalogSnapshotEntry(BaseModel):
    package_id: str
    registry_url: str
    registry_name: str


class CatalogSnapshot(BaseModel):
    entries: list[CatalogSnapshotEntry]


def in_scope(package_id: str, scope: str) -> bool:
    return package_id == scope or package_id.startswith(f"{scope}.")


class RegistrySearchCatalog:
    """Lists every package under the configured registries' scopes.

    Online listings are stored as a snapshot in ``snapshots``; offline
    listings return the last snapshot, or nothing when none was stored.
    """

    def __init__(
        self,
        registries: Sequence[ConfiguredRegistry],
        client: NpmRegistryClient,
        *,
        snapshots: CacheStore | None = None,
    ) -> None:
        self._registries = list(registries)
        self._client = client
        self._snapshots = snapshots

    async def list_all_packages(self, *, offline: bool = False) -> list[CatalogEntry]:
        if offline:
            return self._load_snapshot()

        try:
            listings = await asyncio.gather(
                *(self._list_registry(registry) for registry in self._registries)
            )
        except (RegistryAPIError, httpx.HTTPError) as exc:
            raise CatalogFetchError(f"Failed to list remote packages: {exc}") from exc

        entries = [entry for listing in listings for entry in listing]
        self._store_snapshot(entries)
        log.info("Listed %s remote packages across %s registries", len(entries), len(listings))
        return entries

    async def _list_registry(self, registry: ConfiguredRegistry) -> list[CatalogEntry]:
        seen: set[str] = set()
        entries: list[CatalogEntry] = []
        for scope in registry.scopes:
            names = await self._client.search(registry.url, registry.credential, scope)
            for name in names:
                if name in seen or not in_scope(name, scope):
                    continue
                seen.add(name)
                entries.append(
                    CatalogEntry(
                        package_id=name,
                        registry_url=registry.url,
                        registry_name=registry.name,
                    )
                )
        return entries

    def _store_snapshot(self, entries: list[CatalogEntry]) -> None:
        if self._snapshots is None:
            return
        snapshot = CatalogSnapshot(
            entries=[
                CatalogSnapshotEntry(
                    package_id=entry.package_id,
                    registry_url=entry.registry_url,
                    registry_name=entry.registry_name,
                )
                for entry in entries
            ]
        )
        self._snapshots.put(CATALOG_SNAPSHOT_KEY, snapshot.model_dump(mode="json"))

    def _load_snapshot(self) -> list[CatalogEntry]:
        if self._snapshots is None:
            return []
        stored = self._snapshots.try_get(CATALOG_SNAPSHOT_KEY, timedelta.max)
        if stored is None:
            log.info("No catalog snapshot available for offline listing")
            return []
        try:
            snapshot = CatalogSnapshot.model_validate(stored)
        except ValidationError:
            log.warning("Discarding unreadable catalog snapshot", exc_info=True)
            return []
        return [
            CatalogEntry(
                package_id=entry.package_id,
                registry_url=entry.registry_url,
                registry_name=entry.registry_name,
            )
            for entry in snapshot.entries
        ]
