"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING, TypeVar

from regsync.adapters.json_cache import JsonFileCacheStore
from regsync.adapters.local import (
    EmbeddedPackageInventory,
    PackageArchiveFetcher,
    load_project_registries,
    pack_directory,
    read_local_package,
    read_package_json,
    set_local_version,
)
from regsync.adapters.notifier import HttpHostNotifier, LoggingHostNotifier
from regsync.adapters.npm import NpmRegistryClient, RegistrySearchCatalog, find_readme
from regsync.adapters.npm.catalog import in_scope
from regsync.adapters.result_cache import ReconciliationResultCache
from regsync.common.storage import get_http_cache_path
from regsync.config.errors import ConfigurationError
from regsync.config.registries import get_registry_settings, registry_resilience
from regsync.domain.comparison import compare_archives
from regsync.domain.reconciliation import ReconciliationEngine

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence
    from pathlib import Path

    from regsync.config.registries import RegistrySettings
    from regsync.domain.comparison import ComparisonReport
    from regsync.domain.model import ConfiguredRegistry, LocalPackageRecord, RegistryPackageGroup
    from regsync.domain.ports import CacheStore, HostNotifier
    from regsync.domain.versions import SemanticVersion


log = getLogger(__name__)


def build_engine(
    *,
    settings: RegistrySettings,
    registries: Sequence[ConfiguredRegistry],
    client: NpmRegistryClient,
    store: CacheStore,
) -> ReconciliationEngine:
    """Wire the npm, local-project and cache adapters into an engine."""

    notifier: HostNotifier = (
        HttpHostNotifier(settings.notify_url) if settings.notify_url else LoggingHostNotifier()
    )
    return ReconciliationEngine(
        catalog=RegistrySearchCatalog(registries, client, snapshots=store),
        manifests=client,
        inventory=EmbeddedPackageInventory(settings.packages_dir),
        archives=PackageArchiveFetcher(client),
        results=ReconciliationResultCache(store, max_age=_max_age(settings)),
        notifier=notifier,
    )


def reconcile_registries(
    *,
    offline: bool = False,
    settings: RegistrySettings | None = None,
    store: JsonFileCacheStore | None = None,
    client: NpmRegistryClient | None = None,
) -> list[RegistryPackageGroup]:
    """Run one reconciliation pass using the configured adapters."""

    effective_settings = settings or get_registry_settings()
    registries = load_project_registries(effective_settings)
    log.info(
        "Starting registry sync: manifest=%s, packages=%s, registries=%s",
        effective_settings.project_manifest,
        effective_settings.packages_dir,
        ", ".join(registry.name for registry in registries) or "none",
    )
    return asyncio.run(
        _reconcile(
            effective_settings,
            registries,
            store=store or JsonFileCacheStore(),
            client=client,
            offline=offline,
        )
    )


async def _reconcile(
    settings: RegistrySettings,
    registries: Sequence[ConfiguredRegistry],
    *,
    store: JsonFileCacheStore,
    client: NpmRegistryClient | None,
    offline: bool,
) -> list[RegistryPackageGroup]:
    effective_client = client or NpmRegistryClient(
        resilience=registry_resilience("npm", cache_path=get_http_cache_path())
    )
    try:
        engine = build_engine(
            settings=settings,
            registries=registries,
            client=effective_client,
            store=store,
        )
        return await engine.reconcile(registries, offline=offline)
    finally:
        await effective_client.aclose()
        await store.flush()


def restore_registry_groups(
    *,
    settings: RegistrySettings | None = None,
    store: CacheStore | None = None,
) -> list[RegistryPackageGroup] | None:
    """Return the last stored pass if it is still fresh."""

    effective_settings = settings or get_registry_settings()
    cache = ReconciliationResultCache(
        store or JsonFileCacheStore(), max_age=_max_age(effective_settings)
    )
    return cache.restore()


def compare_archive_files(first: Path, second: Path) -> ComparisonReport:
    """Compare two archives on disk; directories are packed first."""

    return compare_archives(_archive_bytes(first), _archive_bytes(second))


def change_package_version(directory: Path, version: SemanticVersion) -> LocalPackageRecord:
    """Set the version declared by a local package directory."""

    return set_local_version(directory, version)


def publish_package(
    directory: Path,
    *,
    registry_name: str | None = None,
    settings: RegistrySettings | None = None,
    client: NpmRegistryClient | None = None,
) -> str:
    """Pack a local package directory and publish it; return ``name@version``."""

    effective_settings = settings or get_registry_settings()
    local = read_local_package(directory)
    registry = select_registry(
        load_project_registries(effective_settings), local.name, registry_name
    )
    archive = pack_directory(directory)
    log.info("Publishing %s %s to %s", local.name, local.version, registry.identity)

    async def _publish(effective_client: NpmRegistryClient) -> str:
        return await effective_client.publish(
            registry.url,
            registry.credential,
            read_package_json(directory),
            archive,
            readme=find_readme(directory),
        )

    return asyncio.run(_with_client(client, _publish))


def unpublish_package(
    package_id: str,
    version: SemanticVersion,
    *,
    registry_name: str | None = None,
    settings: RegistrySettings | None = None,
    client: NpmRegistryClient | None = None,
) -> None:
    """Remove one published version; the last version removes the package."""

    effective_settings = settings or get_registry_settings()
    registry = select_registry(
        load_project_registries(effective_settings), package_id, registry_name
    )

    async def _unpublish(effective_client: NpmRegistryClient) -> None:
        await effective_client.unpublish(registry.url, registry.credential, package_id, version)

    asyncio.run(_with_client(client, _unpublish))


def select_registry(
    registries: Sequence[ConfiguredRegistry],
    package_id: str,
    registry_name: str | None = None,
) -> ConfiguredRegistry:
    """Pick the registry named ``registry_name``, or the first whose scopes cover the package."""

    if registry_name is not None:
        for registry in registries:
            if registry.name == registry_name:
                return registry
        raise ConfigurationError(f"No scoped registry named {registry_name!r}")
    for registry in registries:
        if any(in_scope(package_id, scope) for scope in registry.scopes):
            return registry
    raise ConfigurationError(f"No scoped registry covers {package_id}")


T = TypeVar("T")


async def _with_client(
    client: NpmRegistryClient | None,
    action: Callable[[NpmRegistryClient], Awaitable[T]],
) -> T:
    effective_client = client or NpmRegistryClient(resilience=registry_resilience("npm"))
    try:
        return await action(effective_client)
    finally:
        await effective_client.aclose()


def _archive_bytes(path: Path) -> bytes:
    if path.is_dir():
        return pack_directory(path)
    return path.read_bytes()


def _max_age(settings: RegistrySettings) -> timedelta:
    return timedelta(seconds=settings.result_max_age_seconds)
