"""Reconcile the local package inventory against configured registries.

One pass lists the remote catalog once, resolves every candidate package
to its latest version (all manifest fetches run concurrently), counts
package ids that appear under more than one registry, and classifies each
registry's packages into four buckets. Packages present both locally and
remotely are compared archive-to-archive, one comparison at a time per
registry. The finished result replaces whatever was stored before.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING

from .comparison import ComparisonReport, compare_archives
from .model import LATEST_DIST_TAG, ReconciledPackage, RegistryPackageGroup

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .model import (
        CatalogEntry,
        ConfiguredRegistry,
        LocalPackageRecord,
        RegistryCredential,
        RegistryIdentity,
    )
    from .ports import (
        ArchiveFetcher,
        CatalogProvider,
        HostNotifier,
        LocalInventoryProvider,
        ManifestProvider,
        ReconciliationResultRepository,
    )
    from .versions import SemanticVersion

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PackageComparison:
    """Local-versus-latest comparison for a single package."""

    identical: bool
    latest_version: SemanticVersion
    report: ComparisonReport


class ReconciliationEngine:
    def __init__(
        self,
        *,
        catalog: CatalogProvider,
        manifests: ManifestProvider,
        inventory: LocalInventoryProvider,
        archives: ArchiveFetcher,
        results: ReconciliationResultRepository | None = None,
        notifier: HostNotifier | None = None,
        dist_tag: str = LATEST_DIST_TAG,
    ) -> None:
        self._catalog = catalog
        self._manifests = manifests
        self._inventory = inventory
        self._archives = archives
        self._results = results
        self._notifier = notifier
        self._dist_tag = dist_tag

    async def reconcile(
        self,
        registries: Sequence[ConfiguredRegistry],
        local_inventory: Sequence[LocalPackageRecord] | None = None,
        *,
        offline: bool = False,
    ) -> list[RegistryPackageGroup]:
        """Run one full pass and return a group per configured registry."""

        local = (
            list(local_inventory)
            if local_inventory is not None
            else self._inventory.list_local_packages()
        )
        log.info(
            "Starting reconciliation: registries=%s, local_packages=%s, offline=%s",
            len(registries),
            len(local),
            offline,
        )

        catalog = await self._catalog.list_all_packages(offline=offline)
        candidates = partition_catalog(registries, catalog)

        resolved_per_registry = await asyncio.gather(
            *(
                self._resolve_registry(registry, candidates[registry.identity])
                for registry in registries
            )
        )
        resolved = assign_collision_counts(
            {
                registry.identity: packages
                for registry, packages in zip(registries, resolved_per_registry, strict=True)
            }
        )

        groups = list(
            await asyncio.gather(
                *(
                    self._classify(registry, resolved[registry.identity], local)
                    for registry in registries
                )
            )
        )

        if self._results is not None:
            self._results.save(groups)
        await self._notify_host()

        log.info(
            "Finished reconciliation: %s",
            ", ".join(
                f"{group.registry.name}[available={len(group.available)}, "
                f"common={len(group.common)}, changed={len(group.changed)}, "
                f"installable={len(group.installable)}]"
                for group in groups
            )
            or "no registries",
        )
        return groups

    async def compare_package(
        self,
        package: ReconciledPackage,
        credential: RegistryCredential | None = None,
    ) -> PackageComparison:
        """Compare a locally present package against its latest remote archive."""

        if package.local_path is None:
            raise ValueError(f"Package {package.name!r} has no local path to compare")
        remote = await self._archives.fetch_archive_bytes(package.record.archive_url, credential)
        local = await self._archives.fetch_archive_bytes(package.local_path)
        report = await asyncio.to_thread(compare_archives, local, remote)
        return PackageComparison(
            identical=report.identical,
            latest_version=package.version,
            report=report,
        )

    async def _resolve_registry(
        self,
        registry: ConfiguredRegistry,
        package_ids: Sequence[str],
    ) -> list[ReconciledPackage]:
        outcomes = await asyncio.gather(
            *(self._resolve_package(registry, package_id) for package_id in package_ids),
            return_exceptions=True,
        )
        resolved: list[ReconciledPackage] = []
        for package_id, outcome in zip(package_ids, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                log.warning(
                    "Skipping package %s from %s: %s", package_id, registry.identity, outcome
                )
                continue
            resolved.append(outcome)
        return resolved

    async def _resolve_package(
        self, registry: ConfiguredRegistry, package_id: str
    ) -> ReconciledPackage:
        manifest = await self._manifests.fetch_manifest(
            registry.url, registry.credential, package_id
        )
        record = manifest.resolve(self._dist_tag)
        return ReconciledPackage(
            name=record.name or manifest.name,
            version=record.version,
            manifest=manifest,
            record=record,
        )

    async def _classify(
        self,
        registry: ConfiguredRegistry,
        remote: Sequence[ReconciledPackage],
        local: Sequence[LocalPackageRecord],
    ) -> RegistryPackageGroup:
        local_by_name = {package.name: package for package in local}
        remote_names = {package.name for package in remote}

        available: list[ReconciledPackage] = []
        common: list[ReconciledPackage] = []
        changed: list[ReconciledPackage] = []
        shared: list[ReconciledPackage] = []
        for package in remote:
            match = local_by_name.get(package.name)
            if match is None:
                available.append(package)
            else:
                shared.append(
                    replace(package, local_path=match.path, local_version=match.version)
                )
        installable = [package for package in local if package.name not in remote_names]

        for package in shared:
            try:
                comparison = await self.compare_package(package, registry.credential)
            except Exception:  # noqa: BLE001
                log.exception(
                    "Comparison of %s against %s failed", package.name, registry.identity
                )
                available.append(package)
                continue
            if comparison.report.failed:
                log.error(
                    "Comparison of %s against %s failed: %s",
                    package.name,
                    registry.identity,
                    comparison.report.error,
                )
                available.append(package)
            elif comparison.identical:
                common.append(package)
            else:
                log.info(
                    "Package %s changed (local %s, remote %s): %s",
                    package.name,
                    package.local_version,
                    comparison.latest_version,
                    ", ".join(sorted(comparison.report.result)),
                )
                changed.append(package)

        return RegistryPackageGroup(
            registry=registry.identity,
            available=tuple(available),
            common=tuple(common),
            changed=tuple(changed),
            installable=tuple(installable),
        )

    async def _notify_host(self) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_refresh()
        except Exception:  # noqa: BLE001
            log.warning("Host refresh notification failed", exc_info=True)


def partition_catalog(
    registries: Iterable[ConfiguredRegistry],
    catalog: Iterable[CatalogEntry],
) -> dict[RegistryIdentity, list[str]]:
    """Join catalog entries to registries on exact (name, url) identity."""

    partitions: dict[RegistryIdentity, list[str]] = {
        registry.identity: [] for registry in registries
    }
    for entry in catalog:
        bucket = partitions.get(entry.registry)
        if bucket is not None and entry.package_id not in bucket:
            bucket.append(entry.package_id)
    return partitions


def assign_collision_counts(
    resolved: dict[RegistryIdentity, list[ReconciledPackage]],
) -> dict[RegistryIdentity, list[ReconciledPackage]]:
    """Stamp every package id seen under several registries with that registry count.

    The count is informational and never affects classification.
    """

    registries_by_id: dict[str, set[RegistryIdentity]] = defaultdict(set)
    for identity, packages in resolved.items():
        for package in packages:
            registries_by_id[package.package_id].add(identity)

    collisions = {
        package_id: len(identities)
        for package_id, identities in registries_by_id.items()
        if len(identities) > 1
    }
    return {
        identity: [
            replace(package, collision_count=collisions[package.package_id])
            if package.package_id in collisions
            else package
            for package in packages
        ]
        for identity, packages in resolved.items()
    }
