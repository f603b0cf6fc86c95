"""Persist reconciliation results through the key/value cache store."""

from __future__ import annotations

from datetime import timedelta
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final

from pydantic import BaseModel, Field, ValidationError

from regsync.domain.model import (
    LocalPackageRecord,
    PackageManifest,
    ReconciledPackage,
    RegistryIdentity,
    RegistryPackageGroup,
    VersionRecord,
)
from regsync.domain.versions import SemanticVersion

if TYPE_CHECKING:
    from collections.abc import Sequence

    from regsync.domain.ports import CacheStore

log = getLogger(__name__)

RESULT_CACHE_KEY: Final[str] = "registry_package_groups"
RESULT_MAX_AGE: Final[timedelta] = timedelta(hours=1)


class VersionRecordDto(BaseModel):
    name: str
    version: str
    archive_url: str
    shasum: str | None = None
    integrity: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict[str, str])

    @classmethod
    def from_domain(cls, record: VersionRecord) -> VersionRecordDto:
        return cls(
            name=record.name,
            version=str(record.version),
            archive_url=record.archive_url,
            shasum=record.shasum,
            integrity=record.integrity,
            dependencies=dict(record.dependencies),
        )

    def to_domain(self) -> VersionRecord:
        return VersionRecord(
            name=self.name,
            version=SemanticVersion.parse(self.version),
            archive_url=self.archive_url,
            shasum=self.shasum,
            integrity=self.integrity,
            dependencies=dict(self.dependencies),
        )


class PackageManifestDto(BaseModel):
    id: str
    name: str
    revision: str = ""
    dist_tags: dict[str, str] = Field(default_factory=dict[str, str])
    versions: dict[str, VersionRecordDto] = Field(default_factory=dict[str, VersionRecordDto])

    @classmethod
    def from_domain(cls, manifest: PackageManifest) -> PackageManifestDto:
        return cls(
            id=manifest.id,
            name=manifest.name,
            revision=manifest.revision,
            dist_tags=dict(manifest.dist_tags),
            versions={
                key: VersionRecordDto.from_domain(record)
                for key, record in manifest.versions.items()
            },
        )

    def to_domain(self) -> PackageManifest:
        return PackageManifest(
            id=self.id,
            name=self.name,
            revision=self.revision,
            dist_tags=dict(self.dist_tags),
            versions={key: record.to_domain() for key, record in self.versions.items()},
        )


class ReconciledPackageDto(BaseModel):
    name: str
    version: str
    manifest: PackageManifestDto
    record: VersionRecordDto
    local_path: str | None = None
    local_version: str | None = None
    collision_count: int = 0

    @classmethod
    def from_domain(cls, package: ReconciledPackage) -> ReconciledPackageDto:
        return cls(
            name=package.name,
            version=str(package.version),
            manifest=PackageManifestDto.from_domain(package.manifest),
            record=VersionRecordDto.from_domain(package.record),
            local_path=str(package.local_path) if package.local_path is not None else None,
            local_version=str(package.local_version) if package.local_version else None,
            collision_count=package.collision_count,
        )

    def to_domain(self) -> ReconciledPackage:
        return ReconciledPackage(
            name=self.name,
            version=SemanticVersion.parse(self.version),
            manifest=self.manifest.to_domain(),
            record=self.record.to_domain(),
            local_path=Path(self.local_path) if self.local_path is not None else None,
            local_version=(
                SemanticVersion.parse(self.local_version)
                if self.local_version is not None
                else None
            ),
            collision_count=self.collision_count,
        )


class LocalPackageDto(BaseModel):
    name: str
    version: str
    path: str

    @classmethod
    def from_domain(cls, package: LocalPackageRecord) -> LocalPackageDto:
        return cls(name=package.name, version=str(package.version), path=str(package.path))

    def to_domain(self) -> LocalPackageRecord:
        return LocalPackageRecord(
            name=self.name,
            version=SemanticVersion.parse(self.version),
            path=Path(self.path),
        )


class RegistryPackageGroupDto(BaseModel):
    registry_name: str
    registry_url: str
    available: list[ReconciledPackageDto] = Field(default_factory=list[ReconciledPackageDto])
    common: list[ReconciledPackageDto] = Field(default_factory=list[ReconciledPackageDto])
    changed: list[ReconciledPackageDto] = Field(default_factory=list[ReconciledPackageDto])
    installable: list[LocalPackageDto] = Field(default_factory=list[LocalPackageDto])

    @classmethod
    def from_domain(cls, group: RegistryPackageGroup) -> RegistryPackageGroupDto:
        return cls(
            registry_name=group.registry.name,
            registry_url=group.registry.url,
            available=[ReconciledPackageDto.from_domain(package) for package in group.available],
            common=[ReconciledPackageDto.from_domain(package) for package in group.common],
            changed=[ReconciledPackageDto.from_domain(package) for package in group.changed],
            installable=[LocalPackageDto.from_domain(package) for package in group.installable],
        )

    def to_domain(self) -> RegistryPackageGroup:
        return RegistryPackageGroup(
            registry=RegistryIdentity(name=self.registry_name, url=self.registry_url),
            available=tuple(package.to_domain() for package in self.available),
            common=tuple(package.to_domain() for package in self.common),
            changed=tuple(package.to_domain() for package in self.changed),
            installable=tuple(package.to_domain() for package in self.installable),
        )


class ReconciliationResultDto(BaseModel):
    groups: list[RegistryPackageGroupDto]


class ReconciliationResultCache:
    """Stores the latest pass under a single key, replacing it wholesale."""

    def __init__(
        self,
        store: CacheStore,
        *,
        key: str = RESULT_CACHE_KEY,
        max_age: timedelta = RESULT_MAX_AGE,
    ) -> None:
        self._store = store
        self._key = key
        self._max_age = max_age

    def save(self, groups: Sequence[RegistryPackageGroup]) -> None:
        document = ReconciliationResultDto(
            groups=[RegistryPackageGroupDto.from_domain(group) for group in groups]
        )
        self._store.put(self._key, document.model_dump(mode="json"))

    def restore(self) -> list[RegistryPackageGroup] | None:
        stored = self._store.try_get(self._key, self._max_age)
        if stored is None:
            return None
        try:
            document = ReconciliationResultDto.model_validate(stored)
            return [group.to_domain() for group in document.groups]
        except (ValidationError, ValueError) as exc:
            log.warning("Discarding unreadable reconciliation result: %s", exc)
            return None
