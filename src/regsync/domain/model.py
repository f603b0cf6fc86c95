"""Records exchanged during a reconciliation pass.

All records are frozen dataclasses: copies are made with
:func:`dataclasses.replace` and equality is structural.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from .errors import ManifestResolutionError
from .versions import SemanticVersion

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

LATEST_DIST_TAG: Final[str] = "latest"


@dataclass(frozen=True, slots=True)
class RegistryIdentity:
    """Two registries are the same iff name and URL match exactly."""

    name: str
    url: str

    def __str__(self) -> str:
        return f"{self.name} ({self.url})"


@dataclass(frozen=True, slots=True)
class RegistryCredential:
    token: str | None = None
    always_auth: bool = False


@dataclass(frozen=True, slots=True)
class ConfiguredRegistry:
    """A registry as configured by the host project, with its credential."""

    identity: RegistryIdentity
    scopes: tuple[str, ...] = ()
    credential: RegistryCredential = field(default_factory=RegistryCredential)

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def url(self) -> str:
        return self.identity.url


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """One package id as listed by the remote catalog, with its owning registry."""

    package_id: str
    registry_url: str
    registry_name: str

    @property
    def registry(self) -> RegistryIdentity:
        return RegistryIdentity(name=self.registry_name, url=self.registry_url)


@dataclass(frozen=True, slots=True)
class VersionRecord:
    name: str
    version: SemanticVersion
    archive_url: str
    shasum: str | None = None
    integrity: str | None = None
    dependencies: Mapping[str, str] = field(default_factory=dict[str, str])


@dataclass(frozen=True, slots=True)
class PackageManifest:
    """Registry-side description of a package and all its published versions."""

    id: str
    name: str
    revision: str = ""
    dist_tags: Mapping[str, str] = field(default_factory=dict[str, str])
    versions: Mapping[str, VersionRecord] = field(default_factory=dict[str, VersionRecord])

    def __post_init__(self) -> None:
        invalid = [key for key in self.versions if not SemanticVersion.is_valid(key)]
        if invalid:
            raise ValueError(f"Manifest {self.id!r} has invalid version keys: {invalid}")

    def resolve(self, tag: str = LATEST_DIST_TAG) -> VersionRecord:
        """Return the version record the given dist-tag points to."""

        target = self.dist_tags.get(tag)
        if target is None:
            raise ManifestResolutionError(f"Package {self.id!r} has no dist-tag {tag!r}")
        record = self.versions.get(target)
        if record is None:
            raise ManifestResolutionError(
                f"Dist-tag {tag!r} of package {self.id!r} points to unknown version {target!r}"
            )
        return record

    @property
    def known_versions(self) -> list[SemanticVersion]:
        return sorted(SemanticVersion.parse(key) for key in self.versions)


@dataclass(frozen=True, slots=True)
class LocalPackageRecord:
    """A package already present in the host project, independent of any registry."""

    name: str
    version: SemanticVersion
    path: Path


@dataclass(frozen=True, slots=True)
class ReconciledPackage:
    """Remote package resolved to its latest version for one registry."""

    name: str
    version: SemanticVersion
    manifest: PackageManifest = field(compare=False, repr=False)
    record: VersionRecord = field(compare=False, repr=False)
    local_path: Path | None = None
    local_version: SemanticVersion | None = None
    collision_count: int = 0

    @property
    def package_id(self) -> str:
        return self.manifest.id

    @property
    def remote_versions(self) -> list[SemanticVersion]:
        return self.manifest.known_versions


@dataclass(frozen=True, slots=True)
class RegistryPackageGroup:
    """Per-registry classification; the four buckets are disjoint by name."""

    registry: RegistryIdentity
    available: tuple[ReconciledPackage, ...] = ()
    common: tuple[ReconciledPackage, ...] = ()
    changed: tuple[ReconciledPackage, ...] = ()
    installable: tuple[LocalPackageRecord, ...] = ()

    def __post_init__(self) -> None:
        seen: dict[str, str] = {}
        buckets: tuple[tuple[str, tuple[ReconciledPackage | LocalPackageRecord, ...]], ...] = (
            ("available", self.available),
            ("common", self.common),
            ("changed", self.changed),
            ("installable", self.installable),
        )
        for bucket, packages in buckets:
            for package in packages:
                previous = seen.setdefault(package.name, bucket)
                if previous != bucket:
                    raise ValueError(
                        f"Package {package.name!r} appears in both {previous} and {bucket} "
                        f"for registry {self.registry}"
                    )

    def names(self) -> dict[str, set[str]]:
        return {
            "available": {package.name for package in self.available},
            "common": {package.name for package in self.common},
            "changed": {package.name for package in self.changed},
            "installable": {package.name for package in self.installable},
        }
