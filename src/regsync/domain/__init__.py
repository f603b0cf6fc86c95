"""Reconciliation domain: records, archive comparison and the pass engine."""

from __future__ import annotations

from .comparison import ComparisonReport, DifferenceTag, DifferingFile, FileSide, compare_archives
from .errors import (
    ArchiveFetchError,
    CatalogFetchError,
    ManifestResolutionError,
    ReconciliationError,
)
from .model import (
    CatalogEntry,
    ConfiguredRegistry,
    LocalPackageRecord,
    PackageManifest,
    ReconciledPackage,
    RegistryCredential,
    RegistryIdentity,
    RegistryPackageGroup,
    VersionRecord,
)
from .reconciliation import PackageComparison, ReconciliationEngine
from .versions import InvalidVersionError, SemanticVersion

__all__ = [
    "ArchiveFetchError",
    "CatalogEntry",
    "CatalogFetchError",
    "ComparisonReport",
    "ConfiguredRegistry",
    "DifferenceTag",
    "DifferingFile",
    "FileSide",
    "InvalidVersionError",
    "LocalPackageRecord",
    "ManifestResolutionError",
    "PackageComparison",
    "PackageManifest",
    "ReconciledPackage",
    "ReconciliationEngine",
    "ReconciliationError",
    "RegistryCredential",
    "RegistryIdentity",
    "RegistryPackageGroup",
    "SemanticVersion",
    "VersionRecord",
    "compare_archives",
]
