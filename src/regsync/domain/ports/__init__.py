"""Domain port definitions for adapters."""

from __future__ import annotations

from .cache import CacheStore
from .providers import (
    ArchiveFetcher,
    CatalogProvider,
    HostNotifier,
    LocalInventoryProvider,
    ManifestProvider,
)
from .results import ReconciliationResultRepository

__all__ = [
    "ArchiveFetcher",
    "CacheStore",
    "CatalogProvider",
    "HostNotifier",
    "LocalInventoryProvider",
    "ManifestProvider",
    "ReconciliationResultRepository",
]
