"""Error taxonomy for reconciliation passes."""

from __future__ import annotations


class ReconciliationError(RuntimeError):
    """Raised when a whole reconciliation pass cannot complete."""


class CatalogFetchError(ReconciliationError):
    """Raised when the remote catalog itself cannot be listed."""


class ManifestResolutionError(LookupError):
    """Raised when a manifest's dist-tag is missing or points to an absent version."""


class ArchiveFetchError(RuntimeError):
    """Raised when the bytes of a package archive cannot be obtained."""
