"""Public interface for the npm registry adapter."""

from __future__ import annotations

from .catalog import RegistrySearchCatalog
from .client import NpmRegistryClient, RegistryAPIError, manifest_url
from .publication import build_publication, build_unpublication, find_readme
from .schema import ManifestPayload, SearchResponse, VersionPayload
from .translator import translate_manifest

__all__ = [
    "ManifestPayload",
    "NpmRegistryClient",
    "RegistryAPIError",
    "RegistrySearchCatalog",
    "SearchResponse",
    "VersionPayload",
    "build_publication",
    "build_unpublication",
    "find_readme",
    "manifest_url",
    "translate_manifest",
]
