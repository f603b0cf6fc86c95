"""Adapters for the host project's local files."""

from __future__ import annotations

from .inventory import (
    EmbeddedPackageInventory,
    read_local_package,
    read_package_json,
    set_local_version,
)
from .packer import PackageArchiveFetcher, pack_directory
from .project import load_credentials, load_project_registries, load_registries

__all__ = [
    "EmbeddedPackageInventory",
    "PackageArchiveFetcher",
    "load_credentials",
    "load_project_registries",
    "load_registries",
    "pack_directory",
    "read_local_package",
    "read_package_json",
    "set_local_version",
]
