"""Local inventory of packages embedded in the host project."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from pydantic import ValidationError

from regsync.domain.model import LocalPackageRecord
from regsync.domain.versions import InvalidVersionError, SemanticVersion

from .schema import LocalPackageJson

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)

PACKAGE_JSON: Final[str] = "package.json"


def read_package_json(directory: Path) -> dict[str, Any]:
    payload = json.loads((directory / PACKAGE_JSON).read_text(encoding="utf-8-sig"))
    if not isinstance(payload, dict):
        raise ValueError(f"{directory / PACKAGE_JSON} is not a JSON object")
    return payload


def read_local_package(directory: Path) -> LocalPackageRecord:
    """Read the package.json of one package directory."""

    package = LocalPackageJson.model_validate(read_package_json(directory))
    return LocalPackageRecord(
        name=package.name,
        version=SemanticVersion.parse(package.version),
        path=directory,
    )


def set_local_version(directory: Path, version: SemanticVersion) -> LocalPackageRecord:
    """Rewrite the version in a package's package.json, keeping every other key."""

    payload = read_package_json(directory)
    previous = payload.get("version")
    payload["version"] = str(version)
    (directory / PACKAGE_JSON).write_text(
        json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
    )
    log.info("Changed version of %s from %s to %s", payload.get("name"), previous, version)
    return read_local_package(directory)


class EmbeddedPackageInventory:
    """Every direct subdirectory of ``packages_dir`` that holds a package.json."""

    def __init__(self, packages_dir: Path) -> None:
        self._packages_dir = packages_dir

    def list_local_packages(self) -> list[LocalPackageRecord]:
        if not self._packages_dir.is_dir():
            log.info("Packages directory %s does not exist", self._packages_dir)
            return []

        packages: list[LocalPackageRecord] = []
        for directory in sorted(self._packages_dir.iterdir()):
            if not (directory / PACKAGE_JSON).is_file():
                continue
            try:
                packages.append(read_local_package(directory))
            except (OSError, ValueError, ValidationError, InvalidVersionError) as exc:
                log.warning("Skipping local package at %s: %s", directory, exc)
        return packages
