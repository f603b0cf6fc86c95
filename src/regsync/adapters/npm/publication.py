"""Request documents for publishing and unpublishing package versions."""

from __future__ import annotations

import base64
import copy
import hashlib
from typing import TYPE_CHECKING, Any, Final

from regsync.domain.model import LATEST_DIST_TAG
from regsync.domain.versions import InvalidVersionError, SemanticVersion

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

ATTACHMENT_CONTENT_TYPE: Final[str] = "application/octet-stream"
README_NAMES: Final[tuple[str, ...]] = (
    "README.md",
    "README",
    "README.txt",
    "Readme.md",
    "readme.md",
)


def tarball_name(package_id: str, version: str) -> str:
    # Scoped names keep only the bare name in the file name.
    return f"{package_id.rsplit('/', 1)[-1]}-{version}.tgz"


def tarball_url(registry_url: str, package_id: str, version: str) -> str:
    return f"{registry_url.rstrip('/')}/{package_id}/-/{tarball_name(package_id, version)}"


def integrity_of(archive: bytes) -> str:
    digest = base64.b64encode(hashlib.sha512(archive).digest()).decode("ascii")
    return f"sha512-{digest}"


def find_readme(directory: Path) -> tuple[str, str] | None:
    """Return ``(file name, text)`` of the first readme found in ``directory``."""

    for name in README_NAMES:
        path = directory / name
        if path.is_file():
            return name, path.read_text(encoding="utf-8-sig")
    return None


def build_publication(
    registry_url: str,
    package_json: Mapping[str, Any],
    archive: bytes,
    *,
    readme: tuple[str, str] | None = None,
) -> dict[str, Any]:
    """Build the PUT body publishing one version with its tarball attached.

    ``package_json`` is the package's own manifest; it becomes the version
    entry, extended with the dist block pointing at the attachment.
    """

    package_id = str(package_json["name"])
    version = str(package_json["version"])
    version_entry: dict[str, Any] = {
        **package_json,
        "_id": f"{package_id}@{version}",
        "dist": {
            "tarball": tarball_url(registry_url, package_id, version),
            "shasum": hashlib.sha1(archive).hexdigest(),  # noqa: S324
            "integrity": integrity_of(archive),
        },
    }
    document: dict[str, Any] = {
        "_id": package_id,
        "name": package_id,
        "dist-tags": {LATEST_DIST_TAG: version},
        "versions": {version: version_entry},
        "_attachments": {
            tarball_name(package_id, version): {
                "content_type": ATTACHMENT_CONTENT_TYPE,
                "data": base64.b64encode(archive).decode("ascii"),
                "length": len(archive),
            }
        },
    }
    if description := package_json.get("description"):
        document["description"] = description
    if readme is not None and readme[1].strip():
        readme_file, text = readme
        version_entry["readme"] = text
        version_entry["readmeFilename"] = readme_file
        document["readme"] = text
    return document


def build_unpublication(document: Mapping[str, Any], version: str) -> dict[str, Any]:
    """Return a copy of a registry manifest without ``version``.

    Dist-tags pointing at the removed version are dropped, except ``latest``
    which moves to the highest remaining version.
    """

    remaining = copy.deepcopy(dict(document))
    remaining.pop("_attachments", None)
    versions: dict[str, Any] = remaining.setdefault("versions", {})
    versions.pop(version, None)
    time = remaining.get("time")
    if isinstance(time, dict):
        time.pop(version, None)

    dist_tags: dict[str, str] = remaining.setdefault("dist-tags", {})
    for tag in [tag for tag, tagged in dist_tags.items() if tagged == version]:
        del dist_tags[tag]
    highest = _highest_version(versions)
    if LATEST_DIST_TAG not in dist_tags and highest is not None:
        dist_tags[LATEST_DIST_TAG] = highest
    return remaining


def _highest_version(keys: Mapping[str, Any]) -> str | None:
    parsed: list[SemanticVersion] = []
    for key in keys:
        try:
            parsed.append(SemanticVersion.parse(key))
        except InvalidVersionError:
            continue
    return str(max(parsed)) if parsed else None
