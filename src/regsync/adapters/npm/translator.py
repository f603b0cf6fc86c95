"""Translate npm registry payloads into domain records."""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from regsync.domain.model import PackageManifest, VersionRecord
from regsync.domain.versions import SemanticVersion

from .schema import ManifestPayload, VersionPayload

ManifestPayloadInput = ManifestPayload | Mapping[str, object]


def translate_version(payload: VersionPayload) -> VersionRecord:
    return VersionRecord(
        name=payload.name,
        version=SemanticVersion.parse(payload.version),
        archive_url=payload.dist.tarball,
        shasum=payload.dist.shasum,
        integrity=payload.dist.integrity,
        dependencies=dict(payload.dependencies),
    )


def translate_manifest(payload: ManifestPayloadInput) -> PackageManifest:
    model = (
        payload
        if isinstance(payload, ManifestPayload)
        else ManifestPayload.model_validate(cast(Mapping[str, object], payload))
    )
    return PackageManifest(
        id=model.id or model.name,
        name=model.name,
        revision=model.rev,
        dist_tags=dict(model.dist_tags),
        versions={key: translate_version(version) for key, version in model.versions.items()},
    )
