"""Pydantic models describing npm registry payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from regsync.domain.versions import SemanticVersion


class NpmBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class DistPayload(NpmBaseModel):
    tarball: str
    shasum: str | None = None
    integrity: str | None = None


class VersionPayload(NpmBaseModel):
    name: str
    version: str
    dist: DistPayload
    dependencies: dict[str, str] = Field(default_factory=dict[str, str])

    @field_validator("version")
    @classmethod
    def _require_semver(cls, value: str) -> str:
        if not SemanticVersion.is_valid(value):
            raise ValueError(f"Invalid semantic version: {value!r}")
        return value


class ManifestPayload(NpmBaseModel):
    id: str = Field(default="", alias="_id")
    rev: str = Field(default="", alias="_rev")
    name: str
    dist_tags: dict[str, str] = Field(default_factory=dict[str, str], alias="dist-tags")
    versions: dict[str, VersionPayload] = Field(default_factory=dict[str, VersionPayload])

    @field_validator("versions")
    @classmethod
    def _require_semver_keys(cls, value: dict[str, VersionPayload]) -> dict[str, VersionPayload]:
        invalid = [key for key in value if not SemanticVersion.is_valid(key)]
        if invalid:
            raise ValueError(f"Invalid semantic version keys: {invalid}")
        return value


class SearchPackage(NpmBaseModel):
    name: str
    version: str | None = None


class SearchObject(NpmBaseModel):
    package: SearchPackage


class SearchResponse(NpmBaseModel):
    objects: list[SearchObject] = Field(default_factory=list[SearchObject])
    total: int = 0


class ErrorResponse(NpmBaseModel):
    error: str
    reason: str | None = None
