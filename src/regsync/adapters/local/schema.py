"""Pydantic models for files kept inside the host project."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LocalBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LocalPackageJson(LocalBaseModel):
    name: str
    version: str


class ScopedRegistryPayload(LocalBaseModel):
    name: str = ""
    url: str = ""
    scopes: list[str] = Field(default_factory=list[str])


class ProjectManifestPayload(LocalBaseModel):
    scoped_registries: list[ScopedRegistryPayload] = Field(
        default_factory=list[ScopedRegistryPayload], alias="scopedRegistries"
    )


class CredentialEntry(LocalBaseModel):
    token: str | None = None
    always_auth: bool = Field(default=False, alias="alwaysAuth")
