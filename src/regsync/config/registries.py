"""Registry and project configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_path
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig

DEFAULT_PROJECT_MANIFEST: Final[Path] = Path("Packages") / "manifest.json"
DEFAULT_CREDENTIALS_FILE: Final[Path] = Path("~") / ".upmconfig.toml"
REGISTRY_TIMEOUT_SECONDS: Final[float] = 30.0
RESULT_MAX_AGE_SECONDS: Final[float] = 3600.0


@dataclass(frozen=True, slots=True)
class RegistrySettings:
    """Where the host project keeps its registries, credentials and packages."""

    project_manifest: Path
    packages_dir: Path
    credentials_file: Path
    notify_url: str | None = None
    result_max_age_seconds: float = RESULT_MAX_AGE_SECONDS


def get_registry_settings() -> RegistrySettings:
    project_manifest = env_path("REGSYNC_PROJECT_MANIFEST", DEFAULT_PROJECT_MANIFEST)
    notify_url = os.getenv("REGSYNC_NOTIFY_URL")
    return RegistrySettings(
        project_manifest=project_manifest,
        packages_dir=env_path("REGSYNC_PACKAGES_DIR", project_manifest.parent),
        credentials_file=env_path("REGSYNC_CREDENTIALS_FILE", DEFAULT_CREDENTIALS_FILE),
        notify_url=notify_url.strip() if notify_url and notify_url.strip() else None,
    )


def registry_resilience(name: str, *, cache_path: Path | None = None) -> ResilienceConfig:
    """Resilience settings shared by manifest, archive and catalog requests."""

    return ResilienceConfig(
        name=name,
        timeout_seconds=REGISTRY_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=16, per_seconds=1.0),
        cache=CacheConfig(
            backend="sqlite" if cache_path is not None else "memory",
            sqlite_path=str(cache_path) if cache_path is not None else None,
        ),
        default_headers={"User-Agent": "regsync"},
    )
