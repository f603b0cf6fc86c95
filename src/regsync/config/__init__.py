"""Application configuration helpers."""

from __future__ import annotations

from regsync.common.logging import configure_logging

from .env import env_path
from .errors import ConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig
from .registries import RegistrySettings, get_registry_settings, registry_resilience

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "RateLimit",
    "RegistrySettings",
    "ResilienceConfig",
    "configure_logging",
    "env_path",
    "get_registry_settings",
    "registry_resilience",
]
