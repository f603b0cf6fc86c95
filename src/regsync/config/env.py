"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from pathlib import Path


def env_path(name: str, default: Path) -> Path:
    """Return a path from the environment, falling back to ``default`` when unset or blank."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default.expanduser()
    return Path(value.strip()).expanduser()
