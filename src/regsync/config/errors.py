"""Configuration error definitions."""

from __future__ import annotations

from regsync.domain.errors import ReconciliationError


class ConfigurationError(ReconciliationError):
    """Raised when configuration values are invalid; fatal for a whole pass."""
