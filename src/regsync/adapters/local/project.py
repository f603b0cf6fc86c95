"""Load the scoped registries configured by the host project."""

from __future__ import annotations

import json
import re
import tomllib
from logging import getLogger
from typing import TYPE_CHECKING, Final
from urllib.parse import urlparse

from pydantic import ValidationError

from regsync.config.errors import ConfigurationError
from regsync.domain.model import ConfiguredRegistry, RegistryCredential, RegistryIdentity

from .schema import CredentialEntry, ProjectManifestPayload, ScopedRegistryPayload

if TYPE_CHECKING:
    from pathlib import Path

    from regsync.config.registries import RegistrySettings

log = getLogger(__name__)

CREDENTIALS_TABLE: Final[str] = "npmAuth"
_SCOPE_PATTERN = re.compile(
    r"^(?=.{1,253}$)[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)


def is_valid_scope(scope: str) -> bool:
    return bool(_SCOPE_PATTERN.match(scope))


def load_credentials(path: Path) -> dict[str, RegistryCredential]:
    """Read ``[npmAuth."<url>"]`` tables from the TOML credential file.

    A missing file means no credentials. Keys are normalised without a
    trailing slash.
    """

    if not path.is_file():
        log.debug("No credential file at %s", path)
        return {}
    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"Unable to read credential file {path}: {exc}") from exc

    table = document.get(CREDENTIALS_TABLE, {})
    if not isinstance(table, dict):
        raise ConfigurationError(f"[{CREDENTIALS_TABLE}] in {path} must be a table")

    credentials: dict[str, RegistryCredential] = {}
    for url, raw in table.items():
        try:
            entry = CredentialEntry.model_validate(raw)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid credential for {url} in {path}: {exc}") from exc
        credentials[url.rstrip("/")] = RegistryCredential(
            token=entry.token, always_auth=entry.always_auth
        )
    return credentials


def validate_registry(payload: ScopedRegistryPayload, credential: RegistryCredential) -> None:
    if not payload.name.strip():
        raise ConfigurationError(f"Scoped registry {payload.url!r} has no name")

    parsed = urlparse(payload.url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ConfigurationError(
            f"Scoped registry {payload.name!r} has an invalid URL: {payload.url!r}"
        )

    scopes = [scope for scope in payload.scopes if scope.strip()]
    if not scopes:
        raise ConfigurationError(f"Scoped registry {payload.name!r} has no scopes")
    invalid = [scope for scope in scopes if not is_valid_scope(scope)]
    if invalid:
        raise ConfigurationError(f"Scoped registry {payload.name!r} has invalid scopes: {invalid}")

    if credential.always_auth and not (credential.token and credential.token.strip()):
        raise ConfigurationError(
            f"Scoped registry {payload.name!r} requires authentication but has no token"
        )


def load_registries(
    manifest_path: Path,
    credentials: dict[str, RegistryCredential] | None = None,
) -> list[ConfiguredRegistry]:
    """Return the validated scoped registries of the project manifest, in file order."""

    try:
        raw = json.loads(manifest_path.read_text(encoding="utf-8-sig"))
        manifest = ProjectManifestPayload.model_validate(raw)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Project manifest not found: {manifest_path}") from exc
    except (OSError, ValueError, ValidationError) as exc:
        raise ConfigurationError(f"Invalid project manifest {manifest_path}: {exc}") from exc

    credentials = credentials or {}
    registries: list[ConfiguredRegistry] = []
    for payload in manifest.scoped_registries:
        credential = credentials.get(payload.url.rstrip("/"), RegistryCredential())
        validate_registry(payload, credential)
        registries.append(
            ConfiguredRegistry(
                identity=RegistryIdentity(name=payload.name, url=payload.url),
                scopes=tuple(scope for scope in payload.scopes if scope.strip()),
                credential=credential,
            )
        )
    log.debug("Loaded %s scoped registries from %s", len(registries), manifest_path)
    return registries


def load_project_registries(settings: RegistrySettings) -> list[ConfiguredRegistry]:
    return load_registries(
        settings.project_manifest,
        load_credentials(settings.credentials_file),
    )
