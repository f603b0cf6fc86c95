"""Pack local package directories into npm-style archives."""

from __future__ import annotations

import asyncio
import gzip
import io
import stat
import tarfile
from pathlib import Path
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from regsync.adapters.npm.client import NpmRegistryClient
    from regsync.domain.model import RegistryCredential

ARCHIVE_ROOT: Final[str] = "package"
IGNORED_NAMES: Final[frozenset[str]] = frozenset({".git", "node_modules"})
# 1985-10-26T08:15:00Z, the fixed mtime npm writes into packed archives.
NPM_PACK_MTIME: Final[int] = 499162500


def pack_directory(directory: Path) -> bytes:
    """Return a gzip tarball of ``directory`` with entries under ``package/``.

    Entries are sorted and carry normalised ownership, timestamps and modes
    so packing the same contents twice yields the same bytes.
    """

    if not directory.is_dir():
        raise FileNotFoundError(f"Package directory not found: {directory}")

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as archive:
        for path in _iter_files(directory):
            relative = path.relative_to(directory).as_posix()
            info = archive.gettarinfo(str(path), arcname=f"{ARCHIVE_ROOT}/{relative}")
            _normalise(info)
            with path.open("rb") as handle:
                archive.addfile(info, handle)
    return gzip.compress(buffer.getvalue(), mtime=0)


def _iter_files(directory: Path) -> list[Path]:
    files: list[Path] = []
    for path in sorted(directory.rglob("*")):
        relative_parts = path.relative_to(directory).parts
        if any(part in IGNORED_NAMES for part in relative_parts):
            continue
        if path.is_file() and not path.is_symlink():
            files.append(path)
    return files


def _normalise(info: tarfile.TarInfo) -> None:
    executable = bool(info.mode & stat.S_IXUSR)
    info.mode = 0o755 if executable else 0o644
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    info.mtime = NPM_PACK_MTIME


class PackageArchiveFetcher:
    """Routes archive requests: URLs go to the registry, local paths get packed."""

    def __init__(self, registry: NpmRegistryClient) -> None:
        self._registry = registry

    async def fetch_archive_bytes(
        self,
        source: str | Path,
        credential: RegistryCredential | None = None,
    ) -> bytes:
        if isinstance(source, Path) or not source.startswith(("http://", "https://")):
            return await asyncio.to_thread(pack_directory, Path(source))
        return await self._registry.fetch_archive(source, credential)
