"""Structural and byte-level comparison of two package archives.

Both archives are unpacked into process-unique temporary directories and
compared in four passes: the embedded ``package/package.json`` manifest,
the file count, the set of relative file paths, and finally the contents
and metadata of every path present on both sides. Differences are
collected as :class:`DifferenceTag` values; an empty tag set means the
archives are identical.
"""

from __future__ import annotations

import io
import json
import os
import shutil
import stat
import tarfile
import tempfile
from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

log = getLogger(__name__)

MANIFEST_PATH: Final[str] = "package/package.json"
CHUNK_SIZE: Final[int] = 8192


class DifferenceTag(StrEnum):
    MANIFEST_DIFFERS = "manifest_differs"
    FILE_COUNT_DIFFERS = "file_count_differs"
    FILE_NAMES_DIFFER = "file_names_differ"
    FILE_CONTENTS_DIFFER = "file_contents_differ"
    METADATA_DIFFERS = "metadata_differs"


class FileSide(StrEnum):
    FIRST = "first"
    SECOND = "second"
    BOTH = "both"


@dataclass(frozen=True, slots=True)
class DifferingFile:
    path: str
    side: FileSide

    def __str__(self) -> str:
        if self.side is FileSide.BOTH:
            return self.path
        return f"{self.path} (only in {self.side} package)"


@dataclass(frozen=True, slots=True)
class ComparisonReport:
    """Outcome of one :func:`compare_archives` call.

    ``error`` is set when extraction or reading failed part-way; the tags
    and descriptions then only cover what was compared before the failure.
    """

    result: frozenset[DifferenceTag] = frozenset()
    differences: tuple[str, ...] = ()
    different_files: tuple[DifferingFile, ...] = ()
    error: str | None = None

    @property
    def identical(self) -> bool:
        return not self.result

    @property
    def failed(self) -> bool:
        return self.error is not None

    def format(self) -> str:
        """Render the report as plain text."""

        tags = ", ".join(sorted(self.result)) or "identical"
        lines = [
            "Package Archive Comparison Report",
            "=================================",
            f"Overall result: {tags}",
            "",
        ]
        if self.identical and not self.failed:
            lines.append("The packages are identical.")
            return "\n".join(lines) + "\n"

        lines += ["Differences found:", "-----------------"]
        lines += [f"- {difference}" for difference in self.differences]
        lines += ["", "Files with differences:", "----------------------"]
        if self.different_files:
            lines += [f"- {entry}" for entry in self.different_files]
        else:
            lines.append("No file differences detected (metadata differences only).")
        return "\n".join(lines) + "\n"


class _ReportBuilder:
    def __init__(self) -> None:
        self.tags: set[DifferenceTag] = set()
        self.differences: list[str] = []
        self.files: list[DifferingFile] = []

    def flag(self, tag: DifferenceTag, description: str) -> None:
        self.tags.add(tag)
        self.differences.append(description)

    def build(self, *, error: str | None = None) -> ComparisonReport:
        return ComparisonReport(
            result=frozenset(self.tags),
            differences=tuple(self.differences),
            different_files=tuple(self.files),
            error=error,
        )


def compare_archives(first: bytes, second: bytes) -> ComparisonReport:
    """Compare two gzip-compressed tar archives.

    Never raises for extraction or I/O failures: the exception message is
    appended to the descriptions and the partial report is returned.
    Temporary directories are removed on every exit path.
    """

    builder = _ReportBuilder()
    first_dir = Path(tempfile.mkdtemp(prefix="regsync-first-"))
    second_dir = Path(tempfile.mkdtemp(prefix="regsync-second-"))
    try:
        _extract(first, first_dir)
        _extract(second, second_dir)

        _compare_manifests(first_dir, second_dir, builder)

        first_files = _relative_files(first_dir)
        second_files = _relative_files(second_dir)
        if len(first_files) != len(second_files):
            builder.flag(
                DifferenceTag.FILE_COUNT_DIFFERS,
                f"File count differs: {len(first_files)} vs {len(second_files)}",
            )

        _compare_file_names(first_files, second_files, builder)
        _compare_common_files(first_files & second_files, first_dir, second_dir, builder)
    except (OSError, tarfile.TarError, EOFError, ValueError) as exc:
        log.exception("Error comparing package archives")
        message = f"Error during comparison: {exc}"
        builder.differences.append(message)
        return builder.build(error=message)
    finally:
        _cleanup(first_dir)
        _cleanup(second_dir)

    return builder.build()


def _extract(data: bytes, destination: Path) -> None:
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
        archive.extractall(destination, filter="data")


def _cleanup(directory: Path) -> None:
    try:
        shutil.rmtree(directory)
    except FileNotFoundError:
        return
    except OSError as exc:
        log.warning("Error cleaning up temporary folder %s: %s", directory, exc)


def _relative_files(root: Path) -> set[str]:
    files: set[str] = set()
    for directory, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            files.add((Path(directory) / filename).relative_to(root).as_posix())
    return files


def _compare_manifests(first_dir: Path, second_dir: Path, builder: _ReportBuilder) -> None:
    first_path = first_dir / MANIFEST_PATH
    second_path = second_dir / MANIFEST_PATH
    first_exists = first_path.is_file()
    second_exists = second_path.is_file()

    if not first_exists and not second_exists:
        builder.flag(DifferenceTag.MANIFEST_DIFFERS, "package.json is absent from both packages")
        return
    if not first_exists or not second_exists:
        builder.flag(
            DifferenceTag.MANIFEST_DIFFERS, "package.json is present in only one of the packages"
        )
        return

    first_manifest = _load_manifest(first_path)
    second_manifest = _load_manifest(second_path)
    if first_manifest == second_manifest:
        return

    builder.tags.add(DifferenceTag.MANIFEST_DIFFERS)
    for key in _ordered_union(first_manifest, second_manifest):
        first_value = first_manifest.get(key)
        second_value = second_manifest.get(key)
        if first_value == second_value:
            continue
        if (
            key == "dependencies"
            and isinstance(first_value, dict)
            and isinstance(second_value, dict)
        ):
            builder.differences.extend(_dependency_differences(first_value, second_value))
            continue
        builder.differences.append(
            f"Package {key} differs: {_describe(first_value)} vs {_describe(second_value)}"
        )


def _load_manifest(path: Path) -> dict[str, object]:
    payload = json.loads(path.read_text(encoding="utf-8-sig"))
    if not isinstance(payload, dict):
        raise ValueError(f"{MANIFEST_PATH} is not a JSON object")
    return payload


def _ordered_union(first: Mapping[str, object], second: Mapping[str, object]) -> list[str]:
    keys = list(first)
    keys += [key for key in second if key not in first]
    return keys


def _dependency_differences(
    first: Mapping[str, object], second: Mapping[str, object]
) -> list[str]:
    descriptions: list[str] = []
    for name in _ordered_union(first, second):
        first_value = first.get(name)
        second_value = second.get(name)
        if first_value != second_value:
            descriptions.append(
                f"Dependency '{name}' differs: "
                f"{_describe(first_value)} vs {_describe(second_value)}"
            )
    return descriptions


def _describe(value: object) -> str:
    if value is None:
        return "not found"
    if isinstance(value, str):
        return f"'{value}'"
    return json.dumps(value, sort_keys=True)


def _compare_file_names(first: set[str], second: set[str], builder: _ReportBuilder) -> None:
    only_in_first = sorted(first - second)
    only_in_second = sorted(second - first)
    if not only_in_first and not only_in_second:
        return

    builder.tags.add(DifferenceTag.FILE_NAMES_DIFFER)
    for path in only_in_first:
        builder.differences.append(f"File exists only in first package: {path}")
        builder.files.append(DifferingFile(path, FileSide.FIRST))
    for path in only_in_second:
        builder.differences.append(f"File exists only in second package: {path}")
        builder.files.append(DifferingFile(path, FileSide.SECOND))


def _compare_common_files(
    common: set[str], first_dir: Path, second_dir: Path, builder: _ReportBuilder
) -> None:
    for relative in sorted(common):
        first_path = first_dir / relative
        second_path = second_dir / relative

        if not files_equal(first_path, second_path):
            builder.flag(DifferenceTag.FILE_CONTENTS_DIFFER, f"File content differs: {relative}")
            builder.files.append(DifferingFile(relative, FileSide.BOTH))

        # Metadata-only differences never reach the differing-files list.
        first_stat = first_path.stat()
        second_stat = second_path.stat()
        if first_stat.st_size != second_stat.st_size:
            builder.flag(
                DifferenceTag.METADATA_DIFFERS,
                f"File size differs for {relative}: "
                f"{first_stat.st_size} vs {second_stat.st_size}",
            )
        first_mode = _attribute_bits(first_stat.st_mode)
        second_mode = _attribute_bits(second_stat.st_mode)
        if first_mode != second_mode:
            builder.flag(
                DifferenceTag.METADATA_DIFFERS,
                f"File attributes differ for {relative}: "
                f"{stat.filemode(first_mode)} vs {stat.filemode(second_mode)}",
            )


def _attribute_bits(mode: int) -> int:
    return stat.S_IFMT(mode) | stat.S_IMODE(mode)


def files_equal(first: Path, second: Path) -> bool:
    """Return whether two files hold the same bytes, streaming in fixed chunks."""

    if str(first).casefold() == str(second).casefold():
        return True

    if first.stat().st_size != second.stat().st_size:
        return False

    with first.open("rb") as first_handle, second.open("rb") as second_handle:
        while True:
            first_chunk = first_handle.read(CHUNK_SIZE)
            second_chunk = second_handle.read(CHUNK_SIZE)
            if len(first_chunk) != len(second_chunk) or first_chunk != second_chunk:
                return False
            if not first_chunk:
                return True
