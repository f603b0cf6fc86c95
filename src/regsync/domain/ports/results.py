"""Port for persisting the output of a reconciliation pass."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from regsync.domain.model import RegistryPackageGroup


@runtime_checkable
class ReconciliationResultRepository(Protocol):
    def save(self, groups: Sequence[RegistryPackageGroup]) -> None:
        """Replace any previously stored result wholesale."""
        ...

    def restore(self) -> list[RegistryPackageGroup] | None: ...
