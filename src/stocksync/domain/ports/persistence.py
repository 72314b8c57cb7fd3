"""Ports for the persisted store: reference entities, inventory records and duty shifts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from stocksync.domain.model import (
        AfterHoursDuty,
        EntityCategory,
        InventoryLineKey,
        InventoryRecord,
    )


@runtime_checkable
class ReferenceEntityRepository(Protocol):
    """Bulk key lookup and creation for every reference category."""

    def find_ids(self, category: EntityCategory, keys: Collection[str]) -> dict[str, int]:
        """Return ``key -> id`` for the keys that already exist (one round trip)."""
        ...

    def create(self, category: EntityCategory, keys: Collection[str], *, created_by: str) -> None:
        """Insert ``keys`` atomically; raise ``DuplicateKeyError`` on a uniqueness race."""
        ...


@runtime_checkable
class InventoryRepository(Protocol):
    """Bulk access to inventory records grouped by purchase line."""

    def find_by_lines(
        self, keys: Collection[InventoryLineKey]
    ) -> dict[InventoryLineKey, list[InventoryRecord]]: ...

    def add_all(self, records: Iterable[InventoryRecord]) -> None: ...

    def update_all(self, records: Iterable[InventoryRecord]) -> None: ...

    def remove_all(self, records: Iterable[InventoryRecord]) -> None: ...


@runtime_checkable
class DutyRepository(Protocol):
    def add_all(self, duties: Iterable[AfterHoursDuty]) -> None: ...
