"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from stocksync.adapters.sqlalchemy.mappings import TABLE_BY_CATEGORY, inventory_record_table
from stocksync.domain.errors import DuplicateKeyError, PersistenceError
from stocksync.domain.model import InventoryRecord, new_reference_entity

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from sqlalchemy.orm import Session

    from stocksync.domain.model import AfterHoursDuty, EntityCategory, InventoryLineKey

# keeps IN lists below the SQLite bound-parameter limit
_IN_CHUNK_SIZE = 500


def _chunks[T](values: Collection[T]) -> Iterable[list[T]]:
    ordered = list(values)
    for start in range(0, len(ordered), _IN_CHUNK_SIZE):
        yield ordered[start : start + _IN_CHUNK_SIZE]


class SqlAlchemyReferenceEntityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_ids(self, category: EntityCategory, keys: Collection[str]) -> dict[str, int]:
        table = TABLE_BY_CATEGORY[category]
        found: dict[str, int] = {}
        try:
            for chunk in _chunks(keys):
                stmt = select(table.c.key, table.c.id).where(table.c.key.in_(chunk))
                for key, entity_id in self.session.execute(stmt):
                    found[key] = entity_id
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Looking up {category} failed: {exc}") from exc
        return found

    def create(self, category: EntityCategory, keys: Collection[str], *, created_by: str) -> None:
        entities = [new_reference_entity(category, key, created_by=created_by) for key in keys]
        if not entities:
            return
        try:
            with self.session.begin_nested():
                self.session.add_all(entities)
                self.session.flush()
        except IntegrityError as exc:
            for entity in entities:
                if entity in self.session:
                    self.session.expunge(entity)
            raise DuplicateKeyError(category, [entity.key for entity in entities]) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Creating {category} failed: {exc}") from exc


class SqlAlchemyInventoryRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_lines(
        self, keys: Collection[InventoryLineKey]
    ) -> dict[InventoryLineKey, list[InventoryRecord]]:
        wanted = set(keys)
        grouped: dict[InventoryLineKey, list[InventoryRecord]] = {key: [] for key in wanted}
        order_ids = {key.order_id for key in wanted}
        try:
            for chunk in _chunks(order_ids):
                stmt = (
                    select(InventoryRecord)
                    .where(inventory_record_table.c.order_id.in_(chunk))
                    .order_by(inventory_record_table.c.id)
                )
                for record in self.session.execute(stmt).scalars():
                    if record.line_key in grouped:
                        grouped[record.line_key].append(record)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Loading inventory records failed: {exc}") from exc
        return {key: records for key, records in grouped.items() if records}

    def add_all(self, records: Iterable[InventoryRecord]) -> None:
        self.session.add_all(list(records))
        self._flush("Adding inventory records")

    def update_all(self, records: Iterable[InventoryRecord]) -> None:
        self.session.add_all(list(records))
        self._flush("Updating inventory records")

    def remove_all(self, records: Iterable[InventoryRecord]) -> None:
        for record in records:
            self.session.delete(record)
        self._flush("Removing inventory records")

    def _flush(self, action: str) -> None:
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"{action} failed: {exc}") from exc


class SqlAlchemyDutyRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add_all(self, duties: Iterable[AfterHoursDuty]) -> None:
        self.session.add_all(list(duties))
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Adding duty shifts failed: {exc}") from exc
