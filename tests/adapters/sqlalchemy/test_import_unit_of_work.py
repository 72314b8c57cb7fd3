from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, inspect

from stocksync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyImportUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from stocksync.domain.batching import Checkpoint
from stocksync.domain.errors import ExternalProcessingError
from stocksync.domain.ingest import partition
from stocksync.domain.model import EntityCategory, InventoryLineKey
from stocksync.domain.reconciliation import ReconciliationEngine
from tests.helpers.imports import FakeExternalStep, make_record

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyImportUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b
    assert is_started()


def test_startup_applies_migrations(sqlite_engine: Engine) -> None:
    tables = set(inspect(sqlite_engine).get_table_names())

    assert {"purchase_order", "bill_reference", "inventory_record", "alembic_version"} <= tables


def test_committed_batch_is_visible_to_next_unit_of_work(
    sqlite_unit_of_work: Callable[[], SqlAlchemyImportUnitOfWork],
) -> None:
    engine = ReconciliationEngine(sqlite_unit_of_work)
    (batch,) = partition([make_record(quantity=3, project_code="P-1")], 10)

    result = engine.process(batch)

    assert result.succeeded_rows == 1
    with sqlite_unit_of_work() as uow:
        repositories = uow.repositories
        ids = repositories.reference_entities.find_ids(EntityCategory.ORDER, {"PO-1"})
        line = InventoryLineKey(ids["PO-1"], "BILL-1", "10")
        records = repositories.inventory.find_by_lines([line])[line]
    assert len(records) == 3
    assert all(record.project_id is not None for record in records)


def test_failed_batch_leaves_no_partial_writes(
    sqlite_unit_of_work: Callable[[], SqlAlchemyImportUnitOfWork],
) -> None:
    engine = ReconciliationEngine(sqlite_unit_of_work, external_step=FakeExternalStep(failures=1))
    (batch,) = partition([make_record(quantity=2)], 10)

    with pytest.raises(ExternalProcessingError):
        engine.process(batch, checkpoint=Checkpoint())

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.reference_entities.find_ids(EntityCategory.ORDER, {"PO-1"}) == {}


def test_reimport_with_lower_quantity_removes_units(
    sqlite_unit_of_work: Callable[[], SqlAlchemyImportUnitOfWork],
) -> None:
    engine = ReconciliationEngine(sqlite_unit_of_work)
    (first,) = partition([make_record(quantity=4)], 10)
    (second,) = partition([make_record(quantity=1)], 10)

    engine.process(first)
    result = engine.process(second)

    assert "3 removed" in result.summary
    with sqlite_unit_of_work() as uow:
        ids = uow.repositories.reference_entities.find_ids(EntityCategory.ORDER, {"PO-1"})
        line = InventoryLineKey(ids["PO-1"], "BILL-1", "10")
        assert len(uow.repositories.inventory.find_by_lines([line])[line]) == 1
