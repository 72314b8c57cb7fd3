from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from stocksync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyImportUnitOfWork,
    shutdown,
    startup,
)
from tests.helpers.imports import FakeImportUnitOfWork, FakeStore

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    # file-backed so worker threads share one database
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'stocksync.db'}", future=True)
    startup(engine=engine, force=True)
    try:
        yield engine
    finally:
        shutdown()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True, expire_on_commit=False)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Callable[[], SqlAlchemyImportUnitOfWork]:
    _ = sqlite_engine
    return SqlAlchemyImportUnitOfWork


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def fake_unit_of_work(fake_store: FakeStore) -> Callable[[], FakeImportUnitOfWork]:
    def factory() -> FakeImportUnitOfWork:
        return FakeImportUnitOfWork(fake_store)

    return factory


@pytest.fixture(autouse=True)
def clean_stocksync_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("STOCKSYNC_"):
            monkeypatch.delenv(name, raising=False)
