"""SQLAlchemy adapter package for stocksync."""

from __future__ import annotations

from .mappings import TABLE_BY_CATEGORY, create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyDutyRepository,
    SqlAlchemyInventoryRepository,
    SqlAlchemyReferenceEntityRepository,
)
from .unit_of_work import (
    SqlAlchemyDutyUnitOfWork,
    SqlAlchemyImportUnitOfWork,
    StartupError,
    shutdown,
    startup,
)

__all__ = [
    "TABLE_BY_CATEGORY",
    "SqlAlchemyDutyRepository",
    "SqlAlchemyDutyUnitOfWork",
    "SqlAlchemyImportUnitOfWork",
    "SqlAlchemyInventoryRepository",
    "SqlAlchemyReferenceEntityRepository",
    "StartupError",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "startup",
]
