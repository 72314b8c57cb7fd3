"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import DutyRepository, InventoryRepository, ReferenceEntityRepository
from .processing import ExternalProcessingStep, ProcessingError, ProcessingOutcome
from .tabular import RawRow, TabularReader, TabularWriter
from .unit_of_work import (
    DutyRepositories,
    DutyUnitOfWork,
    ImportRepositories,
    ImportUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "DutyRepositories",
    "DutyRepository",
    "DutyUnitOfWork",
    "ExternalProcessingStep",
    "ImportRepositories",
    "ImportUnitOfWork",
    "InventoryRepository",
    "ProcessingError",
    "ProcessingOutcome",
    "RawRow",
    "ReferenceEntityRepository",
    "RepositoryCollection",
    "TabularReader",
    "TabularWriter",
    "UnitOfWork",
]
