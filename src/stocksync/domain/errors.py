"""Error taxonomy for batch imports and the structured entries reported to callers.

Row-level problems (``RowValidationError``) only exclude the offending row.
Resolution, external-processing and persistence errors abort the batch that
raised them and are retried as a whole. ``ImportCancelledError`` stops the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from stocksync.domain.model import EntityCategory


class ErrorKind(StrEnum):
    VALIDATION = "validation"
    RESOLUTION = "resolution"
    EXTERNAL = "external"
    PERSISTENCE = "persistence"
    BATCH_FAILED = "batch_failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True, kw_only=True)
class ErrorEntry:
    """One human-readable problem, tagged with where it happened."""

    kind: ErrorKind
    message: str
    row_number: int | None = None
    batch_number: int | None = None
    context: Mapping[str, str] = field(default_factory=dict[str, str])

    def describe(self) -> str:
        location: list[str] = []
        if self.batch_number is not None:
            location.append(f"Batch {self.batch_number}")
        if self.row_number is not None:
            location.append(f"Row {self.row_number}")
        prefix = " ".join(location)
        return f"{prefix}: {self.message}" if prefix else self.message


class IngestError(Exception):
    """Base class for import failures."""

    kind: ClassVar[ErrorKind]


class RowValidationError(IngestError):
    """A row failed field-level or cross-field rules."""

    kind = ErrorKind.VALIDATION

    def __init__(self, row_number: int, messages: Sequence[str]) -> None:
        self.row_number = row_number
        self.messages = tuple(messages)
        super().__init__(f"Row {row_number}: {'; '.join(self.messages)}")

    def entries(self) -> list[ErrorEntry]:
        return [
            ErrorEntry(kind=self.kind, message=message, row_number=self.row_number)
            for message in self.messages
        ]


class InputFileError(IngestError):
    """The input file is missing, unreadable or not an accepted workbook."""

    kind = ErrorKind.VALIDATION


class ResolutionError(IngestError):
    """Reference entity lookup or creation failed."""

    kind = ErrorKind.RESOLUTION


class ResolutionConsistencyError(ResolutionError):
    """A business key had no resolved identifier when a record needed it."""

    def __init__(self, category: EntityCategory, key: str) -> None:
        self.category = category
        self.key = key
        super().__init__(f"No resolved {category} for key {key!r}")


class DuplicateKeyError(IngestError):
    """The store rejected a create because the business key already exists."""

    kind = ErrorKind.RESOLUTION

    def __init__(self, category: EntityCategory, keys: Sequence[str]) -> None:
        self.category = category
        self.keys = tuple(keys)
        super().__init__(f"Duplicate {category} keys: {', '.join(self.keys)}")


class ExternalProcessingError(IngestError):
    """The external processing step failed or did not finish in time."""

    kind = ErrorKind.EXTERNAL


class PersistenceError(IngestError):
    """Writing to the store failed."""

    kind = ErrorKind.PERSISTENCE


class ImportCancelledError(IngestError):
    """The run was cancelled by an operator or the system."""

    kind = ErrorKind.CANCELLED


__all__ = [
    "DuplicateKeyError",
    "ErrorEntry",
    "ErrorKind",
    "ExternalProcessingError",
    "ImportCancelledError",
    "InputFileError",
    "IngestError",
    "PersistenceError",
    "ResolutionConsistencyError",
    "ResolutionError",
    "RowValidationError",
]
