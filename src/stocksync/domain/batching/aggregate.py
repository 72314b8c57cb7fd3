"""Fold batch outcomes into the single report returned to callers."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from itertools import chain
from typing import TYPE_CHECKING

from stocksync.domain.errors import ErrorEntry, ErrorKind

from .results import BatchResult, BatchStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stocksync.domain.errors import RowValidationError


class ImportOutcome(StrEnum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportReport:
    """Counts, ordered errors and timing for one import run.

    ``errors`` is always complete; ``visible_errors`` is the prefix a caller
    should display.
    """

    outcome: ImportOutcome
    total_rows: int
    valid_rows: int
    succeeded_rows: int
    rejected_rows: int
    failed_rows: int
    unprocessed_rows: int
    batches: tuple[BatchResult, ...] = ()
    errors: tuple[ErrorEntry, ...] = ()
    elapsed_seconds: float = 0.0
    error_display_limit: int | None = None
    message: str = ""

    @property
    def batch_count(self) -> int:
        return len(self.batches)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def visible_errors(self) -> tuple[ErrorEntry, ...]:
        if self.error_display_limit is None:
            return self.errors
        return self.errors[: self.error_display_limit]

    @property
    def hidden_error_count(self) -> int:
        return self.error_count - len(self.visible_errors)

    @property
    def elapsed_ms(self) -> int:
        return round(self.elapsed_seconds * 1000)

    @property
    def success(self) -> bool:
        return self.outcome is ImportOutcome.SUCCESS

    def to_dict(self) -> dict[str, object]:
        return {
            "outcome": str(self.outcome),
            "message": self.message,
            "total_rows": self.total_rows,
            "valid_rows": self.valid_rows,
            "succeeded_rows": self.succeeded_rows,
            "rejected_rows": self.rejected_rows,
            "failed_rows": self.failed_rows,
            "unprocessed_rows": self.unprocessed_rows,
            "batch_count": self.batch_count,
            "error_count": self.error_count,
            "errors": [entry.describe() for entry in self.visible_errors],
            "elapsed_ms": self.elapsed_ms,
        }


@dataclass(slots=True)
class _Totals:
    succeeded: int = 0
    failed: int = 0
    unprocessed: int = 0
    completed_batches: int = 0
    errors: list[ErrorEntry] = field(default_factory=list["ErrorEntry"])


def aggregate(
    batch_results: Sequence[BatchResult],
    *,
    total_rows: int,
    rejected: Sequence[RowValidationError] = (),
    elapsed_seconds: float = 0.0,
    cancelled: bool = False,
    cancel_reason: str | None = None,
    error_display_limit: int | None = None,
) -> ImportReport:
    """Merge ``batch_results`` (in submission order) and row rejections into a report.

    Validation errors come first in row order, then batch errors in batch order.
    """

    ordered = sorted(batch_results, key=lambda result: result.batch_number)
    totals = _Totals()
    for result in ordered:
        totals.succeeded += result.succeeded_rows
        totals.failed += result.failed_rows
        totals.unprocessed += result.unprocessed_rows
        if result.status in (BatchStatus.SUCCEEDED, BatchStatus.FAILED):
            totals.completed_batches += 1
        totals.errors.extend(result.errors)

    validation_entries = list(
        chain.from_iterable(
            error.entries() for error in sorted(rejected, key=lambda error: error.row_number)
        )
    )
    errors = validation_entries + totals.errors
    if cancelled:
        errors.append(
            ErrorEntry(kind=ErrorKind.CANCELLED, message=cancel_reason or "Import cancelled")
        )

    outcome = _classify(succeeded=totals.succeeded, error_count=len(errors), cancelled=cancelled)
    valid_rows = sum(result.total_rows for result in ordered)
    report = ImportReport(
        outcome=outcome,
        total_rows=total_rows,
        valid_rows=valid_rows,
        succeeded_rows=totals.succeeded,
        rejected_rows=len(rejected),
        failed_rows=totals.failed,
        unprocessed_rows=totals.unprocessed,
        batches=tuple(ordered),
        errors=tuple(errors),
        elapsed_seconds=elapsed_seconds,
        error_display_limit=error_display_limit,
    )
    return replace(report, message=_message(report, completed_batches=totals.completed_batches))


def failed_report(
    message: str,
    *,
    total_rows: int = 0,
    errors: Sequence[ErrorEntry] = (),
    elapsed_seconds: float = 0.0,
) -> ImportReport:
    """Report for a run that could not start (bad file, missing columns, no rows)."""

    return ImportReport(
        outcome=ImportOutcome.FAILURE,
        total_rows=total_rows,
        valid_rows=0,
        succeeded_rows=0,
        rejected_rows=0,
        failed_rows=0,
        unprocessed_rows=0,
        errors=tuple(errors),
        elapsed_seconds=elapsed_seconds,
        message=message,
    )


def _classify(*, succeeded: int, error_count: int, cancelled: bool) -> ImportOutcome:
    if cancelled:
        return ImportOutcome.CANCELLED
    if succeeded == 0:
        return ImportOutcome.FAILURE
    if error_count == 0:
        return ImportOutcome.SUCCESS
    return ImportOutcome.PARTIAL_SUCCESS


def _message(report: ImportReport, *, completed_batches: int) -> str:
    counts = f"{report.succeeded_rows}/{report.total_rows} rows"
    match report.outcome:
        case ImportOutcome.CANCELLED:
            return (
                f"Import cancelled after {completed_batches} of {report.batch_count} batches; "
                f"imported {counts}"
            )
        case ImportOutcome.SUCCESS:
            return f"Imported {counts} in {report.elapsed_ms} ms"
        case _ if report.valid_rows == 0:
            return f"No valid rows to import; {report.error_count} errors"
        case _:
            return f"Import completed with {report.error_count} errors; imported {counts}"
