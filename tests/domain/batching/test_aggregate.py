from __future__ import annotations

from stocksync.domain.batching import (
    BatchResult,
    BatchStatus,
    ImportOutcome,
    aggregate,
    failed_report,
)
from stocksync.domain.errors import ErrorEntry, ErrorKind, RowValidationError


def _failure(batch: int, row: int) -> ErrorEntry:
    return ErrorEntry(
        kind=ErrorKind.BATCH_FAILED, message="boom", row_number=row, batch_number=batch
    )


def test_results_are_merged_in_batch_order() -> None:
    results = [
        BatchResult(
            batch_number=2,
            total_rows=2,
            status=BatchStatus.FAILED,
            errors=[_failure(2, 4), _failure(2, 5)],
        ),
        BatchResult(batch_number=1, total_rows=2, status=BatchStatus.SUCCEEDED, succeeded_rows=2),
    ]
    rejected = [RowValidationError(9, ["bad"]), RowValidationError(6, ["worse"])]

    report = aggregate(results, total_rows=6, rejected=rejected)

    assert [batch.batch_number for batch in report.batches] == [1, 2]
    assert [entry.row_number for entry in report.errors] == [6, 9, 4, 5]
    assert report.outcome is ImportOutcome.PARTIAL_SUCCESS
    assert report.succeeded_rows == 2
    assert report.failed_rows == 2
    assert report.rejected_rows == 2
    assert report.valid_rows == 4


def test_row_accounting_adds_up() -> None:
    results = [
        BatchResult(batch_number=1, total_rows=3, status=BatchStatus.SUCCEEDED, succeeded_rows=2),
        BatchResult(batch_number=2, total_rows=3, status=BatchStatus.FAILED),
        BatchResult(batch_number=3, total_rows=3, status=BatchStatus.CANCELLED),
    ]

    report = aggregate(results, total_rows=10, rejected=[RowValidationError(2, ["x"])])

    assert (
        report.succeeded_rows + report.failed_rows + report.unprocessed_rows + report.rejected_rows
        == report.total_rows
    )


def test_success_requires_no_errors() -> None:
    results = [
        BatchResult(batch_number=1, total_rows=1, status=BatchStatus.SUCCEEDED, succeeded_rows=1)
    ]

    report = aggregate(results, total_rows=1, elapsed_seconds=0.25)

    assert report.outcome is ImportOutcome.SUCCESS
    assert report.success
    assert report.elapsed_ms == 250
    assert report.message == "Imported 1/1 rows in 250 ms"


def test_cancelled_run_appends_cancel_entry() -> None:
    results = [
        BatchResult(batch_number=1, total_rows=2, status=BatchStatus.SUCCEEDED, succeeded_rows=2),
        BatchResult(batch_number=2, total_rows=2, status=BatchStatus.CANCELLED),
    ]

    report = aggregate(results, total_rows=4, cancelled=True, cancel_reason=None)

    assert report.outcome is ImportOutcome.CANCELLED
    assert report.errors[-1] == ErrorEntry(kind=ErrorKind.CANCELLED, message="Import cancelled")
    assert report.unprocessed_rows == 2
    assert report.message == "Import cancelled after 1 of 2 batches; imported 2/4 rows"


def test_display_limit_keeps_every_error() -> None:
    errors = [_failure(1, row) for row in range(2, 12)]
    results = [
        BatchResult(batch_number=1, total_rows=10, status=BatchStatus.FAILED, errors=errors)
    ]

    report = aggregate(results, total_rows=10, error_display_limit=3)

    assert report.error_count == 10
    assert len(report.visible_errors) == 3
    assert report.hidden_error_count == 7
    assert report.to_dict()["errors"] == [
        "Batch 1 Row 2: boom",
        "Batch 1 Row 3: boom",
        "Batch 1 Row 4: boom",
    ]


def test_failed_report_counts_nothing() -> None:
    entry = ErrorEntry(kind=ErrorKind.VALIDATION, message="Missing required column: PoCode")

    report = failed_report("Input is missing required columns", errors=[entry])

    assert report.outcome is ImportOutcome.FAILURE
    assert report.succeeded_rows == 0
    assert report.batch_count == 0
    assert report.to_dict()["message"] == "Input is missing required columns"
    assert report.to_dict()["outcome"] == "failure"
