"""Drive batches through a processor with retries, timeouts, pacing and cancellation."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from stocksync.domain.errors import (
    ErrorEntry,
    ErrorKind,
    ImportCancelledError,
    IngestError,
    RowValidationError,
)
from stocksync.domain.ingest import group_quantities, parse_rows, partition

from .aggregate import aggregate, failed_report
from .cancellation import CancellationToken
from .results import BatchResult, BatchStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from stocksync.config import ImportConfig
    from stocksync.domain.ingest import Batch, ParsedRows
    from stocksync.domain.ports.tabular import RawRow

    from .aggregate import ImportReport
    from .processor import BatchProcessor

log = logging.getLogger(__name__)


class BatchOrchestrator:
    """Run an import as a sequence of independently retried batches.

    ``run_import`` never raises; every outcome is an ``ImportReport``.
    """

    def __init__(
        self,
        processor: BatchProcessor,
        config: ImportConfig,
        *,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._processor = processor
        self._config = config
        self._clock = clock

    async def run_import(
        self,
        rows: Sequence[RawRow],
        *,
        token: CancellationToken | None = None,
    ) -> ImportReport:
        started = self._clock()
        try:
            parsed = parse_rows(rows)
        except RowValidationError as exc:
            log.error("Rejected input: %s", exc)
            return failed_report(
                "Input is missing required columns",
                errors=exc.entries(),
                elapsed_seconds=self._clock() - started,
            )
        return await self.run_records(parsed, token=token, started=started)

    async def run_records(
        self,
        parsed: ParsedRows,
        *,
        token: CancellationToken | None = None,
        started: float | None = None,
    ) -> ImportReport:
        started = self._clock() if started is None else started
        token = token or CancellationToken()
        if parsed.total_rows == 0:
            return failed_report("No rows to import", elapsed_seconds=self._clock() - started)

        batches = partition(
            parsed.records,
            self._config.batch_size,
            group_totals=group_quantities(parsed.records),
        )
        log.info(
            "Starting import: %s rows (%s valid), %s batches of up to %s",
            parsed.total_rows,
            parsed.valid_rows,
            len(batches),
            self._config.batch_size,
        )
        try:
            results = await self.run_batches(batches, token=token)
        except Exception:
            # the run boundary never raises
            log.exception("Import aborted unexpectedly")
            results = [
                BatchResult(
                    batch_number=batch.number,
                    total_rows=len(batch),
                    status=BatchStatus.FAILED,
                    errors=_synthesize_failures(batch, 0, "Import aborted unexpectedly"),
                )
                for batch in batches
            ]

        report = aggregate(
            results,
            total_rows=parsed.total_rows,
            rejected=parsed.rejected,
            elapsed_seconds=self._clock() - started,
            cancelled=token.cancelled,
            cancel_reason=token.reason,
            error_display_limit=self._config.error_display_limit,
        )
        if token.cancelled:
            log.warning("%s", report.message)
        else:
            log.info("%s", report.message)
        return report

    async def run_batches(
        self, batches: Sequence[Batch], *, token: CancellationToken
    ) -> list[BatchResult]:
        """Process ``batches`` and return one result per batch, in submission order."""

        if self._config.parallel_batches and len(batches) > 1:
            return await self._run_parallel(batches, token)
        return await self._run_sequential(batches, token)

    async def _run_sequential(
        self, batches: Sequence[Batch], token: CancellationToken
    ) -> list[BatchResult]:
        results: list[BatchResult] = []
        for index, batch in enumerate(batches):
            if index > 0:
                try:
                    await token.sleep(self._config.pacing_delay_seconds)
                except ImportCancelledError:
                    break
            if token.cancelled:
                break
            results.append(await self._run_batch(batch, token, total=len(batches)))
        return results + [_not_started(batch) for batch in batches[len(results) :]]

    async def _run_parallel(
        self, batches: Sequence[Batch], token: CancellationToken
    ) -> list[BatchResult]:
        semaphore = asyncio.Semaphore(self._config.max_parallel_batches)

        async def run_one(index: int, batch: Batch) -> BatchResult:
            async with semaphore:
                if index >= self._config.max_parallel_batches:
                    try:
                        await token.sleep(self._config.pacing_delay_seconds)
                    except ImportCancelledError:
                        return _not_started(batch)
                if token.cancelled:
                    return _not_started(batch)
                return await self._run_batch(batch, token, total=len(batches))

        return list(
            await asyncio.gather(*(run_one(index, batch) for index, batch in enumerate(batches)))
        )

    async def _run_batch(
        self, batch: Batch, token: CancellationToken, *, total: int
    ) -> BatchResult:
        config = self._config
        result = BatchResult(batch_number=batch.number, total_rows=len(batch))
        started = self._clock()
        reason = ""
        for attempt in range(1, config.max_retries + 1):
            result.attempts = attempt
            result.status = BatchStatus.RUNNING
            log.info(
                "Processing batch %s/%s (%s rows), attempt %s/%s",
                batch.number,
                total,
                len(batch),
                attempt,
                config.max_retries,
            )
            try:
                async with asyncio.timeout(config.batch_timeout_seconds):
                    outcome = await token.guard(
                        self._processor(batch, attempt=attempt, token=token)
                    )
            except ImportCancelledError:
                log.warning("Batch %s cancelled during attempt %s", batch.number, attempt)
                result.status = BatchStatus.CANCELLED
                break
            except TimeoutError:
                reason = f"timed out after {config.batch_timeout_seconds:g} s"
            except IngestError as exc:
                reason = str(exc) or type(exc).__name__
            except Exception as exc:
                log.exception("Unexpected error in batch %s attempt %s", batch.number, attempt)
                reason = f"{type(exc).__name__}: {exc}"
            else:
                result.status = BatchStatus.SUCCEEDED
                result.succeeded_rows = outcome.succeeded_rows
                result.errors.extend(outcome.errors)
                result.summary = outcome.summary
                log.info(
                    "Batch %s completed on attempt %s: %s",
                    batch.number,
                    attempt,
                    outcome.summary or f"{outcome.succeeded_rows} rows",
                )
                break

            if attempt == config.max_retries:
                log.error(
                    "Batch %s failed after %s attempts: %s", batch.number, attempt, reason
                )
                result.status = BatchStatus.FAILED
                result.errors.extend(_synthesize_failures(batch, attempt, reason))
                break

            delay = config.retry_delay_for(attempt)
            result.status = BatchStatus.RETRYING
            log.warning(
                "Batch %s attempt %s failed: %s; retrying in %.1f s",
                batch.number,
                attempt,
                reason,
                delay,
            )
            try:
                await token.sleep(delay)
            except ImportCancelledError:
                result.status = BatchStatus.CANCELLED
                break

        result.elapsed_seconds = self._clock() - started
        return result


def _not_started(batch: Batch) -> BatchResult:
    return BatchResult(
        batch_number=batch.number, total_rows=len(batch), status=BatchStatus.CANCELLED
    )


def _synthesize_failures(batch: Batch, attempts: int, reason: str) -> list[ErrorEntry]:
    message = f"Failed after {attempts} attempts: {reason}" if attempts else reason
    return [
        ErrorEntry(
            kind=ErrorKind.BATCH_FAILED,
            message=message,
            row_number=record.row_number,
            batch_number=batch.number,
        )
        for record in batch.records
    ]
