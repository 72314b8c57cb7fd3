"""Async seam between the orchestrator and whatever processes one batch."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .cancellation import Checkpoint, finished_cleanly

if TYPE_CHECKING:
    from stocksync.domain.ingest import Batch

    from .cancellation import CancellationToken
    from .results import AttemptResult

log = logging.getLogger(__name__)


@runtime_checkable
class BatchProcessor(Protocol):
    """Run one attempt of one batch; raise an ``IngestError`` to fail the attempt."""

    async def __call__(
        self, batch: Batch, *, attempt: int, token: CancellationToken
    ) -> AttemptResult: ...


class SyncBatchHandler(Protocol):
    def __call__(self, batch: Batch, *, checkpoint: Checkpoint) -> AttemptResult: ...


class ThreadedBatchProcessor:
    """Run a blocking batch handler on a worker thread.

    When the awaiting task is cancelled (attempt timeout or run cancellation) the
    handler's checkpoint is abandoned and the task waits for the worker to unwind,
    so a given-up attempt has rolled back before the next one starts. A worker
    that gets past its last checkpoint and commits anyway returns its result.
    """

    def __init__(self, handler: SyncBatchHandler) -> None:
        self._handler = handler

    async def __call__(
        self, batch: Batch, *, attempt: int, token: CancellationToken
    ) -> AttemptResult:
        checkpoint = Checkpoint(token)
        work = asyncio.ensure_future(asyncio.to_thread(self._handler, batch, checkpoint=checkpoint))
        try:
            return await asyncio.shield(work)
        except asyncio.CancelledError:
            checkpoint.abandon()
            log.debug("Waiting for batch %s attempt %s to unwind", batch.number, attempt)
            await asyncio.gather(work, return_exceptions=True)
            if finished_cleanly(work):
                log.info(
                    "Batch %s attempt %s committed before it could be abandoned",
                    batch.number,
                    attempt,
                )
                return work.result()
            raise
