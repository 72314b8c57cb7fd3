from __future__ import annotations

from .aggregate import ImportOutcome, ImportReport, aggregate, failed_report
from .cancellation import AttemptAbandonedError, CancellationToken, Checkpoint
from .orchestrator import BatchOrchestrator
from .processor import BatchProcessor, SyncBatchHandler, ThreadedBatchProcessor
from .results import AttemptResult, BatchResult, BatchStatus

__all__ = [
    "AttemptAbandonedError",
    "AttemptResult",
    "BatchOrchestrator",
    "BatchProcessor",
    "BatchResult",
    "BatchStatus",
    "CancellationToken",
    "Checkpoint",
    "ImportOutcome",
    "ImportReport",
    "SyncBatchHandler",
    "ThreadedBatchProcessor",
    "aggregate",
    "failed_report",
]
