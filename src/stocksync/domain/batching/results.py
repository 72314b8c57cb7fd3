"""Per-batch state and outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stocksync.domain.errors import ErrorEntry


class BatchStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class AttemptResult:
    """What one successful batch attempt committed."""

    succeeded_rows: int
    errors: tuple[ErrorEntry, ...] = ()
    summary: str = ""


@dataclass(slots=True, kw_only=True)
class BatchResult:
    """Terminal outcome of a batch after its last attempt."""

    batch_number: int
    total_rows: int
    status: BatchStatus = BatchStatus.PENDING
    succeeded_rows: int = 0
    attempts: int = 0
    errors: list[ErrorEntry] = field(default_factory=list["ErrorEntry"])
    summary: str = ""
    elapsed_seconds: float = 0.0

    @property
    def failed_rows(self) -> int:
        """Rows the batch reached but did not persist."""

        if self.status in (BatchStatus.SUCCEEDED, BatchStatus.FAILED):
            return self.total_rows - self.succeeded_rows
        return 0

    @property
    def unprocessed_rows(self) -> int:
        if self.status in (BatchStatus.SUCCEEDED, BatchStatus.FAILED):
            return 0
        return self.total_rows

    @property
    def retried(self) -> bool:
        return self.attempts > 1
