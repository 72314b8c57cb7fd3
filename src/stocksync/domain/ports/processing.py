"""Port for the external processing step each batch passes through."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from stocksync.domain.batching.cancellation import Checkpoint
    from stocksync.domain.ingest.partition import Batch


@dataclass(frozen=True, slots=True)
class ProcessingError:
    """An entity the external step could not load."""

    entity_name: str
    entity_class: str

    def __str__(self) -> str:
        return f"{self.entity_name} ({self.entity_class})"


@dataclass(frozen=True, slots=True)
class ProcessingOutcome:
    """Free-text output plus the entities the external step rejected."""

    output: str = ""
    errors: tuple[ProcessingError, ...] = field(default_factory=tuple[ProcessingError, ...])

    @property
    def rejected_names(self) -> frozenset[str]:
        return frozenset(error.entity_name for error in self.errors)


@runtime_checkable
class ExternalProcessingStep(Protocol):
    """Push one batch through an external system.

    Implementations raise ``ExternalProcessingError`` when the step as a whole
    fails and must call ``checkpoint()`` while waiting so an abandoned attempt
    stops promptly.
    """

    def __call__(self, batch: Batch, *, checkpoint: Checkpoint) -> ProcessingOutcome: ...
