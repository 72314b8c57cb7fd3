"""Per-batch reconciliation inside one unit of work.

One attempt resolves entities, runs the external step, reconciles every
purchase line and commits once. Any failure, or an abandoned checkpoint,
leaves the store untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stocksync.config import SYSTEM_USER
from stocksync.domain.batching.cancellation import Checkpoint
from stocksync.domain.batching.results import AttemptResult
from stocksync.domain.errors import ErrorEntry, ErrorKind
from stocksync.domain.ingest import group_records
from stocksync.domain.model import EntityCategory, InventoryLineKey
from stocksync.domain.ports.processing import ProcessingOutcome

from .quantity import ReconciliationDelta, reconcile
from .resolve import EntityResolver, collect_keys

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from stocksync.domain.ingest import Batch
    from stocksync.domain.model import InputRecord
    from stocksync.domain.ports import ExternalProcessingStep, InventoryRepository
    from stocksync.domain.ports.unit_of_work import ImportUnitOfWork

    from .resolve import ResolvedEntitySet

log = logging.getLogger(__name__)


@dataclass(slots=True)
class BatchChanges:
    """Totals of one batch's reconciliation, for logs and summaries."""

    groups: int = 0
    added: int = 0
    updated: int = 0
    removed: int = 0
    over_provisioned: int = 0
    deltas: list[ReconciliationDelta] = field(default_factory=list["ReconciliationDelta"])

    def record(self, delta: ReconciliationDelta) -> None:
        self.groups += 1
        self.added += len(delta.to_add)
        self.updated += len(delta.to_update)
        self.removed += len(delta.to_remove)
        self.over_provisioned += delta.over_provisioned
        self.deltas.append(delta)

    def describe(self) -> str:
        text = (
            f"{self.groups} lines: {self.added} added, "
            f"{self.updated} updated, {self.removed} removed"
        )
        if self.over_provisioned:
            text += f", {self.over_provisioned} serial-numbered units kept"
        return text


@dataclass(slots=True)
class ReconciliationEngine:
    """Synchronous batch handler: resolve, process externally, reconcile, commit."""

    unit_of_work_factory: Callable[[], ImportUnitOfWork]
    external_step: ExternalProcessingStep | None = None
    created_by: str = SYSTEM_USER

    def __call__(self, batch: Batch, *, checkpoint: Checkpoint) -> AttemptResult:
        return self.process(batch, checkpoint=checkpoint)

    def process(self, batch: Batch, *, checkpoint: Checkpoint | None = None) -> AttemptResult:
        checkpoint = checkpoint or Checkpoint()
        checkpoint()
        with self.unit_of_work_factory() as uow:
            repositories = uow.repositories
            resolver = EntityResolver(repositories.reference_entities, created_by=self.created_by)
            resolved = resolver.resolve_all(collect_keys(batch.records))
            checkpoint()

            outcome = self._run_external_step(batch, checkpoint)
            checkpoint()

            rejected = outcome.rejected_names
            accepted = [record for record in batch.records if record.item_name not in rejected]
            changes = self.reconcile_records(
                batch, accepted, resolved, repositories.inventory, rejected=rejected
            )
            checkpoint()
            uow.commit()

        errors = tuple(
            ErrorEntry(
                kind=ErrorKind.EXTERNAL,
                message=f"Loader rejected {error}",
                batch_number=batch.number,
                context={"entity_name": error.entity_name, "entity_class": error.entity_class},
            )
            for error in outcome.errors
        )
        succeeded = max(0, len(batch) - len(errors))
        log.debug("Batch %s reconciled %s", batch.number, changes.describe())
        return AttemptResult(succeeded_rows=succeeded, errors=errors, summary=changes.describe())

    def reconcile_records(
        self,
        batch: Batch,
        records: Sequence[InputRecord],
        resolved: ResolvedEntitySet,
        inventory: InventoryRepository,
        *,
        rejected: frozenset[str] = frozenset(),
    ) -> BatchChanges:
        """Reconcile every purchase line in ``records`` and stage the writes."""

        groups = group_records(records)
        line_keys = {
            group: InventoryLineKey(
                resolved.require(EntityCategory.ORDER, group.order_code),
                group.bill_code,
                group.line_item_id,
            )
            for group in groups
        }
        existing = inventory.find_by_lines(set(line_keys.values()))

        changes = BatchChanges()
        for group, members in groups.items():
            desired = batch.desired_quantity(group) - sum(
                record.quantity
                for record in batch.records
                if record.group_key == group and record.item_name in rejected
            )
            delta = reconcile(
                group,
                max(desired, 0),
                members[0],
                resolved,
                existing.get(line_keys[group], []),
            )
            changes.record(delta)

        inventory.remove_all(record for delta in changes.deltas for record in delta.to_remove)
        inventory.update_all(record for delta in changes.deltas for record in delta.to_update)
        inventory.add_all(record for delta in changes.deltas for record in delta.to_add)
        return changes

    def _run_external_step(self, batch: Batch, checkpoint: Checkpoint) -> ProcessingOutcome:
        if self.external_step is None:
            return ProcessingOutcome()
        outcome = self.external_step(batch, checkpoint=checkpoint)
        if outcome.errors:
            log.warning(
                "External step rejected %s entities in batch %s", len(outcome.errors), batch.number
            )
        return outcome
