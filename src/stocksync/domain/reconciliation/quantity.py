"""Quantity reconciliation for one purchase line.

Existing units are always refreshed from the template line. The unit count is
then moved towards the desired quantity: missing units are cloned, surplus
units are removed, but only units without a serial number. A line whose surplus
is serial-numbered stays over-provisioned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stocksync.domain.model import EntityCategory, InventoryRecord

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stocksync.domain.model import GroupKey, InputRecord

    from .resolve import ResolvedEntitySet

log = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconciliationDelta:
    """Adds, refreshes and removals that bring one line to its desired quantity."""

    group: GroupKey
    desired_quantity: int
    existing_count: int
    to_add: list[InventoryRecord] = field(default_factory=list["InventoryRecord"])
    to_update: list[InventoryRecord] = field(default_factory=list["InventoryRecord"])
    to_remove: list[InventoryRecord] = field(default_factory=list["InventoryRecord"])

    @property
    def final_count(self) -> int:
        return self.existing_count + len(self.to_add) - len(self.to_remove)

    @property
    def over_provisioned(self) -> int:
        """Units kept above the desired quantity because they carry serial numbers."""

        return max(0, self.final_count - self.desired_quantity)

    @property
    def changes_quantity(self) -> bool:
        return bool(self.to_add or self.to_remove)


def build_inventory_record(template: InputRecord, resolved: ResolvedEntitySet) -> InventoryRecord:
    """A new unit for ``template`` carrying every resolved foreign identifier."""

    return InventoryRecord(
        item_name=template.item_name,
        order_id=resolved.require(EntityCategory.ORDER, template.order_code),
        bill_code=template.bill_code,
        line_item_id=template.line_item_id,
        bill_reference_id=resolved.require(EntityCategory.BILL_REFERENCE, template.bill_code),
        contract_id=resolved.optional(EntityCategory.CONTRACT, template.contract_code),
        project_id=resolved.optional(EntityCategory.PROJECT, template.project_code),
        producer_id=resolved.optional(EntityCategory.PRODUCER, template.producer_name),
        sub_department_id=resolved.optional(
            EntityCategory.SUB_DEPARTMENT, template.sub_department_name
        ),
        part_number=template.part_number,
        warranty_term=template.warranty_term,
        account_manager=template.account_manager,
        buyer_account=template.buyer_account,
    )


def refresh_inventory_record(
    record: InventoryRecord, template: InputRecord, resolved: ResolvedEntitySet
) -> None:
    """Overwrite the mutable fields of ``record`` from ``template``."""

    record.bill_code = template.bill_code
    record.line_item_id = template.line_item_id
    record.bill_reference_id = resolved.require(EntityCategory.BILL_REFERENCE, template.bill_code)
    record.contract_id = resolved.optional(EntityCategory.CONTRACT, template.contract_code)
    record.project_id = resolved.optional(EntityCategory.PROJECT, template.project_code)
    record.producer_id = resolved.optional(EntityCategory.PRODUCER, template.producer_name)
    record.sub_department_id = resolved.optional(
        EntityCategory.SUB_DEPARTMENT, template.sub_department_name
    )
    record.part_number = template.part_number
    record.warranty_term = template.warranty_term
    record.account_manager = template.account_manager
    record.buyer_account = template.buyer_account


def reconcile(
    group: GroupKey,
    desired_quantity: int,
    template: InputRecord,
    resolved: ResolvedEntitySet,
    existing: Sequence[InventoryRecord],
) -> ReconciliationDelta:
    """Compute the delta for one line; nothing is written here.

    Removal takes serial-less units in ``existing`` order. Removed units are not
    refreshed.
    """

    if desired_quantity < 0:
        raise ValueError(f"desired quantity must be non-negative, got {desired_quantity}")

    delta = ReconciliationDelta(
        group=group, desired_quantity=desired_quantity, existing_count=len(existing)
    )
    if not existing:
        delta.to_add = [build_inventory_record(template, resolved) for _ in range(desired_quantity)]
        return delta

    surplus = len(existing) - desired_quantity
    if surplus > 0:
        removable = [record for record in existing if not record.has_serial_number]
        delta.to_remove = removable[:surplus]

    removed = {id(record) for record in delta.to_remove}
    for record in existing:
        if id(record) not in removed:
            refresh_inventory_record(record, template, resolved)
            delta.to_update.append(record)

    if surplus < 0:
        shape = delta.to_update[0]
        delta.to_add = [shape.clone() for _ in range(-surplus)]

    if delta.over_provisioned:
        log.warning(
            "Line %s keeps %s serial-numbered units above desired quantity %s",
            group,
            delta.over_provisioned,
            desired_quantity,
        )
    return delta
