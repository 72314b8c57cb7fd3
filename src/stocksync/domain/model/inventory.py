"""Persisted inventory units created from grouped import lines."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import NamedTuple

from .entities import utcnow


class InventoryLineKey(NamedTuple):
    """Store-side identity of a purchase line: resolved order id, bill code, line item."""

    order_id: int
    bill_code: str
    line_item_id: str


@dataclass(eq=False, kw_only=True)
class InventoryRecord:
    """One physical/accounting unit of a purchase line.

    Foreign identifiers are the store ids of resolved reference entities.
    ``serial_number`` marks a physically tracked unit; such records are never
    removed by quantity reconciliation.
    """

    item_name: str
    order_id: int
    bill_code: str
    line_item_id: str
    bill_reference_id: int | None = None
    contract_id: int | None = None
    project_id: int | None = None
    producer_id: int | None = None
    sub_department_id: int | None = None
    part_number: str = ""
    warranty_term: str = ""
    account_manager: str = ""
    buyer_account: str = ""
    serial_number: str | None = None
    synced: bool = True
    exported: int = 0
    id: int | None = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def line_key(self) -> InventoryLineKey:
        return InventoryLineKey(self.order_id, self.bill_code, self.line_item_id)

    @property
    def has_serial_number(self) -> bool:
        return bool(self.serial_number and self.serial_number.strip())

    def clone(self) -> InventoryRecord:
        """Return a new, unsaved unit sharing this record's resolved shape."""

        return InventoryRecord(
            item_name=self.item_name,
            order_id=self.order_id,
            bill_code=self.bill_code,
            line_item_id=self.line_item_id,
            bill_reference_id=self.bill_reference_id,
            contract_id=self.contract_id,
            project_id=self.project_id,
            producer_id=self.producer_id,
            sub_department_id=self.sub_department_id,
            part_number=self.part_number,
            warranty_term=self.warranty_term,
            account_manager=self.account_manager,
            buyer_account=self.buyer_account,
        )
