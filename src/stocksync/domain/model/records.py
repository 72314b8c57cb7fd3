"""Input line items and the grouping key used for reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

from .enums import EntityCategory


class GroupKey(NamedTuple):
    """Identifies one logical purchase line: order, bill and line item."""

    order_code: str
    bill_code: str
    line_item_id: str

    def __str__(self) -> str:
        return f"{self.order_code}/{self.bill_code}/{self.line_item_id}"


@dataclass(frozen=True, slots=True, kw_only=True)
class InputRecord:
    """One validated import line. Immutable once read."""

    row_number: int
    order_code: str
    bill_code: str
    line_item_id: str
    item_name: str
    quantity: int
    contract_code: str = ""
    project_code: str = ""
    producer_name: str = ""
    sub_department_name: str = ""
    part_number: str = ""
    warranty_term: str = ""
    account_manager: str = ""
    buyer_account: str = ""

    @property
    def group_key(self) -> GroupKey:
        return GroupKey(self.order_code, self.bill_code, self.line_item_id)

    def business_key(self, category: EntityCategory) -> str:
        """Return the business key this record references for ``category`` ("" if none)."""

        match category:
            case EntityCategory.ORDER:
                return self.order_code
            case EntityCategory.CONTRACT:
                return self.contract_code
            case EntityCategory.PROJECT:
                return self.project_code
            case EntityCategory.PRODUCER:
                return self.producer_name
            case EntityCategory.SUB_DEPARTMENT:
                return self.sub_department_name
            case EntityCategory.BILL_REFERENCE:
                return self.bill_code
