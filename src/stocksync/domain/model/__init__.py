"""Domain model for purchase-line and duty roster imports."""

from __future__ import annotations

from .duty import AfterHoursDuty
from .entities import (
    ENTITY_CLASS_BY_CATEGORY,
    BillReference,
    Contract,
    Order,
    Producer,
    Project,
    ReferenceEntity,
    SubDepartment,
    new_reference_entity,
)
from .enums import EntityCategory
from .inventory import InventoryLineKey, InventoryRecord
from .records import GroupKey, InputRecord

__all__ = [
    "ENTITY_CLASS_BY_CATEGORY",
    "AfterHoursDuty",
    "BillReference",
    "Contract",
    "EntityCategory",
    "GroupKey",
    "InputRecord",
    "InventoryLineKey",
    "InventoryRecord",
    "Order",
    "Producer",
    "Project",
    "ReferenceEntity",
    "SubDepartment",
    "new_reference_entity",
]
