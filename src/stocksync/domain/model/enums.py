"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityCategory(StrEnum):
    """Reference entity kinds resolved from business keys during import."""

    ORDER = "order"
    CONTRACT = "contract"
    PROJECT = "project"
    PRODUCER = "producer"
    SUB_DEPARTMENT = "sub_department"
    BILL_REFERENCE = "bill_reference"
