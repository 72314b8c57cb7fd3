"""
Reference entities:
one persisted row per business key, per category.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import ClassVar

from .enums import EntityCategory


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False, kw_only=True)
class ReferenceEntity:
    """A business key and the integer identifier the store assigned to it."""

    key: str
    id: int | None = None
    created_by: str = "system"
    created_at: datetime = field(default_factory=utcnow)

    # class-level discriminator; subclasses must override
    CATEGORY: ClassVar[EntityCategory]

    @property
    def category(self) -> EntityCategory:
        return self.CATEGORY


@dataclass(eq=False, kw_only=True)
class Order(ReferenceEntity):
    CATEGORY: ClassVar[EntityCategory] = EntityCategory.ORDER


@dataclass(eq=False, kw_only=True)
class Contract(ReferenceEntity):
    CATEGORY: ClassVar[EntityCategory] = EntityCategory.CONTRACT


@dataclass(eq=False, kw_only=True)
class Project(ReferenceEntity):
    CATEGORY: ClassVar[EntityCategory] = EntityCategory.PROJECT


@dataclass(eq=False, kw_only=True)
class Producer(ReferenceEntity):
    CATEGORY: ClassVar[EntityCategory] = EntityCategory.PRODUCER


@dataclass(eq=False, kw_only=True)
class SubDepartment(ReferenceEntity):
    CATEGORY: ClassVar[EntityCategory] = EntityCategory.SUB_DEPARTMENT

    description: str | None = "Created by system"


@dataclass(eq=False, kw_only=True)
class BillReference(ReferenceEntity):
    CATEGORY: ClassVar[EntityCategory] = EntityCategory.BILL_REFERENCE


ENTITY_CLASS_BY_CATEGORY: dict[EntityCategory, type[ReferenceEntity]] = {
    EntityCategory.ORDER: Order,
    EntityCategory.CONTRACT: Contract,
    EntityCategory.PROJECT: Project,
    EntityCategory.PRODUCER: Producer,
    EntityCategory.SUB_DEPARTMENT: SubDepartment,
    EntityCategory.BILL_REFERENCE: BillReference,
}


def new_reference_entity(
    category: EntityCategory, key: str, *, created_by: str
) -> ReferenceEntity:
    return ENTITY_CLASS_BY_CATEGORY[category](key=key, created_by=created_by)
