"""SQLAlchemy mapping metadata for the stocksync domain model."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Time,
    TypeDecorator,
    orm,
)
from sqlalchemy.orm import configure_mappers

from stocksync.domain.model import (
    ENTITY_CLASS_BY_CATEGORY,
    AfterHoursDuty,
    EntityCategory,
    InventoryRecord,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

KEY_LENGTH: Final[int] = 255


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _reference_table(name: str, *extra: Column[object]) -> Table:
    return Table(
        name,
        mapper_registry.metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("key", String(KEY_LENGTH), nullable=False, unique=True),
        *extra,
        Column("created_by", String(100), nullable=False),
        Column("created_at", UTCDateTime(), nullable=False),
    )


# Reference tables ------------------------------------------------------------

order_table = _reference_table("purchase_order")
contract_table = _reference_table("contract")
project_table = _reference_table("project")
producer_table = _reference_table("producer")
sub_department_table = _reference_table(
    "sub_department", Column("description", String(KEY_LENGTH), nullable=True)
)
bill_reference_table = _reference_table("bill_reference")

TABLE_BY_CATEGORY: Final[dict[EntityCategory, Table]] = {
    EntityCategory.ORDER: order_table,
    EntityCategory.CONTRACT: contract_table,
    EntityCategory.PROJECT: project_table,
    EntityCategory.PRODUCER: producer_table,
    EntityCategory.SUB_DEPARTMENT: sub_department_table,
    EntityCategory.BILL_REFERENCE: bill_reference_table,
}

# Inventory -------------------------------------------------------------------

inventory_record_table = Table(
    "inventory_record",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("item_name", String(KEY_LENGTH), nullable=False),
    Column("order_id", Integer, ForeignKey("purchase_order.id"), nullable=False),
    Column("bill_code", String(KEY_LENGTH), nullable=False),
    Column("line_item_id", String(KEY_LENGTH), nullable=False),
    Column("bill_reference_id", Integer, ForeignKey("bill_reference.id"), nullable=True),
    Column("contract_id", Integer, ForeignKey("contract.id"), nullable=True),
    Column("project_id", Integer, ForeignKey("project.id"), nullable=True),
    Column("producer_id", Integer, ForeignKey("producer.id"), nullable=True),
    Column("sub_department_id", Integer, ForeignKey("sub_department.id"), nullable=True),
    Column("part_number", String(KEY_LENGTH), nullable=False, default=""),
    Column("warranty_term", String(100), nullable=False, default=""),
    Column("account_manager", String(100), nullable=False, default=""),
    Column("buyer_account", String(100), nullable=False, default=""),
    Column("serial_number", String(KEY_LENGTH), nullable=True),
    Column("synced", Boolean, nullable=False, default=True),
    Column("exported", Integer, nullable=False, default=0),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_inventory_record_line", "order_id", "bill_code", "line_item_id"),
)

# Duty roster -----------------------------------------------------------------

after_hours_duty_table = Table(
    "after_hours_duty",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("duty_date", Date, nullable=False),
    Column("staff_code", String(50), nullable=False),
    Column("full_name", String(KEY_LENGTH), nullable=False),
    Column("department", String(KEY_LENGTH), nullable=False, default=""),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("duty_type", String(100), nullable=False, default=""),
    Column("notes", String(1000), nullable=False, default=""),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_after_hours_duty_staff_date", "staff_code", "duty_date"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    for category, entity_cls in ENTITY_CLASS_BY_CATEGORY.items():
        mapper_registry.map_imperatively(entity_cls, TABLE_BY_CATEGORY[category])

    mapper_registry.map_imperatively(InventoryRecord, inventory_record_table)
    mapper_registry.map_imperatively(AfterHoursDuty, after_hours_duty_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
