"""Reference entity and inventory tables.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from stocksync.adapters.sqlalchemy.mappings import UTCDateTime

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

_REFERENCE_TABLES = (
    "purchase_order",
    "contract",
    "project",
    "producer",
    "sub_department",
    "bill_reference",
)


def _create_reference_table(name: str) -> None:
    extra = (
        [sa.Column("description", sa.String(length=255), nullable=True)]
        if name == "sub_department"
        else []
    )
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("key", sa.String(length=255), nullable=False),
        *extra,
        sa.Column("created_by", sa.String(length=100), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f(f"pk_{name}")),
        sa.UniqueConstraint("key", name=op.f(f"uq_{name}_{name}_key")),
    )


def upgrade() -> None:
    for name in _REFERENCE_TABLES:
        _create_reference_table(name)

    op.create_table(
        "inventory_record",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_name", sa.String(length=255), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("bill_code", sa.String(length=255), nullable=False),
        sa.Column("line_item_id", sa.String(length=255), nullable=False),
        sa.Column("bill_reference_id", sa.Integer(), nullable=True),
        sa.Column("contract_id", sa.Integer(), nullable=True),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("producer_id", sa.Integer(), nullable=True),
        sa.Column("sub_department_id", sa.Integer(), nullable=True),
        sa.Column("part_number", sa.String(length=255), nullable=False),
        sa.Column("warranty_term", sa.String(length=100), nullable=False),
        sa.Column("account_manager", sa.String(length=100), nullable=False),
        sa.Column("buyer_account", sa.String(length=100), nullable=False),
        sa.Column("serial_number", sa.String(length=255), nullable=True),
        sa.Column("synced", sa.Boolean(), nullable=False),
        sa.Column("exported", sa.Integer(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["order_id"],
            ["purchase_order.id"],
            name=op.f("fk_inventory_record_inventory_record_order_id_purchase_order"),
        ),
        sa.ForeignKeyConstraint(
            ["bill_reference_id"],
            ["bill_reference.id"],
            name=op.f("fk_inventory_record_inventory_record_bill_reference_id_bill_reference"),
        ),
        sa.ForeignKeyConstraint(
            ["contract_id"],
            ["contract.id"],
            name=op.f("fk_inventory_record_inventory_record_contract_id_contract"),
        ),
        sa.ForeignKeyConstraint(
            ["project_id"],
            ["project.id"],
            name=op.f("fk_inventory_record_inventory_record_project_id_project"),
        ),
        sa.ForeignKeyConstraint(
            ["producer_id"],
            ["producer.id"],
            name=op.f("fk_inventory_record_inventory_record_producer_id_producer"),
        ),
        sa.ForeignKeyConstraint(
            ["sub_department_id"],
            ["sub_department.id"],
            name=op.f("fk_inventory_record_inventory_record_sub_department_id_sub_department"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_inventory_record")),
    )
    op.create_index(
        "ix_inventory_record_line",
        "inventory_record",
        ["order_id", "bill_code", "line_item_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_inventory_record_line", table_name="inventory_record")
    op.drop_table("inventory_record")
    for name in reversed(_REFERENCE_TABLES):
        op.drop_table(name)
