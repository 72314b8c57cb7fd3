"""After-hours duty roster table.

Revision ID: 0002_after_hours_duty
Revises: 0001_initial
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from stocksync.adapters.sqlalchemy.mappings import UTCDateTime

revision = "0002_after_hours_duty"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "after_hours_duty",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("duty_date", sa.Date(), nullable=False),
        sa.Column("staff_code", sa.String(length=50), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("duty_type", sa.String(length=100), nullable=False),
        sa.Column("notes", sa.String(length=1000), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_after_hours_duty")),
    )
    op.create_index(
        "ix_after_hours_duty_staff_date",
        "after_hours_duty",
        ["staff_code", "duty_date"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_after_hours_duty_staff_date", table_name="after_hours_duty")
    op.drop_table("after_hours_duty")
