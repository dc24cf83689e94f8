# backend/alembic/versions/001_booking_engine.py
"""Booking engine - class instances, bookings, per-class versions

Revision ID: 001_booking_engine
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the read-only class catalog table, the bookings table with the
constraints that make each status a closed shape, and the per-class version
rows used for optimistic concurrency.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_booking_engine"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_STATUSES = "status IN ('confirmed', 'waitlisted')"


def upgrade() -> None:
    op.create_table(
        "class_instances",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("instructor", sa.String(100), nullable=False, server_default="Gabi"),
        sa.Column("location", sa.String(200), nullable=False, server_default="Main Studio"),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("capacity >= 1", name="ck_class_instances_capacity_positive"),
        sa.CheckConstraint("duration_minutes > 0", name="ck_class_instances_duration_positive"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'cancelled')", name="ck_class_instances_status"
        ),
    )
    op.create_index("ix_class_instances_id", "class_instances", ["id"])
    op.create_index("ix_class_instances_starts_at", "class_instances", ["starts_at"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "class_id", sa.String(26), sa.ForeignKey("class_instances.id"), nullable=False
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("waitlist_position", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('confirmed', 'waitlisted', 'canceled')", name="ck_bookings_status"
        ),
        sa.CheckConstraint(
            "(status = 'waitlisted' AND waitlist_position IS NOT NULL AND waitlist_position >= 1)"
            " OR (status <> 'waitlisted' AND waitlist_position IS NULL)",
            name="ck_bookings_waitlist_position",
        ),
        sa.CheckConstraint(
            "(status = 'canceled' AND canceled_at IS NOT NULL)"
            " OR (status <> 'canceled' AND canceled_at IS NULL)",
            name="ck_bookings_canceled_at",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_class_status", "bookings", ["class_id", "status"])
    op.create_index(
        "uq_bookings_active_user_class",
        "bookings",
        ["user_id", "class_id"],
        unique=True,
        sqlite_where=sa.text(ACTIVE_STATUSES),
        postgresql_where=sa.text(ACTIVE_STATUSES),
    )

    op.create_table(
        "class_booking_versions",
        sa.Column(
            "class_id",
            sa.String(26),
            sa.ForeignKey("class_instances.id"),
            primary_key=True,
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("version >= 0", name="ck_class_booking_versions_version"),
    )


def downgrade() -> None:
    op.drop_table("class_booking_versions")
    op.drop_index("uq_bookings_active_user_class", table_name="bookings")
    op.drop_index("ix_bookings_class_status", table_name="bookings")
    op.drop_index("ix_bookings_user_id", table_name="bookings")
    op.drop_index("ix_bookings_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_class_instances_starts_at", table_name="class_instances")
    op.drop_index("ix_class_instances_id", table_name="class_instances")
    op.drop_table("class_instances")
