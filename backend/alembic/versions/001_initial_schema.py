"""Initial schema: users, rooms, external venues, bookings, recurrence patterns.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'STANDARD'")),
        sa.Column("notification_channels", sa.JSON(), nullable=False),
        sa.Column("notification_preferences", sa.JSON(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
    )
    op.create_index("ix_rooms_id", "rooms", ["id"])

    op.create_table(
        "external_venues",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("campus", sa.String(255), nullable=True),
        sa.Column("building", sa.String(255), nullable=False),
        sa.Column("room_name", sa.String(255), nullable=False),
        sa.Column("contact_details", sa.String(500), nullable=True),
        _created_at(),
    )
    op.create_index("ix_external_venues_id", "external_venues", ["id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(64), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "external_venue_id",
            sa.Integer(),
            sa.ForeignKey("external_venues.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("event_title", sa.String(255), nullable=False),
        sa.Column("number_of_attendees", sa.Integer(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("rejection_reason", sa.String(500), nullable=True),
        sa.Column(
            "parent_booking_id",
            sa.Integer(),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("occurrence_number", sa.Integer(), nullable=True),
        _created_at(),
        sa.CheckConstraint("start_time < end_time", name="check_booking_time_order"),
        sa.CheckConstraint(
            "room_id IS NULL OR external_venue_id IS NULL",
            name="check_booking_single_resource",
        ),
        sa.CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'AWAITING_EXTERNAL', 'REJECTED', 'CANCELLED')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_parent_booking_id", "bookings", ["parent_booking_id"])
    op.create_index("ix_bookings_start_end", "bookings", ["start_time", "end_time"])
    # The availability query filters on one resource column plus the window
    op.create_index("ix_bookings_room_start_end", "bookings", ["room_id", "start_time", "end_time"])
    op.create_index("ix_bookings_venue_start_end", "bookings", ["external_venue_id", "start_time", "end_time"])

    op.create_table(
        "recurrence_patterns",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id",
            sa.Integer(),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("frequency", sa.String(10), nullable=False),
        sa.Column("repeat_interval", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("days_of_week", sa.JSON(), nullable=True),
        sa.Column("max_occurrences", sa.Integer(), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("booking_id", name="uq_recurrence_patterns_booking_id"),
        sa.CheckConstraint("max_occurrences BETWEEN 1 AND 52", name="check_pattern_max_occurrences"),
        sa.CheckConstraint("repeat_interval BETWEEN 1 AND 365", name="check_pattern_interval"),
        sa.CheckConstraint("frequency IN ('DAILY', 'WEEKLY', 'CUSTOM')", name="check_pattern_frequency"),
    )
    op.create_index("ix_recurrence_patterns_id", "recurrence_patterns", ["id"])


def downgrade() -> None:
    op.drop_table("recurrence_patterns")
    op.drop_table("bookings")
    op.drop_table("external_venues")
    op.drop_table("rooms")
    op.drop_table("users")
