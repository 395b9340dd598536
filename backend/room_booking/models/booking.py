"""
Booking and RecurrencePattern models.

Key design decisions:
- user_id is nullable with ON DELETE SET NULL so history survives user deletion
- A booking targets at most one resource (room XOR external venue)
- Series children point at the parent via parent_booking_id; the parent owns
  the single RecurrencePattern row and both cascade on delete
- Composite (resource, start, end) indexes back the overlap query
"""

import enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from room_booking.db.base import Base, TimestampMixin
from room_booking.db.types import EnumSet, UTCDateTime
from room_booking.models.resource import ResourceKind


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    AWAITING_EXTERNAL = "AWAITING_EXTERNAL"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


# Statuses that occupy a resource
ACTIVE_STATUSES = frozenset({
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.AWAITING_EXTERNAL,
})


class Frequency(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    CUSTOM = "CUSTOM"


class Weekday(str, enum.Enum):
    SUN = "SUN"
    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"

    @property
    def iso_index(self) -> int:
        """Index compatible with datetime.weekday() (Monday == 0)."""
        return _WEEKDAY_INDEX[self]


_WEEKDAY_INDEX = {
    Weekday.MON: 0,
    Weekday.TUE: 1,
    Weekday.WED: 2,
    Weekday.THU: 3,
    Weekday.FRI: 4,
    Weekday.SAT: 5,
    Weekday.SUN: 6,
}


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True)
    external_venue_id = Column(Integer, ForeignKey("external_venues.id", ondelete="SET NULL"), nullable=True)
    event_title = Column(String(255), nullable=False)
    number_of_attendees = Column(Integer, nullable=True)
    start_time = Column(UTCDateTime(), nullable=False)
    end_time = Column(UTCDateTime(), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    notes = Column(String(1000), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    parent_booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True)
    occurrence_number = Column(Integer, nullable=True)

    # Relationships
    user = relationship("User", lazy="selectin")
    room = relationship("Room", lazy="selectin")
    external_venue = relationship("ExternalVenue", lazy="selectin")
    recurrence_pattern = relationship(
        "RecurrencePattern",
        back_populates="booking",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_booking_time_order"),
        CheckConstraint(
            "room_id IS NULL OR external_venue_id IS NULL",
            name="check_booking_single_resource",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'AWAITING_EXTERNAL', 'REJECTED', 'CANCELLED')",
            name="check_booking_status",
        ),
        Index("ix_bookings_parent_booking_id", "parent_booking_id"),
        Index("ix_bookings_start_end", "start_time", "end_time"),
        Index("ix_bookings_room_start_end", "room_id", "start_time", "end_time"),
        Index("ix_bookings_venue_start_end", "external_venue_id", "start_time", "end_time"),
    )

    @property
    def resource_kind(self):
        if self.room_id is not None:
            return ResourceKind.ROOM
        if self.external_venue_id is not None:
            return ResourceKind.VENUE
        return None

    @property
    def series_root_id(self) -> int:
        return self.parent_booking_id or self.id

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, title={self.event_title}, status={self.status}, "
            f"parent={self.parent_booking_id}, occurrence={self.occurrence_number})>"
        )


class RecurrencePattern(Base, TimestampMixin):
    __tablename__ = "recurrence_patterns"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    frequency = Column(String(10), nullable=False)
    interval = Column("repeat_interval", Integer, nullable=False, default=1)
    days_of_week = Column(EnumSet(Weekday), nullable=True)
    max_occurrences = Column(Integer, nullable=False)
    end_date = Column(UTCDateTime(), nullable=True)

    booking = relationship("Booking", back_populates="recurrence_pattern")

    __table_args__ = (
        CheckConstraint("max_occurrences BETWEEN 1 AND 52", name="check_pattern_max_occurrences"),
        CheckConstraint("repeat_interval BETWEEN 1 AND 365", name="check_pattern_interval"),
        CheckConstraint("frequency IN ('DAILY', 'WEEKLY', 'CUSTOM')", name="check_pattern_frequency"),
    )

    def __repr__(self) -> str:
        return f"<RecurrencePattern(booking={self.booking_id}, frequency={self.frequency}, max={self.max_occurrences})>"
