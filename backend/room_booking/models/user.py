"""
User record as seen by the booking core: identity, role and notification
settings. Account management lives outside this service.
"""

import enum

from sqlalchemy import Column, String

from room_booking.core.security import Role
from room_booking.db.base import Base, TimestampMixin
from room_booking.db.types import EnumSet


class NotificationChannel(str, enum.Enum):
    EMAIL = "EMAIL"
    PUSH = "PUSH"


class NotificationPreference(str, enum.Enum):
    BOOKING_UPDATES = "BOOKING_UPDATES"
    ADMIN_NEW_BOOKINGS = "ADMIN_NEW_BOOKINGS"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=Role.STANDARD.value)
    notification_channels = Column(
        EnumSet(NotificationChannel),
        nullable=False,
        default=lambda: frozenset({NotificationChannel.EMAIL}),
    )
    notification_preferences = Column(
        EnumSet(NotificationPreference),
        nullable=False,
        default=lambda: frozenset({NotificationPreference.BOOKING_UPDATES}),
    )

    def wants(self, preference: NotificationPreference) -> bool:
        return preference in (self.notification_preferences or ())

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
