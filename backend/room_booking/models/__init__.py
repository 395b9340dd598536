from room_booking.models.user import User, NotificationChannel, NotificationPreference
from room_booking.models.resource import Room, ExternalVenue, ResourceKind, ResourceRef
from room_booking.models.booking import (
    ACTIVE_STATUSES,
    Booking,
    BookingStatus,
    Frequency,
    RecurrencePattern,
    Weekday,
)

__all__ = [
    "User", "NotificationChannel", "NotificationPreference",
    "Room", "ExternalVenue", "ResourceKind", "ResourceRef",
    "Booking", "BookingStatus", "ACTIVE_STATUSES",
    "RecurrencePattern", "Frequency", "Weekday",
]
