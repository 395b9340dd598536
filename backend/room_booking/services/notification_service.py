"""
Booking notifications.

Bulk operations produce one (user, booking, message) entry per affected
booking. group_notifications() folds those into a single consolidated
message per user, dropping users who turned BOOKING_UPDATES off. Delivery is
delegated to a NotificationDispatcher.

DISPATCH SEMANTICS
==================
Notifications are best effort and never part of the booking write:
  - write paths only prepare messages; the HTTP layer schedules
    dispatch_best_effort() as a background task, which runs once the write
    transaction has committed and the response is on its way
  - each message is sent independently; one failure does not stop the rest
  - failures are logged and counted, never raised to the caller
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from room_booking.core.config import get_settings
from room_booking.core.logging import get_logger
from room_booking.core.metrics import record_notification
from room_booking.models.booking import Booking, BookingStatus
from room_booking.models.user import NotificationChannel, NotificationPreference, User

logger = get_logger(__name__)


@dataclass(frozen=True)
class NotificationEntry:
    user: User
    booking: Booking
    message: str


@dataclass(frozen=True)
class OutgoingNotification:
    user: User
    subject: str
    body: str
    booking_ids: tuple


class NotificationDispatcher(ABC):
    """Delivers one message to one user over whichever channels they enabled."""

    @abstractmethod
    async def send(self, user: User, subject: str, body: str) -> None:
        pass


class LoggingNotificationDispatcher(NotificationDispatcher):
    """
    Records deliveries in the structured log, one line per enabled channel.
    Concrete email / push transports plug in by subclassing.
    """

    def __init__(self, sender: Optional[str] = None):
        self.sender = sender or get_settings().NOTIFICATION_SENDER

    async def send(self, user: User, subject: str, body: str) -> None:
        channels = user.notification_channels or frozenset({NotificationChannel.EMAIL})
        for channel in sorted(channels, key=lambda c: c.value):
            logger.info(
                "notification_delivered",
                channel=channel.value,
                user_id=user.id,
                recipient=user.email if channel is NotificationChannel.EMAIL else user.id,
                sender=self.sender,
                subject=subject,
            )


def format_booking_datetime(booking: Booking, tz_name: Optional[str] = None) -> str:
    """e.g. 'Mon 1 Jan 2024, 10:00-11:00' in the display timezone."""
    tz = ZoneInfo(tz_name or get_settings().DISPLAY_TIMEZONE)
    start = booking.start_time.astimezone(tz)
    end = booking.end_time.astimezone(tz)
    day = f"{start:%a} {start.day} {start:%b %Y}"
    if start.date() == end.date():
        return f"{day}, {start:%H:%M}-{end:%H:%M}"
    return f"{day}, {start:%H:%M} - {end.day} {end:%b %Y}, {end:%H:%M}"


def _location(booking: Booking) -> str:
    if booking.room is not None:
        return f" in {booking.room.name}"
    if booking.external_venue is not None:
        return f" at {booking.external_venue.display_name}"
    return ""


def status_message(booking: Booking, tz_name: Optional[str] = None) -> str:
    """Human readable line describing the booking's current status."""
    when = format_booking_datetime(booking, tz_name)
    title = booking.event_title
    status = BookingStatus(booking.status)

    if status is BookingStatus.CONFIRMED:
        return f'Your booking "{title}" ({when}) has been confirmed{_location(booking)}.'
    if status is BookingStatus.AWAITING_EXTERNAL:
        return (
            f'Your booking "{title}" ({when}) has been assigned to an external venue '
            f"and is awaiting confirmation."
        )
    if status is BookingStatus.REJECTED:
        reason = f": {booking.rejection_reason}" if booking.rejection_reason else "."
        return f'Your booking "{title}" ({when}) has been rejected{reason}'
    if status is BookingStatus.CANCELLED:
        return f'Your booking "{title}" ({when}) has been cancelled.'
    return f'Your booking "{title}" ({when}) status has been updated to {status.value}.'


def deletion_message(booking: Booking, tz_name: Optional[str] = None) -> str:
    when = format_booking_datetime(booking, tz_name)
    return f'Your booking "{booking.event_title}" ({when}) has been cancelled by an administrator.'


def group_notifications(entries: Iterable[NotificationEntry]) -> list[OutgoingNotification]:
    """
    One consolidated message per user, in order of first appearance.

    Pure transform: nothing is sent. Users without BOOKING_UPDATES enabled
    are dropped.
    """
    grouped: dict[str, list[NotificationEntry]] = {}
    users: dict[str, User] = {}
    for entry in entries:
        if entry.user is None:
            continue
        grouped.setdefault(entry.user.id, []).append(entry)
        users.setdefault(entry.user.id, entry.user)

    outgoing = []
    for user_id, user_entries in grouped.items():
        user = users[user_id]
        if not user.wants(NotificationPreference.BOOKING_UPDATES):
            continue

        if len(user_entries) == 1:
            subject = f"Booking Update: {user_entries[0].booking.event_title}"
        else:
            subject = f"Booking Updates: {len(user_entries)} bookings"

        lines = [f"{i}. {entry.message}" for i, entry in enumerate(user_entries, start=1)]
        body = f"You have {len(user_entries)} booking update(s):\n\n" + "\n".join(lines)
        outgoing.append(
            OutgoingNotification(
                user=user,
                subject=subject,
                body=body,
                booking_ids=tuple(entry.booking.id for entry in user_entries),
            )
        )
    return outgoing


async def dispatch_best_effort(
    dispatcher: NotificationDispatcher,
    notifications: Iterable[OutgoingNotification],
) -> int:
    """Send each notification, swallowing failures. Returns how many were sent."""
    sent = 0
    for notification in notifications:
        try:
            await dispatcher.send(notification.user, notification.subject, notification.body)
        except Exception as e:
            record_notification("failed")
            logger.error(
                "notification_dispatch_failed",
                user_id=notification.user.id,
                booking_ids=list(notification.booking_ids),
                error=str(e),
            )
            continue
        record_notification("sent")
        sent += 1
    return sent


def prepare_notifications(entries: Iterable[NotificationEntry]) -> list[OutgoingNotification]:
    """Group entries for dispatch, counting users skipped by preference."""
    entries = [entry for entry in entries if entry.user is not None]
    outgoing = group_notifications(entries)
    skipped = len({entry.user.id for entry in entries}) - len(outgoing)
    for _ in range(skipped):
        record_notification("skipped")
    return outgoing
