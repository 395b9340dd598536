"""
Recurring bookings: per-occurrence availability, series persistence and
series lookup.

A series is one parent booking (occurrence #1, no parent_booking_id), one
RecurrencePattern row linked to the parent, and one child booking per
remaining occurrence pointing back at the parent. Children are ordinary
bookings afterwards and can be cancelled or updated one by one.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from room_booking.core.errors import NotFoundError
from room_booking.core.logging import get_logger
from room_booking.core.metrics import series_created
from room_booking.models.booking import Booking, BookingStatus, RecurrencePattern
from room_booking.models.resource import ResourceRef
from room_booking.repositories.base import BookingRepository
from room_booking.scheduling.recurrence import (
    Occurrence,
    RecurrenceRule,
    generate_occurrences,
    validate_rule,
)
from room_booking.services.availability_service import check_availability

logger = get_logger(__name__)


@dataclass
class ConflictingOccurrence:
    occurrence: Occurrence
    conflicts: list[Booking]


@dataclass
class SeriesAvailability:
    available_occurrences: list[Occurrence] = field(default_factory=list)
    conflicting_occurrences: list[ConflictingOccurrence] = field(default_factory=list)

    @property
    def is_available(self) -> bool:
        return not self.conflicting_occurrences


@dataclass
class SeriesDraft:
    """Fields shared by every booking in a new series."""

    event_title: str
    status: BookingStatus = BookingStatus.PENDING
    user_id: Optional[str] = None
    number_of_attendees: Optional[int] = None
    room_id: Optional[int] = None
    external_venue_id: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class SeriesResult:
    parent_booking: Booking
    child_bookings: list[Booking]
    pattern: RecurrencePattern


async def check_series_availability(
    repo: BookingRepository,
    rule: RecurrenceRule,
    base_start: datetime,
    base_end: datetime,
    resource: Optional[ResourceRef],
    exclude_booking_id: Optional[int] = None,
) -> SeriesAvailability:
    """
    Check every generated occurrence against `resource`.

    Every occurrence is evaluated even after the first conflict so callers
    can report the whole picture. Without a resource nothing can conflict.
    """
    occurrences = generate_occurrences(rule, base_start, base_end)
    result = SeriesAvailability()

    for occurrence in occurrences:
        if resource is None:
            result.available_occurrences.append(occurrence)
            continue

        checked = await check_availability(
            repo,
            resource,
            occurrence.start_time,
            occurrence.end_time,
            exclude_booking_id,
        )
        if checked.is_available:
            result.available_occurrences.append(occurrence)
        else:
            result.conflicting_occurrences.append(
                ConflictingOccurrence(occurrence=occurrence, conflicts=checked.conflicts)
            )

    logger.info(
        "series_availability_checked",
        occurrences=len(occurrences),
        available=len(result.available_occurrences),
        conflicting=len(result.conflicting_occurrences),
    )
    return result


def _booking_for(draft: SeriesDraft, occurrence: Occurrence, parent_id: Optional[int]) -> Booking:
    return Booking(
        user_id=draft.user_id,
        event_title=draft.event_title,
        number_of_attendees=draft.number_of_attendees,
        room_id=draft.room_id,
        external_venue_id=draft.external_venue_id,
        status=BookingStatus(draft.status).value,
        notes=draft.notes,
        start_time=occurrence.start_time,
        end_time=occurrence.end_time,
        parent_booking_id=parent_id,
        occurrence_number=occurrence.occurrence_number,
    )


async def create_series(
    repo: BookingRepository,
    draft: SeriesDraft,
    rule: RecurrenceRule,
    base_start: datetime,
    base_end: datetime,
) -> SeriesResult:
    """
    Persist a series for an occurrence set the caller has already cleared.

    Occurrences are regenerated from the same inputs that were checked, so
    what is written matches what was validated. All rows are written in one
    atomic unit: if any insert fails, no part of the series survives.
    """
    valid = validate_rule(rule)
    occurrences = generate_occurrences(rule, base_start, base_end)

    async with repo.transaction():
        parent = await repo.add_booking(_booking_for(draft, occurrences[0], parent_id=None))

        pattern = await repo.add_pattern(
            RecurrencePattern(
                booking_id=parent.id,
                frequency=valid.frequency.value,
                interval=valid.interval,
                days_of_week=valid.weekdays or None,
                max_occurrences=valid.max_occurrences,
                end_date=valid.end_date,
            )
        )

        children = []
        for occurrence in occurrences[1:]:
            children.append(await repo.add_booking(_booking_for(draft, occurrence, parent_id=parent.id)))

    series_created.inc()
    logger.info(
        "series_created",
        parent_booking_id=parent.id,
        occurrences=len(occurrences),
        frequency=valid.frequency.value,
    )
    return SeriesResult(parent_booking=parent, child_bookings=children, pattern=pattern)


async def get_series(repo: BookingRepository, booking_id: int) -> list[Booking]:
    """
    All bookings in the series containing `booking_id`, parent first, by
    occurrence number. A booking outside any series is returned alone.
    """
    booking = await repo.get_booking(booking_id)
    if booking is None:
        raise NotFoundError("Booking not found", details={"booking_id": booking_id})

    return await repo.list_series(booking.series_root_id)
