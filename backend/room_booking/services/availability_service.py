"""
Availability checking for rooms and external venues.

A resource is occupied by every booking on it whose status is PENDING,
CONFIRMED or AWAITING_EXTERNAL and whose [start, end) interval overlaps the
candidate interval. REJECTED and CANCELLED bookings never block.

The batch scan is O(resources x bookings per resource). Both numbers are
small for a single deployment, so there is no shared interval index.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from room_booking.core.errors import ConflictError, ValidationError
from room_booking.core.logging import get_logger
from room_booking.core.metrics import record_availability_check
from room_booking.models.booking import Booking
from room_booking.models.resource import ResourceKind, ResourceRef
from room_booking.repositories.base import BookingRepository
from room_booking.scheduling.overlap import overlaps
from room_booking.schemas.booking import ConflictView
from room_booking.schemas.resource import ResourceSummary

logger = get_logger(__name__)


@dataclass
class AvailabilityResult:
    is_available: bool
    conflicts: list[Booking] = field(default_factory=list)


@dataclass
class UnavailableEntry:
    resource: ResourceSummary
    conflicts: list[Booking]


@dataclass
class ScanResult:
    available: list[ResourceSummary] = field(default_factory=list)
    unavailable: list[UnavailableEntry] = field(default_factory=list)


def check_interval(start: datetime, end: datetime) -> None:
    if start.tzinfo is None or end.tzinfo is None:
        raise ValidationError("start_time and end_time must include a UTC offset", field="start_time")
    if start >= end:
        raise ValidationError("end_time must be after start_time", field="end_time")


async def check_availability(
    repo: BookingRepository,
    resource: ResourceRef,
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[int] = None,
) -> AvailabilityResult:
    """
    Conflicts for `resource` over [start, end), ordered by start time.
    Read-only.
    """
    check_interval(start, end)

    candidates = await repo.list_active_bookings(resource, start, end, exclude_booking_id)
    conflicts = [
        booking
        for booking in candidates
        if booking.id != exclude_booking_id
        and overlaps(start, end, booking.start_time, booking.end_time)
    ]
    conflicts.sort(key=lambda b: (b.start_time, b.id))

    record_availability_check(not conflicts)
    if conflicts:
        logger.debug(
            "availability_conflict",
            resource_kind=resource.kind.value,
            resource_id=resource.id,
            conflicts=[b.id for b in conflicts],
        )
    return AvailabilityResult(is_available=not conflicts, conflicts=conflicts)


async def scan_resources(
    repo: BookingRepository,
    kind: ResourceKind,
    start: datetime,
    end: datetime,
    include_inactive: bool = False,
    exclude_booking_id: Optional[int] = None,
) -> ScanResult:
    """
    Partition every resource of `kind` into available and unavailable for
    [start, end). Unavailable entries carry their own conflict list.
    `include_inactive` only affects rooms.
    """
    check_interval(start, end)

    resources = await repo.list_resources(kind, include_inactive=include_inactive)
    result = ScanResult()

    for resource in resources:
        checked = await check_availability(
            repo,
            ResourceRef(kind, resource.id),
            start,
            end,
            exclude_booking_id,
        )
        if checked.is_available:
            result.available.append(resource)
        else:
            result.unavailable.append(UnavailableEntry(resource=resource, conflicts=checked.conflicts))

    logger.info(
        "resources_scanned",
        kind=kind.value,
        available=len(result.available),
        unavailable=len(result.unavailable),
    )
    return result


def conflict_summary(booking: Booking, reveal_owner: bool = False) -> dict:
    return ConflictView.from_booking(booking, reveal_owner=reveal_owner).model_dump(mode="json")


async def validate_booking_availability(
    repo: BookingRepository,
    resource: Optional[ResourceRef],
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[int] = None,
    allow_conflicts: bool = False,
    reveal_owner: bool = False,
) -> None:
    """
    Raise ConflictError when `resource` is taken over [start, end).
    A booking without a resource never conflicts.
    """
    if resource is None:
        check_interval(start, end)
        return

    checked = await check_availability(repo, resource, start, end, exclude_booking_id)
    if checked.is_available or allow_conflicts:
        return

    count = len(checked.conflicts)
    raise ConflictError(
        f"This {resource.label} is already booked for the selected time. "
        f"Found {count} conflicting booking(s).",
        details={"conflicts": [conflict_summary(b, reveal_owner) for b in checked.conflicts]},
    )
