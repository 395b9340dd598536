"""
Booking write paths.

CONCURRENCY STRATEGY: Re-validate at commit time
================================================

Problem:
  A user checks availability, sees the room free, and submits. Meanwhile
  another request books the same slot. Trusting the first check would
  double-book the room.

Solution:
  Every write that leaves a booking occupying a resource runs inside one
  transaction that:
    1. locks the resource row (SELECT ... FOR UPDATE)
    2. re-runs the availability check against the committed booking set
    3. writes only if that check passes

  Competing writers for the same resource serialise on step 1, so the
  second writer sees the first one's booking in step 2 and gets a
  ConflictError. Any earlier availability response is advisory only.

  Reads that feed a write happen inside the same transaction, so on a
  fresh request session the outermost transaction() is the one that
  commits.

Write paths that affect other users return the notifications they produce
instead of sending them. Callers dispatch those after the commit; a
notification can never undo or delay a write.
"""

from typing import Iterable, Optional

from room_booking.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from room_booking.core.logging import get_logger
from room_booking.core.metrics import record_booking_write
from room_booking.core.security import Identity
from room_booking.models.booking import ACTIVE_STATUSES, Booking, BookingStatus
from room_booking.models.resource import ResourceKind, ResourceRef
from room_booking.repositories.base import BookingRepository
from room_booking.schemas.booking import BookingBase, BookingUpdate, BulkUpdateItem
from room_booking.schemas.recurrence import RecurringBookingCreate
from room_booking.services.availability_service import (
    check_interval,
    conflict_summary,
    validate_booking_availability,
)
from room_booking.services.notification_service import (
    NotificationEntry,
    OutgoingNotification,
    deletion_message,
    prepare_notifications,
    status_message,
)
from room_booking.services.recurring_service import (
    SeriesDraft,
    SeriesResult,
    check_series_availability,
    create_series,
    get_series,
)

logger = get_logger(__name__)


def _default_status(resource: Optional[ResourceRef]) -> BookingStatus:
    if resource is None:
        return BookingStatus.PENDING
    if resource.kind is ResourceKind.VENUE:
        return BookingStatus.AWAITING_EXTERNAL
    return BookingStatus.CONFIRMED


def _resolve_request(identity: Identity, data: BookingBase) -> tuple[str, Optional[ResourceRef], BookingStatus]:
    """
    Owner, resource and status for a new booking. Standard users always
    create an unassigned PENDING request for themselves; admins may book on
    behalf of someone, assign a resource and pick the status.
    """
    if not identity.is_admin:
        return identity.user_id, None, BookingStatus.PENDING

    resource = ResourceRef.from_ids(data.room_id, data.external_venue_id)
    status = data.status or _default_status(resource)
    return data.user_id or identity.user_id, resource, status


def _occupies(resource: Optional[ResourceRef], status) -> bool:
    return resource is not None and BookingStatus(status) in ACTIVE_STATUSES


async def create_booking(repo: BookingRepository, identity: Identity, data: BookingBase) -> Booking:
    """Create a single booking, re-validating availability inside the write transaction."""
    check_interval(data.start_time, data.end_time)
    owner_id, resource, status = _resolve_request(identity, data)

    try:
        async with repo.transaction():
            if _occupies(resource, status):
                await repo.lock_resource(resource)
                await validate_booking_availability(
                    repo,
                    resource,
                    data.start_time,
                    data.end_time,
                    reveal_owner=identity.is_admin,
                )

            booking = await repo.add_booking(
                Booking(
                    user_id=owner_id,
                    event_title=data.event_title,
                    number_of_attendees=data.number_of_attendees,
                    start_time=data.start_time,
                    end_time=data.end_time,
                    notes=data.notes,
                    status=status.value,
                    room_id=data.room_id if resource else None,
                    external_venue_id=data.external_venue_id if resource else None,
                )
            )
    except ConflictError:
        record_booking_write("single", "conflict")
        logger.warning(
            "booking_conflict",
            resource_kind=resource.kind.value,
            resource_id=resource.id,
            start_time=data.start_time.isoformat(),
        )
        raise

    record_booking_write("single", "success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=owner_id,
        status=status.value,
        room_id=booking.room_id,
        external_venue_id=booking.external_venue_id,
    )
    return booking


async def create_recurring_booking(
    repo: BookingRepository,
    identity: Identity,
    data: RecurringBookingCreate,
) -> SeriesResult:
    """
    Check every occurrence and persist the series in one transaction.
    Any conflicting occurrence rejects the whole series.
    """
    rule = data.pattern.to_rule()
    owner_id, resource, status = _resolve_request(identity, data)
    occupied = resource if _occupies(resource, status) else None

    try:
        async with repo.transaction():
            if occupied is not None:
                await repo.lock_resource(occupied)

            availability = await check_series_availability(
                repo, rule, data.start_time, data.end_time, occupied
            )
            if not availability.is_available:
                conflicting = availability.conflicting_occurrences
                total = len(conflicting) + len(availability.available_occurrences)
                raise ConflictError(
                    f"{len(conflicting)} of {total} occurrences conflict with existing bookings",
                    details={
                        "available_occurrences": len(availability.available_occurrences),
                        "conflicting_occurrences": [
                            {
                                "occurrence_number": item.occurrence.occurrence_number,
                                "start_time": item.occurrence.start_time.isoformat(),
                                "end_time": item.occurrence.end_time.isoformat(),
                                "conflicts": [
                                    conflict_summary(b, identity.is_admin) for b in item.conflicts
                                ],
                            }
                            for item in conflicting
                        ],
                    },
                )

            draft = SeriesDraft(
                event_title=data.event_title,
                status=status,
                user_id=owner_id,
                number_of_attendees=data.number_of_attendees,
                room_id=resource.id if resource and resource.kind is ResourceKind.ROOM else None,
                external_venue_id=resource.id if resource and resource.kind is ResourceKind.VENUE else None,
                notes=data.notes,
            )
            result = await create_series(repo, draft, rule, data.start_time, data.end_time)
    except ConflictError:
        record_booking_write("series", "conflict")
        raise
    except Exception:
        record_booking_write("series", "error")
        raise

    record_booking_write("series", "success")
    return result


async def get_series_for(repo: BookingRepository, identity: Identity, booking_id: int) -> list[Booking]:
    """Series lookup restricted to admins and the owner of the series."""
    bookings = await get_series(repo, booking_id)
    if not identity.is_admin and not any(b.user_id == identity.user_id for b in bookings):
        raise PermissionDeniedError("You do not have permission to view this booking")
    return bookings


def _check_update_allowed(identity: Identity, booking: Booking, data: BookingUpdate) -> None:
    """Admins may change anything; owners only the details of their PENDING bookings."""
    if identity.is_admin:
        return
    if booking.user_id != identity.user_id:
        raise PermissionDeniedError("You do not have permission to update this booking")
    if booking.status != BookingStatus.PENDING.value:
        raise PermissionDeniedError("Can only update bookings with PENDING status")
    if data.admin_fields():
        raise PermissionDeniedError(
            "Only administrators can assign resources or change status",
            details={"fields": sorted(data.admin_fields())},
        )


async def _apply_update(repo: BookingRepository, booking: Booking, data: BookingUpdate, identity: Identity) -> Booking:
    old_resource = ResourceRef.from_ids(booking.room_id, booking.external_venue_id)
    old_status = BookingStatus(booking.status)
    old_window = (booking.start_time, booking.end_time)

    start = data.start_time or booking.start_time
    end = data.end_time or booking.end_time
    check_interval(start, end)

    if data.event_title is not None:
        booking.event_title = data.event_title
    if data.number_of_attendees is not None:
        booking.number_of_attendees = data.number_of_attendees
    if data.notes is not None:
        booking.notes = data.notes
    booking.start_time = start
    booking.end_time = end

    if data.room_id is not None:
        booking.room_id = data.room_id
        booking.external_venue_id = None
    elif data.external_venue_id is not None:
        booking.external_venue_id = data.external_venue_id
        booking.room_id = None
    if data.status is not None:
        booking.status = data.status.value
    if data.rejection_reason is not None:
        booking.rejection_reason = data.rejection_reason

    resource = ResourceRef.from_ids(booking.room_id, booking.external_venue_id)
    needs_check = (
        resource != old_resource
        or old_status not in ACTIVE_STATUSES
        or (start, end) != old_window
    )
    if _occupies(resource, booking.status) and needs_check:
        await repo.lock_resource(resource)
        # The booking's own row never blocks its new window
        await validate_booking_availability(
            repo,
            resource,
            start,
            end,
            exclude_booking_id=booking.id,
            reveal_owner=identity.is_admin,
        )

    return await repo.save_booking(booking)


async def update_booking(
    repo: BookingRepository,
    identity: Identity,
    booking_id: int,
    data: BookingUpdate,
) -> tuple[Booking, list[OutgoingNotification]]:
    """
    Update one booking. Admins reassign, change status or reschedule any
    booking; owners edit the details and times of their own PENDING
    bookings. The owner is told about status changes.
    """
    entries: list[NotificationEntry] = []
    try:
        async with repo.transaction():
            booking = await repo.get_booking(booking_id)
            if booking is None:
                raise NotFoundError("Booking not found", details={"booking_id": booking_id})
            _check_update_allowed(identity, booking, data)

            previous_status = booking.status
            booking = await _apply_update(repo, booking, data, identity)

            if booking.status != previous_status and booking.user is not None:
                entries.append(NotificationEntry(booking.user, booking, status_message(booking)))
    except ConflictError:
        record_booking_write("update", "conflict")
        raise

    record_booking_write("update", "success")
    logger.info(
        "booking_updated",
        booking_id=booking.id,
        status=booking.status,
        updated_by=identity.user_id,
    )
    return booking, prepare_notifications(entries)


def _require_all(requested: Iterable[int], found: list[Booking]) -> dict[int, Booking]:
    by_id = {b.id: b for b in found}
    missing = [i for i in requested if i not in by_id]
    if missing:
        raise NotFoundError("One or more bookings not found", details={"missing_ids": missing})
    return by_id


async def bulk_update_bookings(
    repo: BookingRepository,
    identity: Identity,
    updates: list[BulkUpdateItem],
) -> tuple[list[Booking], list[OutgoingNotification]]:
    """
    Apply several admin updates atomically. Each affected owner gets one
    consolidated message covering all of their status changes.
    """
    if not identity.is_admin:
        raise PermissionDeniedError("Admin access required")

    ids = [item.id for item in updates]
    updated: list[Booking] = []
    entries: list[NotificationEntry] = []
    try:
        async with repo.transaction():
            existing = _require_all(ids, await repo.get_bookings(ids))
            for item in updates:
                booking = existing[item.id]
                previous_status = booking.status
                booking = await _apply_update(repo, booking, item.data, identity)
                updated.append(booking)

                if item.data.status is not None and booking.status != previous_status and booking.user is not None:
                    entries.append(NotificationEntry(booking.user, booking, status_message(booking)))
    except ConflictError:
        record_booking_write("bulk_update", "conflict")
        raise

    record_booking_write("bulk_update", "success")
    notifications = prepare_notifications(entries)
    logger.info("bookings_bulk_updated", count=len(updated), notifications=len(notifications))
    return updated, notifications


async def bulk_delete_bookings(
    repo: BookingRepository,
    identity: Identity,
    booking_ids: list[int],
) -> tuple[int, list[OutgoingNotification]]:
    """Delete bookings (series children cascade with their parent)."""
    if not identity.is_admin:
        raise PermissionDeniedError("Admin access required")

    async with repo.transaction():
        bookings = list(_require_all(booking_ids, await repo.get_bookings(booking_ids)).values())
        # Messages are rendered before the rows disappear
        entries = [
            NotificationEntry(b.user, b, deletion_message(b))
            for b in bookings
            if b.user is not None
        ]
        notifications = prepare_notifications(entries)
        await repo.delete_bookings([b.id for b in bookings])

    record_booking_write("bulk_delete", "success")
    logger.info("bookings_bulk_deleted", count=len(bookings))
    return len(bookings), notifications


async def cancel_booking(
    repo: BookingRepository,
    identity: Identity,
    booking_id: int,
) -> tuple[Booking, list[OutgoingNotification]]:
    """
    Cancel one booking. Owners may cancel their own; admins any. The owner
    is told when someone else cancelled it.
    """
    async with repo.transaction():
        booking = await repo.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found", details={"booking_id": booking_id})

        if not identity.is_admin and booking.user_id != identity.user_id:
            raise PermissionDeniedError("You do not have permission to cancel this booking")

        if booking.status == BookingStatus.CANCELLED.value:
            raise ValidationError("Booking is already cancelled", field="status")

        booking.status = BookingStatus.CANCELLED.value
        booking = await repo.save_booking(booking)

        entries = []
        if booking.user_id != identity.user_id and booking.user is not None:
            entries.append(NotificationEntry(booking.user, booking, status_message(booking)))

    record_booking_write("cancel", "success")
    logger.info("booking_cancelled", booking_id=booking.id, cancelled_by=identity.user_id)
    return booking, prepare_notifications(entries)
