"""
Booking endpoints. Thin adapters over booking_service; every write
re-validates availability inside its own transaction.
"""

from fastapi import APIRouter, BackgroundTasks, Body, Depends, status

from room_booking.api.deps import get_dispatcher, get_repository
from room_booking.core.security import Identity, get_current_identity, require_admin
from room_booking.repositories.base import BookingRepository
from room_booking.schemas.booking import (
    BookingCancelResponse,
    BookingCreate,
    BookingResponse,
    BookingUpdate,
    BulkDeleteRequest,
    BulkDeleteResponse,
    BulkUpdateRequest,
    BulkUpdateResponse,
)
from room_booking.schemas.recurrence import (
    RecurrencePatternResponse,
    RecurringBookingCreate,
    SeriesCreatedResponse,
    SeriesResponse,
)
from room_booking.services import booking_service
from room_booking.services.notification_service import (
    NotificationDispatcher,
    OutgoingNotification,
    dispatch_best_effort,
)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _schedule_notifications(
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher,
    notifications: list[OutgoingNotification],
) -> None:
    # Runs after the response is sent, outside the write transaction
    if notifications:
        background_tasks.add_task(dispatch_best_effort, dispatcher, notifications)


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    identity: Identity = Depends(get_current_identity),
    repo: BookingRepository = Depends(get_repository),
):
    """
    Create a booking request.

    Standard users get an unassigned PENDING request. Admins may book for
    another user and assign a room or venue; that assignment is checked for
    conflicts at commit time and a clash returns 409 with the conflicts.
    """
    return await booking_service.create_booking(repo, identity, booking_data)


@router.post("/recurring", response_model=SeriesCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_booking(
    booking_data: RecurringBookingCreate,
    identity: Identity = Depends(get_current_identity),
    repo: BookingRepository = Depends(get_repository),
):
    """Create a whole series, or nothing if any occurrence conflicts."""
    result = await booking_service.create_recurring_booking(repo, identity, booking_data)
    return SeriesCreatedResponse(
        parent_booking=BookingResponse.model_validate(result.parent_booking),
        child_bookings=[BookingResponse.model_validate(b) for b in result.child_bookings],
        pattern=RecurrencePatternResponse.from_model(result.pattern),
    )


@router.get("/{booking_id}/series", response_model=SeriesResponse)
async def get_booking_series(
    booking_id: int,
    identity: Identity = Depends(get_current_identity),
    repo: BookingRepository = Depends(get_repository),
):
    """Every booking in the series containing this booking, parent first."""
    bookings = await booking_service.get_series_for(repo, identity, booking_id)
    return SeriesResponse(
        parent_booking_id=bookings[0].series_root_id,
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=len(bookings),
    )


@router.put("/bulk", response_model=BulkUpdateResponse)
async def bulk_update_bookings(
    body: BulkUpdateRequest,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(require_admin),
    repo: BookingRepository = Depends(get_repository),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Update many bookings; each affected user gets one summary message."""
    updated, notifications = await booking_service.bulk_update_bookings(repo, identity, body.updates)
    _schedule_notifications(background_tasks, dispatcher, notifications)
    return BulkUpdateResponse(
        updated=len(updated),
        bookings=[BookingResponse.model_validate(b) for b in updated],
    )


@router.delete("/bulk", response_model=BulkDeleteResponse)
async def bulk_delete_bookings(
    background_tasks: BackgroundTasks,
    body: BulkDeleteRequest = Body(...),
    identity: Identity = Depends(require_admin),
    repo: BookingRepository = Depends(get_repository),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    deleted, notifications = await booking_service.bulk_delete_bookings(repo, identity, body.booking_ids)
    _schedule_notifications(background_tasks, dispatcher, notifications)
    return BulkDeleteResponse(deleted=deleted)


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: int,
    body: BookingUpdate,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_current_identity),
    repo: BookingRepository = Depends(get_repository),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Admins may reassign, change status or reschedule. Owners may edit the
    details and times of their own PENDING bookings. A new time window on
    an assigned resource is re-checked for conflicts.
    """
    booking, notifications = await booking_service.update_booking(repo, identity, booking_id, body)
    _schedule_notifications(background_tasks, dispatcher, notifications)
    return booking


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_current_identity),
    repo: BookingRepository = Depends(get_repository),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Cancel a booking. The row is kept with status CANCELLED."""
    booking, notifications = await booking_service.cancel_booking(repo, identity, booking_id)
    _schedule_notifications(background_tasks, dispatcher, notifications)
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status,
    )
