"""
Recurrence preview and recurring availability endpoints.
"""

from fastapi import APIRouter, Depends

from room_booking.api.deps import get_repository
from room_booking.core.security import Identity, get_current_identity
from room_booking.models.resource import ResourceRef
from room_booking.repositories.base import BookingRepository
from room_booking.scheduling.recurrence import generate_occurrences
from room_booking.schemas.booking import ConflictView
from room_booking.schemas.recurrence import (
    ConflictingOccurrenceOut,
    OccurrenceOut,
    RecurrencePreviewRequest,
    RecurrencePreviewResponse,
    RecurringAvailabilityRequest,
    RecurringAvailabilityResponse,
)
from room_booking.services.recurring_service import check_series_availability

router = APIRouter(tags=["Recurrence"])


@router.post("/recurrence/preview", response_model=RecurrencePreviewResponse)
async def preview_occurrences(
    body: RecurrencePreviewRequest,
    identity: Identity = Depends(get_current_identity),
):
    """Expand a pattern without touching any bookings."""
    occurrences = generate_occurrences(body.pattern.to_rule(), body.start_time, body.end_time)
    return RecurrencePreviewResponse(
        occurrences=[OccurrenceOut.from_occurrence(o) for o in occurrences],
        total=len(occurrences),
    )


@router.post("/bookings/recurring/availability", response_model=RecurringAvailabilityResponse)
async def recurring_availability(
    body: RecurringAvailabilityRequest,
    identity: Identity = Depends(get_current_identity),
    repo: BookingRepository = Depends(get_repository),
):
    """
    Which occurrences of a pattern are free on one room or venue.
    Advisory: the create endpoint re-checks inside its transaction.
    """
    resource = ResourceRef.from_ids(body.room_id, body.external_venue_id)
    result = await check_series_availability(
        repo,
        body.pattern.to_rule(),
        body.start_time,
        body.end_time,
        resource,
        body.exclude_booking_id,
    )
    return RecurringAvailabilityResponse(
        available_occurrences=[OccurrenceOut.from_occurrence(o) for o in result.available_occurrences],
        conflicting_occurrences=[
            ConflictingOccurrenceOut(
                **OccurrenceOut.from_occurrence(item.occurrence).model_dump(),
                conflicts=[ConflictView.from_booking(b, reveal_owner=identity.is_admin) for b in item.conflicts],
            )
            for item in result.conflicting_occurrences
        ],
        total_available=len(result.available_occurrences),
        total_conflicting=len(result.conflicting_occurrences),
    )
