"""
Resource availability endpoints.

Non-admin callers only learn that a conflicting slot is "Booked"; admins
see the real event title and who booked it.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from room_booking.core.security import Identity, get_current_identity
from room_booking.models.resource import ResourceKind
from room_booking.repositories.base import BookingRepository
from room_booking.api.deps import get_repository
from room_booking.schemas.booking import ConflictView
from room_booking.schemas.resource import ResourceAvailabilityResponse, UnavailableResource
from room_booking.services.availability_service import ScanResult, scan_resources

router = APIRouter(tags=["Availability"])


def _to_response(result: ScanResult, identity: Identity, include_unavailable: bool) -> ResourceAvailabilityResponse:
    unavailable = []
    if include_unavailable:
        unavailable = [
            UnavailableResource(
                **entry.resource.model_dump(),
                conflicts=[ConflictView.from_booking(b, reveal_owner=identity.is_admin) for b in entry.conflicts],
            )
            for entry in result.unavailable
        ]
    return ResourceAvailabilityResponse(
        available=result.available,
        unavailable=unavailable,
        total_available=len(result.available),
        total_unavailable=len(result.unavailable),
    )


@router.get("/rooms/available", response_model=ResourceAvailabilityResponse)
async def available_rooms(
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    exclude_booking_id: Optional[int] = Query(None),
    include_inactive: bool = Query(False),
    include_unavailable: bool = Query(False),
    identity: Identity = Depends(get_current_identity),
    repo: BookingRepository = Depends(get_repository),
):
    """Rooms free for the whole interval. Inactive rooms are admin-only."""
    result = await scan_resources(
        repo,
        ResourceKind.ROOM,
        start_time,
        end_time,
        include_inactive=identity.is_admin and include_inactive,
        exclude_booking_id=exclude_booking_id,
    )
    return _to_response(result, identity, include_unavailable)


@router.get("/venues/available", response_model=ResourceAvailabilityResponse)
async def available_venues(
    start_time: datetime = Query(...),
    end_time: datetime = Query(...),
    exclude_booking_id: Optional[int] = Query(None),
    include_unavailable: bool = Query(False),
    identity: Identity = Depends(get_current_identity),
    repo: BookingRepository = Depends(get_repository),
):
    result = await scan_resources(
        repo,
        ResourceKind.VENUE,
        start_time,
        end_time,
        exclude_booking_id=exclude_booking_id,
    )
    return _to_response(result, identity, include_unavailable)
