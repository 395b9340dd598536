"""
Pydantic schemas for resources and resource availability scans.
"""

from typing import Optional
from pydantic import BaseModel

from room_booking.models.resource import ExternalVenue, ResourceKind, Room
from room_booking.schemas.booking import ConflictView


class ResourceSummary(BaseModel):
    id: int
    kind: ResourceKind
    name: str
    is_active: bool = True
    description: Optional[str] = None
    capacity: Optional[int] = None
    campus: Optional[str] = None
    building: Optional[str] = None
    room_name: Optional[str] = None

    @classmethod
    def from_room(cls, room: Room) -> "ResourceSummary":
        return cls(
            id=room.id,
            kind=ResourceKind.ROOM,
            name=room.name,
            is_active=bool(room.is_active),
            description=room.description,
            capacity=room.capacity,
        )

    @classmethod
    def from_venue(cls, venue: ExternalVenue) -> "ResourceSummary":
        return cls(
            id=venue.id,
            kind=ResourceKind.VENUE,
            name=venue.display_name,
            campus=venue.campus,
            building=venue.building,
            room_name=venue.room_name,
        )


class UnavailableResource(ResourceSummary):
    conflicts: list[ConflictView]


class ResourceAvailabilityResponse(BaseModel):
    available: list[ResourceSummary]
    unavailable: list[UnavailableResource]
    total_available: int
    total_unavailable: int
