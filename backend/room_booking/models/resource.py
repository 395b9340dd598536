"""
Bookable resources: internal rooms and external venues.

Both are administered elsewhere and are read-only to the booking core.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import Boolean, Column, Integer, String

from room_booking.core.errors import ValidationError
from room_booking.db.base import Base, TimestampMixin


class ResourceKind(str, enum.Enum):
    ROOM = "room"
    VENUE = "venue"


class Room(Base, TimestampMixin):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    capacity = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, name={self.name}, active={self.is_active})>"


class ExternalVenue(Base, TimestampMixin):
    __tablename__ = "external_venues"

    id = Column(Integer, primary_key=True, index=True)
    campus = Column(String(255), nullable=True)
    building = Column(String(255), nullable=False)
    room_name = Column(String(255), nullable=False)
    contact_details = Column(String(500), nullable=True)

    @property
    def display_name(self) -> str:
        return f"{self.building} - {self.room_name}"

    def __repr__(self) -> str:
        return f"<ExternalVenue(id={self.id}, building={self.building}, room={self.room_name})>"


@dataclass(frozen=True)
class ResourceRef:
    """Points at exactly one bookable resource."""

    kind: ResourceKind
    id: int

    @classmethod
    def from_ids(cls, room_id: Optional[int], external_venue_id: Optional[int]) -> Optional["ResourceRef"]:
        if room_id is not None and external_venue_id is not None:
            raise ValidationError(
                "Cannot assign both room and external venue",
                field="room_id",
            )
        if room_id is not None:
            return cls(ResourceKind.ROOM, room_id)
        if external_venue_id is not None:
            return cls(ResourceKind.VENUE, external_venue_id)
        return None

    @property
    def label(self) -> str:
        return "room" if self.kind is ResourceKind.ROOM else "venue"
