"""
In-memory persistence collaborator.

Keeps rows in dicts and implements transactions by snapshotting them, so
service code can be exercised without a database. `fail_on_add` lets tests
force a write failure at a chosen point to observe rollback behaviour.
"""

import copy
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Iterable, Optional

from room_booking.core.errors import NotFoundError
from room_booking.models.booking import ACTIVE_STATUSES, Booking, RecurrencePattern
from room_booking.models.resource import ExternalVenue, ResourceKind, ResourceRef, Room
from room_booking.repositories.base import BookingRepository
from room_booking.schemas.resource import ResourceSummary


class InMemoryBookingRepository(BookingRepository):

    def __init__(self):
        self.rooms: dict[int, Room] = {}
        self.venues: dict[int, ExternalVenue] = {}
        self.bookings: dict[int, Booking] = {}
        self.patterns: dict[int, RecurrencePattern] = {}
        self.fail_on_add: Optional[Callable[[Booking], bool]] = None
        self._next_booking_id = 1
        self._next_pattern_id = 1

    # Seeding helpers

    def add_room(self, room: Room) -> Room:
        if room.is_active is None:
            room.is_active = True
        self.rooms[room.id] = room
        return room

    def add_venue(self, venue: ExternalVenue) -> ExternalVenue:
        self.venues[venue.id] = venue
        return venue

    # BookingRepository

    async def list_active_bookings(
        self,
        resource: ResourceRef,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> list[Booking]:
        attr = "room_id" if resource.kind is ResourceKind.ROOM else "external_venue_id"
        return [
            booking
            for booking in self.bookings.values()
            if getattr(booking, attr) == resource.id
            and booking.status in ACTIVE_STATUSES
            and booking.id != exclude_booking_id
        ]

    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self.bookings.get(booking_id)

    async def get_bookings(self, booking_ids: Iterable[int]) -> list[Booking]:
        return [self.bookings[i] for i in sorted(set(booking_ids)) if i in self.bookings]

    async def add_booking(self, booking: Booking) -> Booking:
        if self.fail_on_add is not None and self.fail_on_add(booking):
            raise RuntimeError("simulated write failure")
        if booking.id is None:
            booking.id = self._next_booking_id
        self._next_booking_id = max(self._next_booking_id, booking.id) + 1
        if booking.created_at is None:
            booking.created_at = datetime.now(timezone.utc)
        if booking.status is None:
            booking.status = "PENDING"
        self.bookings[booking.id] = booking
        return booking

    async def add_pattern(self, pattern: RecurrencePattern) -> RecurrencePattern:
        pattern.id = self._next_pattern_id
        self._next_pattern_id += 1
        if pattern.interval is None:
            pattern.interval = 1
        self.patterns[pattern.booking_id] = pattern
        return pattern

    async def save_booking(self, booking: Booking) -> Booking:
        booking.room = self.rooms.get(booking.room_id)
        booking.external_venue = self.venues.get(booking.external_venue_id)
        self.bookings[booking.id] = booking
        return booking

    async def list_series(self, parent_id: int) -> list[Booking]:
        members = [
            booking
            for booking in self.bookings.values()
            if booking.id == parent_id or booking.parent_booking_id == parent_id
        ]
        return sorted(members, key=lambda b: (b.occurrence_number or 0, b.id))

    async def delete_bookings(self, booking_ids: Iterable[int]) -> int:
        doomed = {i for i in booking_ids if i in self.bookings}
        # Mirror ON DELETE CASCADE for series children and patterns
        doomed |= {b.id for b in self.bookings.values() if b.parent_booking_id in doomed}
        for booking_id in doomed:
            self.bookings.pop(booking_id, None)
            self.patterns.pop(booking_id, None)
        return len(doomed)

    async def list_resources(self, kind: ResourceKind, include_inactive: bool = False) -> list[ResourceSummary]:
        if kind is ResourceKind.ROOM:
            rooms = [r for r in self.rooms.values() if include_inactive or r.is_active]
            rooms.sort(key=lambda r: r.name)
            return [ResourceSummary.from_room(room) for room in rooms]

        venues = sorted(
            self.venues.values(),
            key=lambda v: (v.campus or "", v.building, v.room_name),
        )
        return [ResourceSummary.from_venue(venue) for venue in venues]

    async def lock_resource(self, resource: ResourceRef) -> None:
        table = self.rooms if resource.kind is ResourceKind.ROOM else self.venues
        if resource.id not in table:
            raise NotFoundError(
                f"{resource.label.capitalize()} {resource.id} not found",
                details={f"{resource.label}_id": resource.id},
            )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        snapshot = (
            dict(self.bookings),
            dict(self.patterns),
            {i: copy.copy(b.__dict__) for i, b in self.bookings.items()},
            self._next_booking_id,
            self._next_pattern_id,
        )
        try:
            yield
        except BaseException:
            bookings, patterns, states, next_booking, next_pattern = snapshot
            self.bookings = bookings
            self.patterns = patterns
            for booking_id, state in states.items():
                bookings[booking_id].__dict__.update(state)
            self._next_booking_id = next_booking
            self._next_pattern_id = next_pattern
            raise
