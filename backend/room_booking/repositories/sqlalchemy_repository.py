"""
SQLAlchemy implementation of the persistence collaborator.

CONCURRENCY STRATEGY: Pessimistic lock on the resource row
==========================================================

Problem:
  Two requests check the same room for overlapping slots, both see it free,
  both insert. Result: double booking.

Solution:
  Write paths call lock_resource() inside their transaction. That issues
  SELECT ... FOR UPDATE on the room/venue row, so concurrent writers for the
  same resource queue up behind each other and the second one re-runs the
  availability check after the first has committed. Reads never take the
  lock; a pre-write check is advisory only.

  Writers on different resources do not contend. SQLite ignores FOR UPDATE
  but serialises writers at the database level anyway.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Iterable, Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from room_booking.core.errors import NotFoundError
from room_booking.core.logging import get_logger
from room_booking.models.booking import ACTIVE_STATUSES, Booking, RecurrencePattern
from room_booking.models.resource import ExternalVenue, ResourceKind, ResourceRef, Room
from room_booking.repositories.base import BookingRepository
from room_booking.schemas.resource import ResourceSummary
from room_booking.services.cache_service import get_cached_resources, set_cached_resources

logger = get_logger(__name__)

_ACTIVE_VALUES = sorted(status.value for status in ACTIVE_STATUSES)


def _resource_column(resource: ResourceRef):
    if resource.kind is ResourceKind.ROOM:
        return Booking.room_id
    return Booking.external_venue_id


class SqlAlchemyBookingRepository(BookingRepository):

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active_bookings(
        self,
        resource: ResourceRef,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> list[Booking]:
        # Window predicate mirrors overlaps(): start < end AND end > start
        query = (
            select(Booking)
            .where(
                _resource_column(resource) == resource.id,
                Booking.status.in_(_ACTIVE_VALUES),
                Booking.start_time < end,
                Booking.end_time > start,
            )
            .order_by(Booking.start_time.asc(), Booking.id.asc())
            .execution_options(populate_existing=True)
        )
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        result = await self.db.execute(
            select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_bookings(self, booking_ids: Iterable[int]) -> list[Booking]:
        ids = list(booking_ids)
        if not ids:
            return []
        result = await self.db.execute(
            select(Booking)
            .where(Booking.id.in_(ids))
            .order_by(Booking.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def add_booking(self, booking: Booking) -> Booking:
        self.db.add(booking)
        await self.db.flush()
        return booking

    async def add_pattern(self, pattern: RecurrencePattern) -> RecurrencePattern:
        self.db.add(pattern)
        await self.db.flush()
        return pattern

    async def save_booking(self, booking: Booking) -> Booking:
        await self.db.flush()
        # Resource assignment may have changed; reload what notifications read
        await self.db.refresh(booking, attribute_names=["user", "room", "external_venue"])
        return booking

    async def list_series(self, parent_id: int) -> list[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(or_(Booking.id == parent_id, Booking.parent_booking_id == parent_id))
            .order_by(Booking.occurrence_number.asc(), Booking.id.asc())
        )
        return list(result.scalars().all())

    async def delete_bookings(self, booking_ids: Iterable[int]) -> int:
        ids = list(booking_ids)
        if not ids:
            return 0
        result = await self.db.execute(
            delete(Booking).where(Booking.id.in_(ids)).execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def list_resources(self, kind: ResourceKind, include_inactive: bool = False) -> list[ResourceSummary]:
        cached = await get_cached_resources(kind.value, include_inactive)
        if cached is not None:
            return [ResourceSummary.model_validate(item) for item in cached]

        if kind is ResourceKind.ROOM:
            query = select(Room).order_by(Room.name.asc())
            if not include_inactive:
                query = query.where(Room.is_active.is_(True))
            rows = (await self.db.execute(query)).scalars().all()
            resources = [ResourceSummary.from_room(room) for room in rows]
        else:
            query = select(ExternalVenue).order_by(
                ExternalVenue.campus.asc().nulls_first(),
                ExternalVenue.building.asc(),
                ExternalVenue.room_name.asc(),
            )
            rows = (await self.db.execute(query)).scalars().all()
            resources = [ResourceSummary.from_venue(venue) for venue in rows]

        await set_cached_resources(
            kind.value,
            include_inactive,
            [resource.model_dump(mode="json") for resource in resources],
        )
        return resources

    async def lock_resource(self, resource: ResourceRef) -> None:
        model = Room if resource.kind is ResourceKind.ROOM else ExternalVenue
        result = await self.db.execute(
            select(model.id).where(model.id == resource.id).with_for_update()
        )
        if result.scalar_one_or_none() is None:
            raise NotFoundError(
                f"{resource.label.capitalize()} {resource.id} not found",
                details={f"{resource.label}_id": resource.id},
            )

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self.db.in_transaction():
            async with self.db.begin_nested():
                yield
        else:
            async with self.db.begin():
                yield
