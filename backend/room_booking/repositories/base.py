"""
Persistence collaborator interface.

The booking core never opens sessions or imports a driver; every service
function receives a BookingRepository. Production code uses the SQLAlchemy
implementation, unit tests use the in-memory one.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncContextManager, Iterable, Optional

from room_booking.models.booking import Booking, RecurrencePattern
from room_booking.models.resource import ResourceKind, ResourceRef
from room_booking.schemas.resource import ResourceSummary


class BookingRepository(ABC):
    """
    Implementations:
    - SqlAlchemyBookingRepository: AsyncSession backed, row locks on commit
    - InMemoryBookingRepository: dict backed fake for tests
    """

    @abstractmethod
    async def list_active_bookings(
        self,
        resource: ResourceRef,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> list[Booking]:
        """
        Bookings on `resource` in an active status, minus the excluded id.

        Implementations may narrow the result to the [start, end) window;
        callers still apply the overlap primitive to what comes back.
        """

    @abstractmethod
    async def get_booking(self, booking_id: int) -> Optional[Booking]:
        pass

    @abstractmethod
    async def get_bookings(self, booking_ids: Iterable[int]) -> list[Booking]:
        pass

    @abstractmethod
    async def add_booking(self, booking: Booking) -> Booking:
        """Persist a new booking and return it with its id assigned."""

    @abstractmethod
    async def add_pattern(self, pattern: RecurrencePattern) -> RecurrencePattern:
        pass

    @abstractmethod
    async def save_booking(self, booking: Booking) -> Booking:
        """Flush changes made to an already persisted booking."""

    @abstractmethod
    async def list_series(self, parent_id: int) -> list[Booking]:
        """The parent plus every child pointing at it, by occurrence number."""

    @abstractmethod
    async def delete_bookings(self, booking_ids: Iterable[int]) -> int:
        pass

    @abstractmethod
    async def list_resources(self, kind: ResourceKind, include_inactive: bool = False) -> list[ResourceSummary]:
        """
        Rooms ordered by name, or venues ordered by campus, building and
        room name. Inactive rooms only when asked for.
        """

    @abstractmethod
    async def lock_resource(self, resource: ResourceRef) -> None:
        """
        Serialise writers on `resource` for the rest of the current
        transaction. Raises NotFoundError when the resource does not exist.
        """

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """
        Atomic unit: everything written inside commits together or not at
        all. Nests (as a savepoint) when a transaction is already open.
        """
