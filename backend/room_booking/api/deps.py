"""
FastAPI dependencies wiring the core to its collaborators.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from room_booking.db.session import get_db
from room_booking.repositories.base import BookingRepository
from room_booking.repositories.sqlalchemy_repository import SqlAlchemyBookingRepository
from room_booking.services.notification_service import LoggingNotificationDispatcher, NotificationDispatcher


async def get_repository(db: AsyncSession = Depends(get_db)) -> BookingRepository:
    return SqlAlchemyBookingRepository(db)


def get_dispatcher() -> NotificationDispatcher:
    return LoggingNotificationDispatcher()
