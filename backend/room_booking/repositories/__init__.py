from room_booking.repositories.base import BookingRepository
from room_booking.repositories.memory import InMemoryBookingRepository
from room_booking.repositories.sqlalchemy_repository import SqlAlchemyBookingRepository

__all__ = ["BookingRepository", "InMemoryBookingRepository", "SqlAlchemyBookingRepository"]
