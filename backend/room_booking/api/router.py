"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from room_booking.api.routes import availability, bookings, recurrence

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(availability.router)
api_router.include_router(recurrence.router)
api_router.include_router(bookings.router)
