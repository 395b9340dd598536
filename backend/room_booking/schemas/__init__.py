from room_booking.schemas.booking import (
    BookingCreate, BookingUpdate, BookingResponse, ConflictView,
    BulkUpdateRequest, BulkDeleteRequest,
)
from room_booking.schemas.resource import ResourceSummary, ResourceAvailabilityResponse
from room_booking.schemas.recurrence import (
    RecurrencePatternIn, RecurringBookingCreate, RecurringAvailabilityRequest,
)

__all__ = [
    "BookingCreate", "BookingUpdate", "BookingResponse", "ConflictView",
    "BulkUpdateRequest", "BulkDeleteRequest",
    "ResourceSummary", "ResourceAvailabilityResponse",
    "RecurrencePatternIn", "RecurringBookingCreate", "RecurringAvailabilityRequest",
]
