"""
Pydantic schemas for recurrence patterns and recurring bookings.

Pattern fields are typed loosely on purpose: frequency, weekday codes and
bounds are checked by the recurrence generator so that every entry point
reports the same field-level errors.
"""

from datetime import datetime
from typing import Optional
from pydantic import AwareDatetime, BaseModel, Field

from room_booking.models.booking import Weekday
from room_booking.schemas.booking import BookingBase, BookingResponse, ConflictView
from room_booking.scheduling.recurrence import Occurrence, RecurrenceRule


class RecurrencePatternIn(BaseModel):
    frequency: str
    interval: Optional[int] = 1
    days_of_week: list[str] = Field(default_factory=list)
    max_occurrences: int
    end_date: Optional[AwareDatetime] = None

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            frequency=self.frequency.upper(),
            interval=self.interval,
            days_of_week=tuple(code.upper() for code in self.days_of_week),
            max_occurrences=self.max_occurrences,
            end_date=self.end_date,
        )


class RecurrencePatternResponse(BaseModel):
    id: int
    booking_id: int
    frequency: str
    interval: int
    days_of_week: Optional[list[str]]
    max_occurrences: int
    end_date: Optional[datetime]

    @classmethod
    def from_model(cls, pattern) -> "RecurrencePatternResponse":
        days = None
        if pattern.days_of_week:
            # Calendar order, SUN first
            calendar = list(Weekday)
            days = [day.value for day in sorted((Weekday(d) for d in pattern.days_of_week), key=calendar.index)]
        return cls(
            id=pattern.id,
            booking_id=pattern.booking_id,
            frequency=pattern.frequency,
            interval=pattern.interval,
            days_of_week=days,
            max_occurrences=pattern.max_occurrences,
            end_date=pattern.end_date,
        )


class OccurrenceOut(BaseModel):
    occurrence_number: int
    start_time: datetime
    end_time: datetime

    @classmethod
    def from_occurrence(cls, occurrence: Occurrence) -> "OccurrenceOut":
        return cls(
            occurrence_number=occurrence.occurrence_number,
            start_time=occurrence.start_time,
            end_time=occurrence.end_time,
        )


class ConflictingOccurrenceOut(OccurrenceOut):
    conflicts: list[ConflictView]


class RecurrencePreviewRequest(BaseModel):
    pattern: RecurrencePatternIn
    start_time: AwareDatetime
    end_time: AwareDatetime


class RecurrencePreviewResponse(BaseModel):
    occurrences: list[OccurrenceOut]
    total: int


class RecurringAvailabilityRequest(RecurrencePreviewRequest):
    room_id: Optional[int] = Field(None, gt=0)
    external_venue_id: Optional[int] = Field(None, gt=0)
    exclude_booking_id: Optional[int] = None


class RecurringAvailabilityResponse(BaseModel):
    available_occurrences: list[OccurrenceOut]
    conflicting_occurrences: list[ConflictingOccurrenceOut]
    total_available: int
    total_conflicting: int


class RecurringBookingCreate(BookingBase):
    pattern: RecurrencePatternIn


class SeriesCreatedResponse(BaseModel):
    parent_booking: BookingResponse
    child_bookings: list[BookingResponse]
    pattern: RecurrencePatternResponse


class SeriesResponse(BaseModel):
    parent_booking_id: int
    bookings: list[BookingResponse]
    total: int
