"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import AwareDatetime, BaseModel, Field, model_validator

from room_booking.models.booking import BookingStatus


class ConflictOwner(BaseModel):
    id: str
    name: str
    email: str


class ConflictView(BaseModel):
    """Read-only projection of a booking that blocks a requested interval."""

    id: int
    event_title: str
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    user: Optional[ConflictOwner] = None

    @classmethod
    def from_booking(cls, booking, reveal_owner: bool = False) -> "ConflictView":
        owner = None
        if reveal_owner and booking.user is not None:
            owner = ConflictOwner(id=booking.user.id, name=booking.user.name, email=booking.user.email)
        return cls(
            id=booking.id,
            event_title=booking.event_title if reveal_owner else "Booked",
            start_time=booking.start_time,
            end_time=booking.end_time,
            status=booking.status,
            user=owner,
        )


class BookingBase(BaseModel):
    event_title: str = Field(..., min_length=1, max_length=255)
    number_of_attendees: Optional[int] = Field(None, gt=0)
    start_time: AwareDatetime
    end_time: AwareDatetime
    notes: Optional[str] = Field(None, max_length=1000)

    # Admin-only fields; ignored for standard users
    user_id: Optional[str] = None
    room_id: Optional[int] = Field(None, gt=0)
    external_venue_id: Optional[int] = Field(None, gt=0)
    status: Optional[BookingStatus] = None


class BookingCreate(BookingBase):
    pass


ADMIN_UPDATE_FIELDS = frozenset({"room_id", "external_venue_id", "status", "rejection_reason"})


class BookingUpdate(BaseModel):
    # Owners may change these while the booking is PENDING
    event_title: Optional[str] = Field(None, min_length=1, max_length=255)
    number_of_attendees: Optional[int] = Field(None, gt=0)
    start_time: Optional[AwareDatetime] = None
    end_time: Optional[AwareDatetime] = None
    notes: Optional[str] = Field(None, max_length=1000)

    # Admin-only
    room_id: Optional[int] = Field(None, gt=0)
    external_venue_id: Optional[int] = Field(None, gt=0)
    status: Optional[BookingStatus] = None
    rejection_reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_assignment(self):
        if self.room_id and self.external_venue_id:
            raise ValueError("Cannot assign both room and external venue")
        if self.status == BookingStatus.REJECTED and not self.rejection_reason:
            raise ValueError("Rejection reason is required when rejecting a booking")
        return self

    def admin_fields(self) -> set[str]:
        return set(self.model_fields_set & ADMIN_UPDATE_FIELDS)


class BulkUpdateItem(BaseModel):
    id: int = Field(..., gt=0)
    data: BookingUpdate


class BulkUpdateRequest(BaseModel):
    updates: list[BulkUpdateItem] = Field(..., min_length=1, max_length=100)


class BulkDeleteRequest(BaseModel):
    booking_ids: list[int] = Field(..., min_length=1, max_length=100)


class BookingResponse(BaseModel):
    id: int
    user_id: Optional[str]
    room_id: Optional[int]
    external_venue_id: Optional[int]
    event_title: str
    number_of_attendees: Optional[int]
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    notes: Optional[str]
    rejection_reason: Optional[str]
    parent_booking_id: Optional[int]
    occurrence_number: Optional[int]
    created_at: datetime

    model_config = {"from_attributes": True}


class BulkUpdateResponse(BaseModel):
    updated: int
    bookings: list[BookingResponse]


class BulkDeleteResponse(BaseModel):
    deleted: int


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: BookingStatus
