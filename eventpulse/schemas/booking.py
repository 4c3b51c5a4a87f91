
from typing import Annotated, Optional, List
from uuid import UUID
from pydantic import BaseModel, Field, UUID4, field_validator
from decimal import Decimal
from datetime import date, datetime

from eventpulse.models.booking import BookingStatus, PaymentStatus


# Booking: Create (POST /bookings)
class BookingCreate(BaseModel):
    event_id: UUID4 = Field(alias="eventId")
    seat_ids: Annotated[List[UUID4], Field(alias="seatIds", min_length=1)]
    payment_id: Optional[str] = Field(default=None, alias="paymentId")

    @field_validator("payment_id", mode="before")
    @classmethod
    def parse_empty_str_to_none(cls, v):
        if v == "":
            return None
        return v

    class Config:
        populate_by_name = True


# Booking: Created (201 from POST /bookings)
class BookingCreated(BaseModel):
    booking_id: UUID4 = Field(alias="bookingId")
    booking_number: str = Field(alias="bookingNumber")
    total_amount: Decimal = Field(alias="totalAmount")
    ticket_artifact_ref: Optional[str] = Field(default=None, alias="ticketArtifactRef")

    class Config:
        populate_by_name = True


# Nested response objects for booking responses
class BookingEventSummary(BaseModel):
    title: str
    event_date: date
    event_time: str
    location: str
    image_url: Optional[str] = None


class BookingSeatResponse(BaseModel):
    seat_id: UUID4
    row: str
    number: int
    category: str
    price: Decimal # price locked in when the booking was made


# Booking: Full response (GET /bookings, GET /bookings/{id})
class Booking(BaseModel):
    id: UUID4
    booking_number: str
    user_id: UUID
    event_id: UUID4
    total_amount: Decimal
    payment_id: Optional[str] = None
    payment_status: PaymentStatus
    status: BookingStatus
    ticket_ref: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    event: Optional[BookingEventSummary] = None
    seats: List[BookingSeatResponse] = []

    class Config:
        from_attributes = True


# Booking: Cancel response (PUT /bookings/{id}/cancel)
class BookingCancelResponse(BaseModel):
    id: UUID4
    booking_number: str
    status: BookingStatus
    cancelled_at: Optional[datetime] = None
    released_seats: List[UUID4] = []
