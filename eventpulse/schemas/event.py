from typing import List, Optional
from pydantic import BaseModel, UUID4
from decimal import Decimal
from datetime import date, datetime

from eventpulse.models.seat import SeatStatus


# Event: catalog card (GET /events)
class EventSummary(BaseModel):
    id: UUID4
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    event_date: date
    event_time: str
    location: str
    price: Decimal
    category: str
    total_seats: int
    available_seats: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Seat map (GET /events/{id}) ---

class SeatOut(BaseModel):
    id: UUID4
    row: str
    seat_number: int
    category: str
    price: Decimal
    status: SeatStatus
    # Advisory: who is currently selecting this seat, if anyone
    holder: Optional[str] = None


class EventDetail(EventSummary):
    seats: List[SeatOut] = []


class AvailabilityResponse(BaseModel):
    event_id: UUID4
    total: int
    available: int
