
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter, UUID4


# --- Client → server messages on the seat-map WebSocket ---

class JoinEventMessage(BaseModel):
    type: Literal["joinEvent"]
    event_id: UUID4 = Field(alias="eventId")


class LeaveEventMessage(BaseModel):
    type: Literal["leaveEvent"]
    event_id: UUID4 = Field(alias="eventId")


class SelectSeatMessage(BaseModel):
    type: Literal["selectSeat"]
    event_id: UUID4 = Field(alias="eventId")
    seat_id: UUID4 = Field(alias="seatId")
    # Clients send it, but the holder shown to others comes from the connection
    user_id: Optional[str] = Field(default=None, alias="userId")
    action: Literal["select", "deselect"]


class BookingCompleteMessage(BaseModel):
    type: Literal["bookingComplete"]
    event_id: UUID4 = Field(alias="eventId")
    booking_id: UUID4 = Field(alias="bookingId")
    # Informational only; the booked seat list is re-read from storage
    seats: List[dict] = []


class PingMessage(BaseModel):
    type: Literal["ping"]


ClientMessage = Annotated[
    Union[
        JoinEventMessage,
        LeaveEventMessage,
        SelectSeatMessage,
        BookingCompleteMessage,
        PingMessage,
    ],
    Field(discriminator="type"),
]

client_message_adapter = TypeAdapter(ClientMessage)
