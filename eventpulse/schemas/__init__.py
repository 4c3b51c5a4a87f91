from eventpulse.schemas.common import PaginatedResponse, ErrorResponse, SeatsUnavailableError, HealthResponse
from eventpulse.schemas.event import EventSummary, EventDetail, SeatOut, AvailabilityResponse
from eventpulse.schemas.booking import (
    Booking, BookingCreate, BookingCreated, BookingCancelResponse,
    BookingSeatResponse, BookingEventSummary,
)
from eventpulse.schemas.presence import (
    ClientMessage, JoinEventMessage, LeaveEventMessage, SelectSeatMessage,
    BookingCompleteMessage, PingMessage, client_message_adapter,
)
