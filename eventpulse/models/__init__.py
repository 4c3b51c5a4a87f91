from eventpulse.models.event import Event
from eventpulse.models.seat import Seat, SeatStatus
from eventpulse.models.booking import Booking, BookingSeat, BookingStatus, PaymentStatus
