"""
Booking error taxonomy.

Every failure the reservation core can report carries a machine-readable
``kind`` and a human-readable ``message``. The API layer renders them as
``ErrorResponse`` bodies with the matching HTTP status.
"""

from typing import Iterable, List, Optional


class BookingError(Exception):
    kind = "booking_error"
    status_code = 400
    default_message = "Booking request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class InvalidRequest(BookingError):
    kind = "invalid_request"
    status_code = 400
    default_message = "Event ID and seat IDs are required"


class NotFound(BookingError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class SeatUnavailable(BookingError):
    """Lost the race for one or more seats. Refresh the seat map and retry."""

    kind = "seat_unavailable"
    status_code = 400
    default_message = "One or more selected seats are not available"

    def __init__(self, seat_ids: Iterable = (), message: Optional[str] = None):
        self.seat_ids: List = list(seat_ids)
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["unavailable_seat_ids"] = [str(s) for s in self.seat_ids]
        return data


class Forbidden(BookingError):
    kind = "forbidden"
    status_code = 403
    default_message = "Not enough privileges"


class AlreadyCancelled(BookingError):
    kind = "already_cancelled"
    status_code = 400
    default_message = "Booking is already cancelled"


class TransientStorageFailure(BookingError):
    """The unit of work could not commit. Nothing was persisted; safe to retry."""

    kind = "transient_storage_failure"
    status_code = 503
    default_message = "The booking could not be saved, please try again"
