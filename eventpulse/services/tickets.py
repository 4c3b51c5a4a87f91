import json
import logging
import os
from typing import List, Optional, Protocol

from eventpulse.core.config import settings
from eventpulse.models.booking import Booking
from eventpulse.models.seat import Seat

logger = logging.getLogger(__name__)


class TicketArtifactGenerator(Protocol):
    """Turns a committed booking into a ticket artifact and returns its reference."""

    def generate(self, booking: Booking, seats: List[Seat]) -> str:
        ...


def build_ticket_payload(booking: Booking, seats: List[Seat]) -> dict:
    return {
        "bookingId": str(booking.id),
        "bookingNumber": booking.booking_number,
        "eventId": str(booking.event_id),
        "userId": str(booking.user_id),
        "seats": [
            {"id": str(s.id), "row": s.row_label, "number": s.seat_number}
            for s in seats
        ],
    }


class FileTicketArtifactGenerator:
    """Writes the ticket payload next to the other uploads, served as a static file."""

    def __init__(self, directory: Optional[str] = None, url_prefix: Optional[str] = None):
        self.directory = directory or settings.TICKET_ARTIFACT_DIR
        self.url_prefix = (url_prefix or settings.TICKET_ARTIFACT_URL_PREFIX).rstrip("/")

    def generate(self, booking: Booking, seats: List[Seat]) -> str:
        os.makedirs(self.directory, exist_ok=True)
        filename = f"booking-{booking.id}.json"
        with open(os.path.join(self.directory, filename), "w", encoding="utf-8") as fh:
            json.dump(build_ticket_payload(booking, seats), fh)
        logger.debug("Wrote ticket artifact %s", filename)
        return f"{self.url_prefix}/{filename}"
