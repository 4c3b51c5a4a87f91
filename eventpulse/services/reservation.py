"""
Reservation transaction manager.

``reserve`` and ``cancel`` are the only code paths that move seats between
``available`` and ``booked`` or touch ``events.available_seats``. Each runs as a
single unit of work on the caller's SQLAlchemy session: every check and write
happens inside one transaction that is either committed as a whole or rolled
back as a whole.

Concurrent reservations for overlapping seats are settled by the database:
seats are re-read with ``SELECT ... FOR UPDATE`` filtered to ``available`` and
then flipped with a compare-and-set ``UPDATE ... WHERE status = 'available'``
whose row count is checked. Whoever commits first wins; the other caller gets
``SeatUnavailable`` and nothing it wrote survives.
"""

import logging
import random
import string
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from eventpulse.core.config import settings
from eventpulse.core.exceptions import (
    AlreadyCancelled,
    InvalidRequest,
    NotFound,
    SeatUnavailable,
    TransientStorageFailure,
)
from eventpulse.core.security import ROLE_ADMIN
from eventpulse.models.booking import Booking, BookingSeat, BookingStatus, PaymentStatus
from eventpulse.models.seat import Seat, SeatStatus
from eventpulse.services.inventory import EventAggregate, SeatStore
from eventpulse.services.presence import PresenceChannel, presence_channel
from eventpulse.services.tickets import FileTicketArtifactGenerator, TicketArtifactGenerator

logger = logging.getLogger(__name__)


def _generate_booking_number(db: Session) -> str:
    """Generate a unique 'EVP-XXXXXXXX' booking reference."""
    chars = string.ascii_uppercase + string.digits
    while True:
        number = "EVP-" + "".join(random.choices(chars, k=8))
        if not db.query(Booking.id).filter(Booking.booking_number == number).first():
            return number


class ReservationManager:
    def __init__(
        self,
        artifacts: Optional[TicketArtifactGenerator] = None,
        channel: Optional[PresenceChannel] = None,
    ):
        self.artifacts = artifacts
        self.channel = channel

    # ------------------------------------------------------------------
    # reserve
    # ------------------------------------------------------------------

    def reserve(
        self,
        db: Session,
        event_id: UUID,
        seat_ids: Sequence[UUID],
        payer_id: UUID,
        payment_ref: Optional[str] = None,
    ) -> Booking:
        seat_ids = list(seat_ids or [])
        # Malformed input is a client error (400), not a missing resource
        if not seat_ids:
            raise InvalidRequest("Event ID and seat IDs are required")
        if len(set(seat_ids)) != len(seat_ids):
            raise InvalidRequest("Seat IDs must be distinct")
        if len(seat_ids) > settings.MAX_SEATS_PER_BOOKING:
            raise InvalidRequest(
                f"At most {settings.MAX_SEATS_PER_BOOKING} seats can be booked at once"
            )

        seat_store = SeatStore(db)
        events = EventAggregate(db)

        try:
            if events.get(event_id) is None:
                raise NotFound("Event not found")

            seats = seat_store.get_seats_by_ids(
                seat_ids, event_id, status=SeatStatus.available, for_update=True
            )
            if len(seats) < len(seat_ids):
                self._raise_for_missing(seat_store, event_id, seat_ids, seats)

            # Server is the only price authority; copy prices before the rows expire
            prices = {seat.id: seat.price for seat in seats}
            total_amount = sum(prices.values())

            claimed = seat_store.set_status(
                seat_ids, SeatStatus.booked, expected=SeatStatus.available
            )
            if claimed != len(seat_ids):
                raise SeatUnavailable(seat_ids)

            booking = Booking(
                booking_number=_generate_booking_number(db),
                user_id=payer_id,
                event_id=event_id,
                total_amount=total_amount,
                payment_id=payment_ref,
                payment_status=PaymentStatus.completed if payment_ref else PaymentStatus.pending,
                status=BookingStatus.confirmed,
            )
            db.add(booking)
            db.flush()

            for seat_id in seat_ids:
                db.add(BookingSeat(booking_id=booking.id, seat_id=seat_id, price=prices[seat_id]))

            events.adjust_available(event_id, -len(seat_ids))
            self._commit(db)
        except SeatUnavailable as exc:
            db.rollback()
            logger.info(
                "Reservation for event %s lost the race for seat(s) %s",
                event_id,
                ", ".join(str(s) for s in exc.seat_ids),
            )
            raise
        except (NotFound, InvalidRequest, TransientStorageFailure):
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Reservation for event %s failed in storage", event_id)
            raise TransientStorageFailure() from exc

        logger.info(
            "Booking %s committed: event=%s seats=%d total=%s",
            booking.booking_number,
            event_id,
            len(seat_ids),
            total_amount,
        )

        self._attach_ticket(db, booking)

        if self.channel is not None:
            self.channel.publish_booked(event_id, seat_ids)

        return booking

    def _raise_for_missing(
        self,
        seat_store: SeatStore,
        event_id: UUID,
        seat_ids: List[UUID],
        available: List[Seat],
    ) -> None:
        existing = {seat.id for seat in seat_store.get_seats_by_ids(seat_ids, event_id)}
        unknown = [s for s in seat_ids if s not in existing]
        if unknown:
            raise NotFound("One or more seats were not found for this event")
        available_ids = {seat.id for seat in available}
        raise SeatUnavailable([s for s in seat_ids if s not in available_ids])

    def _attach_ticket(self, db: Session, booking: Booking) -> None:
        """Best effort: a booking without a ticket artifact is still a valid booking."""
        if self.artifacts is None:
            return
        try:
            seats = (
                db.query(Seat)
                .join(BookingSeat, BookingSeat.seat_id == Seat.id)
                .filter(BookingSeat.booking_id == booking.id)
                .order_by(Seat.row_label, Seat.seat_number)
                .all()
            )
            booking.ticket_ref = self.artifacts.generate(booking, seats)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Ticket generation failed for booking %s", booking.booking_number)

    # ------------------------------------------------------------------
    # cancel
    # ------------------------------------------------------------------

    def cancel(
        self,
        db: Session,
        booking_id: UUID,
        requester_id: UUID,
        requester_role: str,
    ) -> Booking:
        try:
            booking = self._load_for_requester(db, booking_id, requester_id, requester_role)
            if booking.status == BookingStatus.cancelled:
                raise AlreadyCancelled()

            event_id = booking.event_id
            seat_ids = [link.seat_id for link in booking.seats]

            # Compare-and-set on the booking row guards against a concurrent cancel
            flipped = (
                db.query(Booking)
                .filter(Booking.id == booking.id, Booking.status == BookingStatus.confirmed)
                .update(
                    {
                        Booking.status: BookingStatus.cancelled,
                        Booking.cancelled_at: datetime.now(timezone.utc),
                    },
                    synchronize_session=False,
                )
            )
            if not flipped:
                raise AlreadyCancelled()

            released = 0
            if seat_ids:
                released = SeatStore(db).set_status(
                    seat_ids, SeatStatus.available, expected=SeatStatus.booked
                )
                if released != len(seat_ids):
                    logger.warning(
                        "Booking %s had %d seat link(s) but only %d booked seat(s)",
                        booking_id,
                        len(seat_ids),
                        released,
                    )
                EventAggregate(db).adjust_available(event_id, released)
            self._commit(db)
        except (NotFound, AlreadyCancelled, TransientStorageFailure):
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Cancellation of booking %s failed in storage", booking_id)
            raise TransientStorageFailure() from exc

        db.refresh(booking)
        logger.info("Booking %s cancelled, %d seat(s) released", booking.booking_number, released)

        if self.channel is not None and seat_ids:
            self.channel.publish_released(event_id, seat_ids)

        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_booking(
        self,
        db: Session,
        booking_id: UUID,
        requester_id: UUID,
        requester_role: str,
    ) -> Booking:
        return self._load_for_requester(db, booking_id, requester_id, requester_role)

    def list_bookings(
        self,
        db: Session,
        user_id: Optional[UUID] = None,
        status: Optional[BookingStatus] = None,
        event_id: Optional[UUID] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        """Bookings newest first, with the total count for pagination."""
        query = db.query(Booking)
        if user_id is not None:
            query = query.filter(Booking.user_id == user_id)
        if status is not None:
            query = query.filter(Booking.status == status)
        if event_id is not None:
            query = query.filter(Booking.event_id == event_id)

        total = query.count()
        bookings = (
            query.options(
                joinedload(Booking.event),
                joinedload(Booking.seats).joinedload(BookingSeat.seat),
            )
            .order_by(Booking.created_at.desc(), Booking.booking_number)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return bookings, total

    def _load_for_requester(
        self,
        db: Session,
        booking_id: UUID,
        requester_id: UUID,
        requester_role: str,
    ) -> Booking:
        query = (
            db.query(Booking)
            .options(
                joinedload(Booking.event),
                joinedload(Booking.seats).joinedload(BookingSeat.seat),
            )
            .filter(Booking.id == booking_id)
        )
        # Someone else's booking looks exactly like a missing one
        if requester_role != ROLE_ADMIN:
            query = query.filter(Booking.user_id == requester_id)
        booking = query.first()
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    @staticmethod
    def _commit(db: Session) -> None:
        try:
            db.commit()
        except DBAPIError as exc:
            db.rollback()
            logger.exception("Commit failed, unit of work rolled back")
            raise TransientStorageFailure() from exc


reservation_manager = ReservationManager(
    artifacts=FileTicketArtifactGenerator(),
    channel=presence_channel,
)
