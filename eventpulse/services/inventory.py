"""
Data access for seat inventory.

``SeatStore`` owns reads and status writes on ``seats``; ``EventAggregate`` owns
the denormalized ``events.available_seats`` counter. Neither commits: writes
only happen inside the unit of work opened by ``ReservationManager``.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from eventpulse.core.exceptions import NotFound
from eventpulse.models.event import Event
from eventpulse.models.seat import Seat, SeatStatus


@dataclass(frozen=True)
class Availability:
    total: int
    available: int


class SeatStore:
    def __init__(self, db: Session):
        self.db = db

    def get_seats(self, event_id: UUID) -> List[Seat]:
        """All seats of an event, ordered for rendering (row, then number)."""
        return (
            self.db.query(Seat)
            .filter(Seat.event_id == event_id)
            .order_by(Seat.row_label, Seat.seat_number)
            .all()
        )

    def get_seats_by_ids(
        self,
        seat_ids: Iterable[UUID],
        event_id: UUID,
        status: Optional[SeatStatus] = None,
        for_update: bool = False,
    ) -> List[Seat]:
        """
        The subset of ``seat_ids`` that currently belongs to ``event_id``.

        With ``for_update`` the rows are locked (``SELECT ... FOR UPDATE``) in
        primary-key order, so two transactions locking overlapping sets always
        take their locks in the same sequence.
        """
        query = self.db.query(Seat).filter(
            Seat.id.in_(list(seat_ids)),
            Seat.event_id == event_id,
        )
        if status is not None:
            query = query.filter(Seat.status == status)
        query = query.order_by(Seat.id)
        if for_update:
            query = query.with_for_update()
        return query.all()

    def set_status(
        self,
        seat_ids: Iterable[UUID],
        status: SeatStatus,
        expected: Optional[SeatStatus] = None,
    ) -> int:
        """
        Write ``status`` on the given seats and return the number of rows changed.

        When ``expected`` is given the write is a compare-and-set: only rows still
        in ``expected`` are touched, so the caller can detect a lost race from the
        returned count.
        """
        if status == SeatStatus.selected:
            raise ValueError("'selected' is advisory and is never persisted")

        query = self.db.query(Seat).filter(Seat.id.in_(list(seat_ids)))
        if expected is not None:
            query = query.filter(Seat.status == expected)
        count = query.update({Seat.status: status}, synchronize_session=False)
        # Loaded Seat rows are stale now; reload them on next access
        self.db.expire_all()
        return count


class EventAggregate:
    def __init__(self, db: Session):
        self.db = db

    def get(self, event_id: UUID) -> Optional[Event]:
        return self.db.query(Event).filter(Event.id == event_id).first()

    def get_availability(self, event_id: UUID) -> Availability:
        row = (
            self.db.query(Event.total_seats, Event.available_seats)
            .filter(Event.id == event_id)
            .first()
        )
        if row is None:
            raise NotFound("Event not found")
        return Availability(total=row.total_seats, available=row.available_seats)

    def adjust_available(self, event_id: UUID, delta: int) -> None:
        # Single UPDATE with a column expression; no read-modify-write in Python
        updated = (
            self.db.query(Event)
            .filter(Event.id == event_id)
            .update(
                {Event.available_seats: Event.available_seats + delta},
                synchronize_session=False,
            )
        )
        self.db.expire_all()
        if not updated:
            raise NotFound("Event not found")
