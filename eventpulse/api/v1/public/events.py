from uuid import UUID
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from eventpulse.core.exceptions import NotFound
from eventpulse.db.session import get_db
from eventpulse.api.deps import get_presence_channel
from eventpulse.models.event import Event
from eventpulse.models.seat import SeatStatus
from eventpulse.schemas.common import ErrorResponse
from eventpulse.schemas.event import EventSummary, EventDetail, SeatOut, AvailabilityResponse
from eventpulse.services.inventory import EventAggregate, SeatStore
from eventpulse.services.presence import PresenceChannel

router = APIRouter(prefix="/events", tags=["Events"])


# ---------------------------------------------------------------------------
# GET /events: catalog
# ---------------------------------------------------------------------------


@router.get("/", response_model=List[EventSummary])
def list_events(
    category: Optional[str] = Query(None, description="Filter by category (Concert, Theater, ...)"),
    db: Session = Depends(get_db),
):
    """Return all events, soonest first."""
    query = db.query(Event)
    if category:
        query = query.filter(Event.category == category)
    return query.order_by(Event.event_date, Event.title).all()


# ---------------------------------------------------------------------------
# GET /events/{id}: event detail with seat map
# ---------------------------------------------------------------------------


@router.get("/{event_id}", response_model=EventDetail, responses={404: {"model": ErrorResponse}})
def get_event(
    event_id: UUID,
    db: Session = Depends(get_db),
    channel: PresenceChannel = Depends(get_presence_channel),
):
    """
    Return the event with its seats ordered by row and seat number.

    Seats that are available in storage but currently being picked by another
    viewer are reported as `selected`, with the picker as `holder`. That part is
    advisory; booking always re-checks storage.
    """
    event = EventAggregate(db).get(event_id)
    if not event:
        raise NotFound("Event not found")

    selections = channel.selections(event_id)
    seats_out = []
    for seat in SeatStore(db).get_seats(event_id):
        status = seat.status
        holder = None
        if status == SeatStatus.available and str(seat.id) in selections:
            status = SeatStatus.selected
            holder = selections[str(seat.id)]
        seats_out.append(SeatOut(
            id=seat.id,
            row=seat.row_label,
            seat_number=seat.seat_number,
            category=seat.category,
            price=seat.price,
            status=status,
            holder=holder,
        ))

    summary = EventSummary.model_validate(event)
    return EventDetail(**summary.model_dump(), seats=seats_out)


@router.get("/{event_id}/availability", response_model=AvailabilityResponse)
def get_event_availability(event_id: UUID, db: Session = Depends(get_db)):
    """Total and currently available seat counts."""
    availability = EventAggregate(db).get_availability(event_id)
    return AvailabilityResponse(
        event_id=event_id,
        total=availability.total,
        available=availability.available,
    )
