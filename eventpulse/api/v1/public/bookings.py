from uuid import UUID
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from eventpulse.db.session import get_db
from eventpulse.api.deps import Principal, get_current_principal, get_reservation_manager
from eventpulse.models.booking import Booking, BookingStatus
from eventpulse.schemas.booking import (
    BookingCreate,
    BookingCreated,
    Booking as BookingSchema,
    BookingCancelResponse,
    BookingEventSummary,
    BookingSeatResponse,
)
from eventpulse.schemas.common import ErrorResponse, PaginatedResponse, SeatsUnavailableError
from eventpulse.services.reservation import ReservationManager

router = APIRouter(prefix="/bookings", tags=["Bookings"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def serialize_booking(booking: Booking) -> BookingSchema:
    """Convert a Booking ORM object to its schema representation."""
    event_summary = None
    if booking.event:
        e = booking.event
        event_summary = BookingEventSummary(
            title=e.title,
            event_date=e.event_date,
            event_time=e.event_time,
            location=e.location,
            image_url=e.image_url,
        )

    seats_out = [
        BookingSeatResponse(
            seat_id=bs.seat_id,
            row=bs.seat.row_label,
            number=bs.seat.seat_number,
            category=bs.seat.category,
            price=bs.price,
        )
        for bs in sorted(booking.seats, key=lambda bs: (bs.seat.row_label, bs.seat.seat_number))
    ]

    return BookingSchema(
        id=booking.id,
        booking_number=booking.booking_number,
        user_id=booking.user_id,
        event_id=booking.event_id,
        total_amount=booking.total_amount,
        payment_id=booking.payment_id,
        payment_status=booking.payment_status,
        status=booking.status,
        ticket_ref=booking.ticket_ref,
        cancelled_at=booking.cancelled_at,
        created_at=booking.created_at,
        event=event_summary,
        seats=seats_out,
    )


def paginate(bookings, total: int, page: int, limit: int) -> PaginatedResponse[BookingSchema]:
    return PaginatedResponse(
        data=[serialize_booking(b) for b in bookings],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


# ---------------------------------------------------------------------------
# POST /bookings: reserve seats
# ---------------------------------------------------------------------------


@router.post(
    "/",
    response_model=BookingCreated,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": SeatsUnavailableError},
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    """
    Book a set of seats for an event, all or nothing.

    - Seat availability is re-checked in storage; selections shown on the live
      seat map are not trusted.
    - The total is the sum of the stored seat prices.
    - `paymentId` marks the payment completed; without it the booking stays pending.
    - A `400 seat_unavailable` means another booking got there first: refresh
      the seat map and pick again.
    """
    booking = manager.reserve(
        db,
        event_id=data.event_id,
        seat_ids=data.seat_ids,
        payer_id=principal.user_id,
        payment_ref=data.payment_id,
    )
    return BookingCreated(
        booking_id=booking.id,
        booking_number=booking.booking_number,
        total_amount=booking.total_amount,
        ticket_artifact_ref=booking.ticket_ref,
    )


# ---------------------------------------------------------------------------
# GET /bookings: list current user's bookings
# ---------------------------------------------------------------------------


@router.get("/", response_model=PaginatedResponse[BookingSchema])
def list_my_bookings(
    status: Optional[BookingStatus] = Query(None, description="Filter by status: confirmed, cancelled"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    """Return the authenticated user's bookings, newest first."""
    bookings, total = manager.list_bookings(
        db, user_id=principal.user_id, status=status, page=page, limit=limit
    )
    return paginate(bookings, total, page, limit)


# ---------------------------------------------------------------------------
# GET /bookings/{id}: single booking detail
# ---------------------------------------------------------------------------


@router.get("/{booking_id}", response_model=BookingSchema, responses={404: {"model": ErrorResponse}})
def get_booking(
    booking_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    """Return a single booking. Only the owner or an admin can see it."""
    booking = manager.get_booking(db, booking_id, principal.user_id, principal.role)
    return serialize_booking(booking)


# ---------------------------------------------------------------------------
# PUT /bookings/{id}/cancel
# ---------------------------------------------------------------------------


@router.put(
    "/{booking_id}/cancel",
    response_model=BookingCancelResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def cancel_booking(
    booking_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    """
    Cancel a confirmed booking.
    - Releases every booked seat back to 'available'.
    - Gives the seats back to the event's available count.
    - A second cancel answers `already_cancelled` and changes nothing.
    """
    booking = manager.cancel(db, booking_id, principal.user_id, principal.role)
    return BookingCancelResponse(
        id=booking.id,
        booking_number=booking.booking_number,
        status=booking.status,
        cancelled_at=booking.cancelled_at,
        released_seats=[bs.seat_id for bs in booking.seats],
    )
