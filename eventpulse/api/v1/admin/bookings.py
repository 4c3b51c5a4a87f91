from uuid import UUID
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from eventpulse.db.session import get_db
from eventpulse.api.deps import Principal, get_current_admin, get_reservation_manager
from eventpulse.api.v1.public.bookings import paginate
from eventpulse.models.booking import BookingStatus
from eventpulse.schemas.booking import Booking as BookingSchema
from eventpulse.schemas.common import PaginatedResponse
from eventpulse.services.reservation import ReservationManager

router = APIRouter(prefix="/bookings/admin", tags=["Admin - Bookings"])


@router.get("/all", response_model=PaginatedResponse[BookingSchema])
def list_all_bookings(
    # --- Filters ---
    event_id: Optional[UUID] = Query(None, description="Filter by event"),
    status: Optional[BookingStatus] = Query(None, description="Filter by booking status (confirmed, cancelled)"),
    # --- Pagination ---
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_admin),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    """Return every booking across all events, newest first."""
    bookings, total = manager.list_bookings(
        db, status=status, event_id=event_id, page=page, limit=limit
    )
    return paginate(bookings, total, page, limit)
