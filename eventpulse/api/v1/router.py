
from fastapi import APIRouter

# Public: catalog & seat maps
from eventpulse.api.v1.public.events import router as events_router

# Public: bookings
from eventpulse.api.v1.public.bookings import router as bookings_router

# Realtime: seat-map WebSocket
from eventpulse.api.v1.realtime import router as realtime_router

# Admin
from eventpulse.api.v1.admin.bookings import router as admin_bookings_router

api_router = APIRouter()

# --- Public: catalog ---
api_router.include_router(events_router)

# --- Admin (before /bookings/{booking_id}) ---
api_router.include_router(admin_bookings_router)

# --- Public: bookings ---
api_router.include_router(bookings_router)

# --- Realtime ---
api_router.include_router(realtime_router)
