"""
Seat-map WebSocket.

One connection is one ``Viewer`` on the presence channel. Everything the server
sends to the viewer, replies included, goes through the viewer's queue so the
order a client sees matches the order the server produced.
"""

import asyncio
import json
import logging
from typing import Optional, Set
from uuid import UUID

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from eventpulse.api.deps import get_presence_channel, principal_from_token
from eventpulse.db.session import SessionLocal
from eventpulse.models.booking import Booking, BookingStatus
from eventpulse.models.seat import SeatStatus
from eventpulse.schemas.presence import (
    BookingCompleteMessage,
    JoinEventMessage,
    LeaveEventMessage,
    PingMessage,
    SelectSeatMessage,
    client_message_adapter,
)
from eventpulse.services.inventory import EventAggregate, SeatStore
from eventpulse.services.presence import PresenceChannel, Viewer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


# ---------------------------------------------------------------------------
# Storage lookups (run in the threadpool)
# ---------------------------------------------------------------------------


def _event_exists(event_id: UUID) -> bool:
    db = SessionLocal()
    try:
        return EventAggregate(db).get(event_id) is not None
    finally:
        db.close()


def _seat_is_available(event_id: UUID, seat_id: UUID) -> bool:
    db = SessionLocal()
    try:
        seats = SeatStore(db).get_seats_by_ids([seat_id], event_id)
        return bool(seats) and seats[0].status == SeatStatus.available
    finally:
        db.close()


def _booked_seat_ids(event_id: UUID, booking_id: UUID) -> Optional[list]:
    db = SessionLocal()
    try:
        booking = (
            db.query(Booking)
            .filter(
                Booking.id == booking_id,
                Booking.event_id == event_id,
                Booking.status == BookingStatus.confirmed,
            )
            .first()
        )
        if booking is None:
            return None
        return [link.seat_id for link in booking.seats]
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Message handling
# ---------------------------------------------------------------------------


def error_message(message: str, kind: str = "error") -> dict:
    return {"type": "error", "error": kind, "message": message}


class SeatMapSession:
    """Handles the client messages of a single viewer."""

    def __init__(self, channel: PresenceChannel, viewer: Viewer):
        self.channel = channel
        self.viewer = viewer
        self.joined: Set[str] = set()

    async def handle_raw(self, raw: str) -> None:
        try:
            message = client_message_adapter.validate_python(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            self.viewer.offer(error_message(f"Invalid message: {exc}", "invalid_message"))
            return

        if isinstance(message, JoinEventMessage):
            await self._join(message)
        elif isinstance(message, LeaveEventMessage):
            self.joined.discard(str(message.event_id))
            self.channel.leave(self.viewer, message.event_id)
        elif isinstance(message, SelectSeatMessage):
            await self._select(message)
        elif isinstance(message, BookingCompleteMessage):
            await self._booking_complete(message)
        elif isinstance(message, PingMessage):
            self.viewer.offer({"type": "pong"})

    async def _join(self, message: JoinEventMessage) -> None:
        if not await run_in_threadpool(_event_exists, message.event_id):
            self.viewer.offer(error_message("Event not found", "not_found"))
            return
        snapshot = self.channel.join(message.event_id, self.viewer)
        self.joined.add(str(message.event_id))
        self.viewer.offer({
            "type": "joinedEvent",
            "eventId": str(message.event_id),
            "sessionId": self.viewer.session_id,
            "selections": snapshot,
        })

    async def _select(self, message: SelectSeatMessage) -> None:
        if str(message.event_id) not in self.joined:
            self.viewer.offer(error_message("Join the event before selecting seats", "not_joined"))
            return

        if message.action == "deselect":
            if not self.channel.publish_deselect(message.event_id, message.seat_id, self.viewer):
                self.viewer.offer(error_message("Seat is selected by someone else", "seat_held"))
            return

        if not await run_in_threadpool(_seat_is_available, message.event_id, message.seat_id):
            self.viewer.offer(error_message("Seat is not available", "seat_unavailable"))
            return
        if not self.channel.publish_select(message.event_id, message.seat_id, self.viewer):
            self.viewer.offer(error_message("Seat is selected by someone else", "seat_held"))

    async def _booking_complete(self, message: BookingCompleteMessage) -> None:
        # The client's seat list is not trusted; re-announce what storage says
        seat_ids = await run_in_threadpool(_booked_seat_ids, message.event_id, message.booking_id)
        if seat_ids is None:
            self.viewer.offer(error_message("Booking not found", "not_found"))
            return
        self.channel.publish_booked(message.event_id, seat_ids)


async def _pump(websocket: WebSocket, viewer: Viewer) -> None:
    while True:
        message = await viewer.next_message()
        await websocket.send_json(message)


async def _stop_sender(sender: asyncio.Task) -> None:
    sender.cancel()
    try:
        await sender
    except asyncio.CancelledError:
        pass
    except Exception:
        # Usually a send on a socket the client already closed
        logger.debug("Sender task ended with an error", exc_info=True)


# ---------------------------------------------------------------------------
# WS /ws
# ---------------------------------------------------------------------------


@router.websocket("/ws")
async def seat_map_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    channel: PresenceChannel = Depends(get_presence_channel),
):
    """
    Live seat map. Anyone may watch; a valid `token` makes the viewer's user id
    the visible holder of its selections instead of an anonymous session id.
    """
    principal = principal_from_token(token) if token else None
    if token and principal is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    channel.bind_loop(asyncio.get_running_loop())
    viewer = Viewer(user_id=str(principal.user_id) if principal else None)
    session = SeatMapSession(channel, viewer)
    sender = asyncio.create_task(_pump(websocket, viewer))
    logger.debug("%r connected", viewer)

    try:
        while True:
            raw = await websocket.receive_text()
            await session.handle_raw(raw)
    except WebSocketDisconnect:
        pass
    finally:
        channel.leave(viewer)
        await _stop_sender(sender)
        logger.debug("%r disconnected", viewer)
