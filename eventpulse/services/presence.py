"""
Live presence channel: per-event fan-out of advisory seat selections.

Viewers join an event group and see each other's in-progress picks before a
booking is committed. Nothing here is authoritative; the reservation manager
re-validates against the database and publishes ``seatsBooked`` afterwards,
which overrides any advisory ``selected`` state for the same seats.

Publishing never awaits a viewer. Each viewer owns a bounded queue drained by
its own sender task; when a slow viewer's queue is full the oldest pending
message is dropped. Publish calls may come from the event loop (WebSocket
handlers) or from Starlette's worker threads (sync HTTP endpoints); the latter
are marshalled onto the loop with ``call_soon_threadsafe``.
"""

import asyncio
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from eventpulse.core.config import settings

logger = logging.getLogger(__name__)

SEAT_UPDATED = "seatUpdated"
SEATS_BOOKED = "seatsBooked"
SEATS_RELEASED = "seatsReleased"


class Viewer:
    """One connected client. ``holder`` is what other viewers see as the selector."""

    def __init__(
        self,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        queue_size: Optional[int] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.user_id = user_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size or settings.PRESENCE_QUEUE_SIZE)
        self.dropped = 0

    @property
    def holder(self) -> str:
        return self.user_id or self.session_id

    def offer(self, message: dict) -> None:
        """Enqueue without waiting; evict the oldest message when full."""
        if self.queue.full():
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                pass
            else:
                self.dropped += 1
                logger.warning(
                    "Viewer %s is not keeping up, dropped %d message(s) so far",
                    self.session_id,
                    self.dropped,
                )
        self.queue.put_nowait(message)

    async def next_message(self) -> dict:
        return await self.queue.get()

    def __repr__(self) -> str:
        return f"Viewer(session_id={self.session_id!r}, user_id={self.user_id!r})"


@dataclass
class _Hold:
    viewer: Viewer
    selected_at: float


class PresenceChannel:
    def __init__(self, hold_seconds: Optional[int] = None):
        self.hold_seconds = hold_seconds if hold_seconds is not None else settings.ADVISORY_HOLD_SECONDS
        self._groups: Dict[str, Set[Viewer]] = {}
        # event id -> seat id -> advisory hold
        self._holds: Dict[str, Dict[str, _Hold]] = {}
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def join(self, event_id, viewer: Viewer) -> List[dict]:
        """
        Add ``viewer`` to the event group and return the current advisory
        selections so a late joiner can paint them immediately.
        """
        self._capture_loop()
        key = str(event_id)
        with self._lock:
            self._groups.setdefault(key, set()).add(viewer)
            snapshot = [
                self._seat_updated(key, seat_id, "selected", hold.viewer.holder)
                for seat_id, hold in self._holds.get(key, {}).items()
            ]
        logger.debug("%r joined event %s", viewer, key)
        return snapshot

    def leave(self, viewer: Viewer, event_id=None) -> int:
        """
        Remove ``viewer`` from one event group (or all of them) and release every
        seat it still held there. Returns the number of released seats.
        """
        released = []
        with self._lock:
            keys = [str(event_id)] if event_id is not None else list(self._groups)
            for key in keys:
                members = self._groups.get(key)
                if members is not None:
                    members.discard(viewer)
                    if not members:
                        del self._groups[key]
                holds = self._holds.get(key, {})
                for seat_id, hold in list(holds.items()):
                    if hold.viewer is viewer:
                        del holds[seat_id]
                        released.append((key, seat_id))
                if key in self._holds and not holds:
                    del self._holds[key]

        for key, seat_id in released:
            self._broadcast(key, self._seat_updated(key, seat_id, "available", None))
        if released:
            logger.info("Released %d advisory selection(s) held by %r", len(released), viewer)
        return len(released)

    def group_size(self, event_id) -> int:
        with self._lock:
            return len(self._groups.get(str(event_id), ()))

    def holder_of(self, event_id, seat_id) -> Optional[str]:
        with self._lock:
            hold = self._holds.get(str(event_id), {}).get(str(seat_id))
            return hold.viewer.holder if hold else None

    def selections(self, event_id) -> Dict[str, str]:
        """seat id -> holder for every advisory selection on the event."""
        with self._lock:
            return {
                seat_id: hold.viewer.holder
                for seat_id, hold in self._holds.get(str(event_id), {}).items()
            }

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish_select(self, event_id, seat_id, viewer: Viewer) -> bool:
        """
        Mark ``seat_id`` as selected by ``viewer``. Returns False (and publishes
        nothing) when another viewer already holds it.
        """
        key, seat = str(event_id), str(seat_id)
        with self._lock:
            holds = self._holds.setdefault(key, {})
            current = holds.get(seat)
            if current is not None and current.viewer is not viewer:
                return False
            holds[seat] = _Hold(viewer=viewer, selected_at=time.monotonic())
        self._broadcast(key, self._seat_updated(key, seat, "selected", viewer.holder))
        return True

    def publish_deselect(self, event_id, seat_id, viewer: Optional[Viewer] = None) -> bool:
        """
        Return ``seat_id`` to available. When ``viewer`` is given only its own
        selection can be cleared.
        """
        key, seat = str(event_id), str(seat_id)
        with self._lock:
            holds = self._holds.get(key, {})
            current = holds.get(seat)
            if viewer is not None and current is not None and current.viewer is not viewer:
                return False
            holds.pop(seat, None)
            if key in self._holds and not holds:
                del self._holds[key]
        self._broadcast(key, self._seat_updated(key, seat, "available", None))
        return True

    def publish_booked(self, event_id, seat_ids: Iterable) -> None:
        key = str(event_id)
        seats = [str(s) for s in seat_ids]
        self._drop_holds(key, seats)
        self._broadcast(key, {"type": SEATS_BOOKED, "eventId": key, "seats": seats})

    def publish_released(self, event_id, seat_ids: Iterable) -> None:
        key = str(event_id)
        seats = [str(s) for s in seat_ids]
        self._drop_holds(key, seats)
        self._broadcast(key, {"type": SEATS_RELEASED, "eventId": key, "seats": seats})

    def expire_stale_selections(self, now: Optional[float] = None) -> int:
        """Deselect holds older than ``hold_seconds``. Returns how many expired."""
        now = time.monotonic() if now is None else now
        expired = []
        with self._lock:
            for key, holds in list(self._holds.items()):
                for seat_id, hold in list(holds.items()):
                    if now - hold.selected_at >= self.hold_seconds:
                        del holds[seat_id]
                        expired.append((key, seat_id))
                if not holds:
                    del self._holds[key]

        for key, seat_id in expired:
            self._broadcast(key, self._seat_updated(key, seat_id, "available", None))
        return len(expired)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _capture_loop(self) -> None:
        if self._loop is not None and not self._loop.is_closed():
            return
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            pass

    def _drop_holds(self, key: str, seats: List[str]) -> None:
        with self._lock:
            holds = self._holds.get(key)
            if not holds:
                return
            for seat in seats:
                holds.pop(seat, None)
            if not holds:
                del self._holds[key]

    @staticmethod
    def _seat_updated(key: str, seat_id: str, status: str, holder: Optional[str]) -> dict:
        return {
            "type": SEAT_UPDATED,
            "eventId": key,
            "seatId": seat_id,
            "status": status,
            "userId": holder,
        }

    def _broadcast(self, key: str, message: dict) -> None:
        loop = self._loop
        if loop is None or _running_loop() is loop:
            self._fan_out(key, message)
            return
        try:
            loop.call_soon_threadsafe(self._fan_out, key, message)
        except RuntimeError:
            # Loop already closed: nobody is listening any more
            logger.debug("Dropped %s for event %s, event loop is closed", message["type"], key)

    def _fan_out(self, key: str, message: dict) -> None:
        with self._lock:
            viewers = list(self._groups.get(key, ()))
        for viewer in viewers:
            viewer.offer(message)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


presence_channel = PresenceChannel()
