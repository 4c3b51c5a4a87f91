import os
import tempfile
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

# Point the app at a throwaway SQLite database before anything imports settings
_tmp_dir = Path(tempfile.mkdtemp(prefix="eventpulse-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp_dir / 'eventpulse_test.db'}"
os.environ["SEED_SAMPLE_DATA"] = "false"
os.environ["TICKET_ARTIFACT_DIR"] = str(_tmp_dir / "tickets")
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from eventpulse.api.deps import get_presence_channel, get_reservation_manager  # noqa: E402
from eventpulse.core.security import ROLE_ADMIN, ROLE_USER, create_access_token  # noqa: E402
from eventpulse.db.base import Base  # noqa: E402
from eventpulse.db.session import SessionLocal, engine  # noqa: E402
from eventpulse.main import app  # noqa: E402
from eventpulse.models.event import Event  # noqa: E402
from eventpulse.models.seat import Seat, SeatStatus  # noqa: E402
from eventpulse.services.presence import PresenceChannel  # noqa: E402
from eventpulse.services.reservation import ReservationManager  # noqa: E402
from eventpulse.services.tickets import FileTicketArtifactGenerator  # noqa: E402


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def channel():
    return PresenceChannel(hold_seconds=600)


@pytest.fixture
def artifacts(tmp_path):
    return FileTicketArtifactGenerator(directory=str(tmp_path / "tickets"), url_prefix="/uploads/tickets")


@pytest.fixture
def manager(artifacts, channel):
    return ReservationManager(artifacts=artifacts, channel=channel)


@pytest.fixture
def client(manager, channel):
    app.dependency_overrides[get_reservation_manager] = lambda: manager
    app.dependency_overrides[get_presence_channel] = lambda: channel
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def create_event(db):
    """Factory: an event whose seats are given as (row, number, price) tuples."""

    def _create(seats=(("A", 1, "100.00"), ("A", 2, "100.00")), title="Test Event", category="Concert"):
        event = Event(
            title=title,
            event_date=date(2030, 1, 1),
            event_time="7:00 PM",
            location="Test Hall",
            price=Decimal("100.00"),
            category=category,
            total_seats=len(seats),
            available_seats=len(seats),
        )
        db.add(event)
        db.flush()
        created = [
            Seat(
                event_id=event.id,
                row_label=row,
                seat_number=number,
                category="Standard",
                price=Decimal(price),
                status=SeatStatus.available,
            )
            for row, number, price in seats
        ]
        db.add_all(created)
        db.commit()
        return event, created

    return _create


@pytest.fixture
def two_seat_event(create_event):
    """Event E with seats S1 and S2, both available, available_seats=2."""
    event, (s1, s2) = create_event(seats=(("A", 1, "100.00"), ("A", 2, "50.00")))
    return event, s1, s2


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def auth_headers():
    def _headers(user_id, role=ROLE_USER):
        return {"Authorization": f"Bearer {create_access_token(str(user_id), role=role)}"}

    return _headers


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers(uuid4(), ROLE_ADMIN)


def fetch_state(event_id, seat_ids):
    """Read event counter and seat statuses through a fresh session."""
    session = SessionLocal()
    try:
        event = session.query(Event).filter(Event.id == event_id).one()
        seats = {
            seat.id: seat.status
            for seat in session.query(Seat).filter(Seat.id.in_(list(seat_ids))).all()
        }
        booked = session.query(Seat).filter(
            Seat.event_id == event_id, Seat.status == SeatStatus.booked
        ).count()
        return event.available_seats, seats, booked
    finally:
        session.close()


@pytest.fixture
def read_state():
    return fetch_state
