
from datetime import date
from decimal import Decimal

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT
from sqlalchemy.orm import Session

from eventpulse.core.config import settings
from eventpulse.models.event import Event
from eventpulse.models.seat import Seat, SeatStatus
import logging

logger = logging.getLogger(__name__)

SAMPLE_ROWS = ["A", "B", "C", "D"]
SEATS_PER_ROW = 10

SAMPLE_EVENTS = [
    {
        "title": "Coldplay: Music of the Spheres World Tour",
        "description": "Experience Coldplay's spectacular Music of the Spheres World Tour live.",
        "event_date": date(2027, 5, 15),
        "event_time": "7:00 PM",
        "location": "DY Patil Stadium, Mumbai",
        "price": Decimal("1800.00"),
        "category": "Concert",
    },
    {
        "title": "The Phantom of the Opera",
        "description": "Andrew Lloyd Webber's iconic musical. A tale of love, mystery and passion.",
        "event_date": date(2027, 7, 20),
        "event_time": "7:30 PM",
        "location": "NCPA, Nariman Point, Mumbai",
        "price": Decimal("1500.00"),
        "category": "Theater",
    },
    {
        "title": "Stand-Up Comedy Night",
        "description": "A night of wit, humor, and hilarious observations.",
        "event_date": date(2027, 6, 25),
        "event_time": "8:00 PM",
        "location": "Bal Gandharva Rang Mandir, Mumbai",
        "price": Decimal("800.00"),
        "category": "Comedy",
    },
]


def create_database():
    """Create database if it doesn't exist (PostgreSQL only)."""
    if not settings.DATABASE_URL.startswith("postgresql"):
        return
    try:
        # Connect to default 'postgres' database to check/create target DB
        con = psycopg2.connect(
            user=settings.POSTGRES_USER,
            password=settings.POSTGRES_PASSWORD,
            host=settings.POSTGRES_SERVER,
            port=settings.POSTGRES_PORT,
            dbname="postgres"
        )
        con.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        cur = con.cursor()

        # Check if DB exists
        cur.execute("SELECT 1 FROM pg_catalog.pg_database WHERE datname = %s", (settings.POSTGRES_DB,))
        exists = cur.fetchone()

        if not exists:
            logger.info(f"Database {settings.POSTGRES_DB} does not exist. Creating...")
            cur.execute(f'CREATE DATABASE "{settings.POSTGRES_DB}"')
            logger.info(f"Database {settings.POSTGRES_DB} created successfully.")
        else:
            logger.info(f"Database {settings.POSTGRES_DB} already exists.")

        cur.close()
        con.close()
    except psycopg2.Error as e:
        logger.error(f"Error creating database: {e}")
        # Proceeding anyway, maybe it exists or connection params are for the target DB directly


def build_seats(event: Event, rows=SAMPLE_ROWS, seats_per_row=SEATS_PER_ROW) -> list:
    """Front rows are Premium at full price; every row back is 10% cheaper."""
    seats = []
    for row_index, row in enumerate(rows):
        seat_price = (event.price * (Decimal(1) - Decimal(row_index) / 10)).quantize(Decimal("0.01"))
        for seat_number in range(1, seats_per_row + 1):
            seats.append(Seat(
                event_id=event.id,
                row_label=row,
                seat_number=seat_number,
                category="Premium" if row_index < 2 else "Standard",
                price=seat_price,
                status=SeatStatus.available,
            ))
    return seats


def seed_sample_events(db: Session) -> int:
    """Insert the sample catalog when no events exist. Returns events created."""
    if db.query(Event.id).first():
        logger.info("Events already exist in database, skipping sample data")
        return 0

    total_seats = len(SAMPLE_ROWS) * SEATS_PER_ROW
    for data in SAMPLE_EVENTS:
        event = Event(**data, total_seats=total_seats, available_seats=total_seats)
        db.add(event)
        db.flush()
        db.add_all(build_seats(event))
        logger.info(f"Added event: {event.title} with ID: {event.id}")

    db.commit()
    return len(SAMPLE_EVENTS)


if __name__ == "__main__":
    create_database()
