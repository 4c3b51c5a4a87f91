import uuid
from sqlalchemy import Column, String, DateTime, func, DECIMAL, Integer, Text, Date, Uuid
from sqlalchemy.orm import relationship
from eventpulse.db.session import Base

class Event(Base):
    __tablename__ = "events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    event_date = Column(Date, nullable=False, index=True)
    event_time = Column(String(50), nullable=False) # "7:30 PM", "Various Times"
    location = Column(String(255), nullable=False)
    price = Column(DECIMAL(10, 2), nullable=False)
    category = Column(String(50), nullable=False, index=True)
    total_seats = Column(Integer, nullable=False)
    # Denormalized counter, written only through EventAggregate.adjust_available
    available_seats = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    # Relationships
    seats = relationship(
        "Seat",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    bookings = relationship("Booking", back_populates="event", cascade="all, delete-orphan", passive_deletes=True)
