import uuid
import enum
from sqlalchemy import Column, String, DateTime, func, DECIMAL, ForeignKey, Text, Uuid, Enum as SAEnum
from sqlalchemy.orm import relationship
from eventpulse.db.session import Base

class BookingStatus(str, enum.Enum):
    confirmed = "confirmed"
    cancelled = "cancelled"

class PaymentStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"

class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_number = Column(String(20), unique=True, nullable=False, index=True)
    # Identity comes from the bearer token; users live with the identity provider
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    event_id = Column(Uuid(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    total_amount = Column(DECIMAL(10, 2), nullable=False)
    payment_id = Column(String(255), nullable=True)
    payment_status = Column(
        SAEnum(PaymentStatus, native_enum=False, create_constraint=True, name="payment_status"),
        nullable=False,
        default=PaymentStatus.pending,
    )
    status = Column(
        SAEnum(BookingStatus, native_enum=False, create_constraint=True, name="booking_status"),
        nullable=False,
        default=BookingStatus.confirmed,
        index=True,
    )
    ticket_ref = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    # Relationships
    event = relationship("Event", back_populates="bookings")
    seats = relationship("BookingSeat", back_populates="booking", cascade="all, delete-orphan", passive_deletes=True)

class BookingSeat(Base):
    __tablename__ = "booking_seats"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid(as_uuid=True), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    seat_id = Column(Uuid(as_uuid=True), ForeignKey("seats.id", ondelete="CASCADE"), nullable=False, index=True)
    price = Column(DECIMAL(10, 2), nullable=False) # locked in at commit time
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    booking = relationship("Booking", back_populates="seats")
    seat = relationship("Seat")
