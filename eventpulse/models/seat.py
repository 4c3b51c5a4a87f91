import uuid
import enum
from sqlalchemy import Column, String, Integer, DECIMAL, ForeignKey, DateTime, func, Uuid, Enum as SAEnum
from sqlalchemy.orm import relationship
from eventpulse.db.session import Base

class SeatStatus(str, enum.Enum):
    available = "available"
    selected = "selected" # advisory only, never written by the booking path
    booked = "booked"

class Seat(Base):
    __tablename__ = "seats"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    row_label = Column(String(5), nullable=False)
    seat_number = Column(Integer, nullable=False)
    category = Column(String(50), nullable=False, default="Standard") # Premium, Standard
    price = Column(DECIMAL(10, 2), nullable=False)
    status = Column(
        SAEnum(SeatStatus, native_enum=False, create_constraint=True, name="seat_status"),
        nullable=False,
        default=SeatStatus.available,
        index=True,
    )
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    event = relationship("Event", back_populates="seats")
