"""
Booking model - reservation of a user against an event or a 1:1 session
"""
import uuid
from datetime import datetime
from typing import Optional
from enum import Enum as PyEnum
from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, Enum, Text
from sqlalchemy.orm import relationship

from wellness_booking.core.database import Base


class BookingStatus(PyEnum):
    """Enum for booking status"""
    PENDING = "PENDING"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class BookingType(PyEnum):
    SESSION = "SESSION"
    EVENT = "EVENT"


# Statuses from which a booking may still be cancelled
CANCELLABLE_STATUSES = (
    BookingStatus.CONFIRMED,
    BookingStatus.PENDING,
    BookingStatus.PENDING_PAYMENT,
)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_type = Column(Enum(BookingType, name="booking_type"), nullable=False, default=BookingType.EVENT)
    resource_id = Column(String(100), nullable=False, index=True)  # content-store event/session id
    resource_name = Column(String(500), nullable=False)
    scheduled_at = Column(DateTime, nullable=True)
    status = Column(Enum(BookingStatus, name="booking_status"), nullable=False,
                    default=BookingStatus.PENDING, index=True)
    seats = Column(Integer, nullable=False, default=1)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="COP")
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="bookings")
    seat_allocation = relationship("SeatAllocation", back_populates="booking", uselist=False)

    def __repr__(self):
        return (f"<Booking(id={self.id}, user_id={self.user_id}, resource_id={self.resource_id}, "
                f"status='{self.status.value}')>")

    @property
    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    def hours_until_start(self, now: datetime) -> Optional[float]:
        """Hours between ``now`` and the scheduled start, None for unscheduled bookings"""
        if self.scheduled_at is None:
            return None
        return (self.scheduled_at - now).total_seconds() / 3600
