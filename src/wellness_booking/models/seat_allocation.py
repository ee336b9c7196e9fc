"""
SeatAllocation model - capacity-consuming reservation against an event

The content store owns the event definition (and its capacity); this table
is the source of truth for how much of that capacity is taken.
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship

from wellness_booking.core.database import Base


class SeatAllocationStatus(PyEnum):
    ACTIVE = "ACTIVE"
    RELEASED = "RELEASED"


class SeatAllocation(Base):
    __tablename__ = "seat_allocations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(100), nullable=False, index=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    seats = Column(Integer, nullable=False, default=1)
    status = Column(Enum(SeatAllocationStatus, name="seat_allocation_status"), nullable=False,
                    default=SeatAllocationStatus.ACTIVE, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    released_at = Column(DateTime, nullable=True)

    booking = relationship("Booking", back_populates="seat_allocation")

    def __repr__(self):
        return (f"<SeatAllocation(id={self.id}, event_id={self.event_id}, seats={self.seats}, "
                f"status='{self.status.value}')>")

    @property
    def is_active(self) -> bool:
        return self.status == SeatAllocationStatus.ACTIVE
