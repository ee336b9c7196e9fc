"""
WaitlistEntry model - a user's place in line for a sold-out event

Status changes go through ``WAITLIST_TRANSITIONS``: a transition is only
legal from the listed source states, and the service layer enforces it with
a conditional UPDATE inside the same transaction that performs it.
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from wellness_booking.core.database import Base


class WaitlistStatus(PyEnum):
    WAITING = "WAITING"
    OFFER_PENDING = "OFFER_PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


ACTIVE_WAITLIST_STATUSES = (WaitlistStatus.WAITING, WaitlistStatus.OFFER_PENDING)

TERMINAL_WAITLIST_STATUSES = (
    WaitlistStatus.ACCEPTED,
    WaitlistStatus.DECLINED,
    WaitlistStatus.EXPIRED,
    WaitlistStatus.CANCELLED,
)

# target status -> statuses it may be entered from
WAITLIST_TRANSITIONS = {
    WaitlistStatus.WAITING: TERMINAL_WAITLIST_STATUSES,
    WaitlistStatus.OFFER_PENDING: (WaitlistStatus.WAITING,),
    WaitlistStatus.ACCEPTED: (WaitlistStatus.OFFER_PENDING,),
    WaitlistStatus.DECLINED: (WaitlistStatus.OFFER_PENDING,),
    WaitlistStatus.EXPIRED: (WaitlistStatus.OFFER_PENDING,),
    WaitlistStatus.CANCELLED: ACTIVE_WAITLIST_STATUSES,
}


def allowed_sources(target: WaitlistStatus) -> tuple:
    return WAITLIST_TRANSITIONS[target]


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"
    __table_args__ = (
        UniqueConstraint('event_id', 'user_id', name='uq_waitlist_event_user'),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(100), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    seats_requested = Column(Integer, nullable=False, default=1)
    status = Column(Enum(WaitlistStatus, name="waitlist_status"), nullable=False,
                    default=WaitlistStatus.WAITING, index=True)
    offer_sent_at = Column(DateTime, nullable=True)
    offer_expires_at = Column(DateTime, nullable=True, index=True)
    reminder_sent_at = Column(DateTime, nullable=True)
    responded_at = Column(DateTime, nullable=True)
    resulting_booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    user_email = Column(String(320), nullable=False)
    user_name = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    resulting_booking = relationship("Booking")

    def __repr__(self):
        return (f"<WaitlistEntry(id={self.id}, event_id={self.event_id}, position={self.position}, "
                f"status='{self.status.value}')>")

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_WAITLIST_STATUSES

    def offer_is_expired(self, now: datetime) -> bool:
        if self.status != WaitlistStatus.OFFER_PENDING or self.offer_expires_at is None:
            return False
        return self.offer_expires_at < now
