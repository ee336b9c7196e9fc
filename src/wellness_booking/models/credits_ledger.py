"""
CreditsLedger model - append-only ledger of membership session credits
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Text

from wellness_booking.core.database import Base


class CreditReason(PyEnum):
    MONTHLY_GRANT = "MONTHLY_GRANT"
    PROMO_GRANT = "PROMO_GRANT"
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"
    REFUND = "REFUND"
    REDEEM = "REDEEM"


GRANT_REASONS = (
    CreditReason.MONTHLY_GRANT,
    CreditReason.PROMO_GRANT,
    CreditReason.ADMIN_ADJUSTMENT,
    CreditReason.REFUND,
)


class CreditsLedger(Base):
    __tablename__ = "credits_ledger"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # signed: grants > 0, redemptions < 0
    reason = Column(Enum(CreditReason, name="credit_reason"), nullable=False, index=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    subscription_id = Column(String(36), nullable=True)
    expires_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<CreditsLedger(id={self.id}, user_id={self.user_id}, amount={self.amount}, reason='{self.reason.value}')>"
