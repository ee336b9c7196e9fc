"""Pydantic schemas for membership credits"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from wellness_booking.models.credits_ledger import CreditReason


class CreditBalanceResponse(BaseModel):
    available: int
    pending: int
    nextExpirationDate: Optional[datetime] = None
    nextExpirationAmount: int = 0


class CreditLedgerEntryResponse(BaseModel):
    id: str
    amount: int
    reason: CreditReason
    bookingId: Optional[str] = None
    expiresAt: Optional[datetime] = None
    notes: Optional[str] = None
    createdAt: datetime

    @classmethod
    def from_entry(cls, entry):
        return cls(
            id=entry.id,
            amount=entry.amount,
            reason=entry.reason,
            bookingId=entry.booking_id,
            expiresAt=entry.expires_at,
            notes=entry.notes,
            createdAt=entry.created_at,
        )


class CreditHistoryResponse(BaseModel):
    entries: List[CreditLedgerEntryResponse]
