"""Pydantic schemas for waitlist endpoints"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from wellness_booking.models.waitlist_entry import WaitlistStatus


class JoinWaitlistRequest(BaseModel):
    seats: int = Field(1, ge=1)
    notes: Optional[str] = Field(None, max_length=1000)


class JoinWaitlistResponse(BaseModel):
    success: bool = True
    waitlistEntryId: str
    position: int
    seatsRequested: int
    message: str


class WaitlistEntryResponse(BaseModel):
    id: str
    position: int
    seatsRequested: int
    status: WaitlistStatus
    offerExpiresAt: Optional[datetime] = None
    createdAt: datetime

    @classmethod
    def from_entry(cls, entry):
        """Convert WaitlistEntry ORM model to response"""
        return cls(
            id=entry.id,
            position=entry.position,
            seatsRequested=entry.seats_requested,
            status=entry.status,
            offerExpiresAt=entry.offer_expires_at,
            createdAt=entry.created_at,
        )


class WaitlistStatusResponse(BaseModel):
    inWaitlist: bool
    entry: Optional[WaitlistEntryResponse] = None


class AcceptOfferResponse(BaseModel):
    success: bool = True
    bookingId: str
    needsPayment: bool
    message: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str
