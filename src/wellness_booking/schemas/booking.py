"""Pydantic schemas for Booking resources"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from wellness_booking.models.booking import BookingStatus, BookingType


class CancelBookingRequest(BaseModel):
    bookingId: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=1000)


class AdminCancelBookingRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)
    skipEmail: bool = False


class BookingResponse(BaseModel):
    id: str
    user_id: str
    booking_type: BookingType
    resource_id: str
    resource_name: str
    scheduled_at: Optional[datetime] = None
    status: BookingStatus
    seats: int
    amount: Decimal
    currency: str
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CancelBookingResponse(BaseModel):
    success: bool = True
    booking: BookingResponse
    seatsReleased: int = 0
    message: str


class AdminCancelBookingResponse(CancelBookingResponse):
    creditRefunded: bool = False


class BulkCancelRequest(BaseModel):
    bookingIds: List[str] = Field(..., min_length=1, max_length=100)
    reason: Optional[str] = Field(None, max_length=1000)
    skipEmail: bool = False


class BulkCancelResponse(BaseModel):
    successful: List[str]
    failed: List[dict]
