"""
Pydantic schemas for API request/response validation
"""
from wellness_booking.schemas.event import EventContent, EventAvailabilityResponse
from wellness_booking.schemas.booking import (
    CancelBookingRequest,
    AdminCancelBookingRequest,
    BookingResponse,
    CancelBookingResponse,
    AdminCancelBookingResponse,
    BulkCancelRequest,
    BulkCancelResponse,
)
from wellness_booking.schemas.waitlist import (
    JoinWaitlistRequest,
    JoinWaitlistResponse,
    WaitlistEntryResponse,
    WaitlistStatusResponse,
    AcceptOfferResponse,
    MessageResponse,
)
from wellness_booking.schemas.credits import (
    CreditBalanceResponse,
    CreditLedgerEntryResponse,
    CreditHistoryResponse,
)
from wellness_booking.schemas.cron import WaitlistSweepResults, WaitlistSweepResponse, CreditExpiryResponse

__all__ = [
    # Events
    "EventContent",
    "EventAvailabilityResponse",
    # Bookings
    "CancelBookingRequest",
    "AdminCancelBookingRequest",
    "BookingResponse",
    "CancelBookingResponse",
    "AdminCancelBookingResponse",
    "BulkCancelRequest",
    "BulkCancelResponse",
    # Waitlist
    "JoinWaitlistRequest",
    "JoinWaitlistResponse",
    "WaitlistEntryResponse",
    "WaitlistStatusResponse",
    "AcceptOfferResponse",
    "MessageResponse",
    # Credits
    "CreditBalanceResponse",
    "CreditLedgerEntryResponse",
    "CreditHistoryResponse",
    # Cron
    "WaitlistSweepResults",
    "WaitlistSweepResponse",
    "CreditExpiryResponse",
]
