"""
Services package exports
"""
from wellness_booking.services.seat_allocation import (
    SeatAllocationService,
    SeatAllocationError,
    EventNotFoundError,
    EventNotBookableError,
    InvalidSeatCountError,
    SpotsStillAvailableError,
    WaitlistEntryNotFoundError,
    WaitlistPermissionError,
    OfferNotAvailableError,
    OfferExpiredError,
    SeatsUnavailableError,
    AlreadyInWaitlistError,
    InvalidStateTransitionError,
)
from wellness_booking.services.booking_cancellation import (
    BookingCancellationService,
    CancellationResult,
)
from wellness_booking.services.credits_service import CreditsService
from wellness_booking.services.audit_service import AuditService
from wellness_booking.services.content_store import ContentStoreClient, ContentStoreError, get_content_store
from wellness_booking.services.email_service import EmailService, get_email_service

__all__ = [
    "SeatAllocationService",
    "SeatAllocationError",
    "EventNotFoundError",
    "EventNotBookableError",
    "InvalidSeatCountError",
    "SpotsStillAvailableError",
    "WaitlistEntryNotFoundError",
    "WaitlistPermissionError",
    "OfferNotAvailableError",
    "OfferExpiredError",
    "SeatsUnavailableError",
    "AlreadyInWaitlistError",
    "InvalidStateTransitionError",
    "BookingCancellationService",
    "CancellationResult",
    "CreditsService",
    "AuditService",
    "ContentStoreClient",
    "ContentStoreError",
    "get_content_store",
    "EmailService",
    "get_email_service",
]
