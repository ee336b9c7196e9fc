"""
SQLAlchemy models

Import all models here for easy access and to ensure proper relationship setup.
"""
from wellness_booking.core.database import Base

from wellness_booking.models.user import User, UserRole
from wellness_booking.models.booking import Booking, BookingStatus, BookingType, CANCELLABLE_STATUSES
from wellness_booking.models.seat_allocation import SeatAllocation, SeatAllocationStatus
from wellness_booking.models.waitlist_entry import (
    WaitlistEntry,
    WaitlistStatus,
    ACTIVE_WAITLIST_STATUSES,
    TERMINAL_WAITLIST_STATUSES,
    WAITLIST_TRANSITIONS,
)
from wellness_booking.models.credits_ledger import CreditsLedger, CreditReason, GRANT_REASONS
from wellness_booking.models.audit_log import AuditLog

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Booking",
    "BookingStatus",
    "BookingType",
    "CANCELLABLE_STATUSES",
    "SeatAllocation",
    "SeatAllocationStatus",
    "WaitlistEntry",
    "WaitlistStatus",
    "ACTIVE_WAITLIST_STATUSES",
    "TERMINAL_WAITLIST_STATUSES",
    "WAITLIST_TRANSITIONS",
    "CreditsLedger",
    "CreditReason",
    "GRANT_REASONS",
    "AuditLog",
]
