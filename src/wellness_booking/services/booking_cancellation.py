"""
Booking cancellation

One path for every caller (member, admin, system jobs): validates the
request, then refunds the credit, releases event seats (promoting the
waitlist) and marks the booking cancelled in a single transaction.
Notifications and the audit trail follow the commit and never undo it.

Business-rule rejections come back as a ``CancellationResult`` carrying an
``error_code``; they are not raised.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_booking.core.config import settings
from wellness_booking.core.database import atomic
from wellness_booking.core.metrics import record_cancellation, credits_refunded_total
from wellness_booking.models import Booking, BookingStatus, BookingType, User
from wellness_booking.services.audit_service import AuditService
from wellness_booking.services.content_store import ContentStoreError
from wellness_booking.services.credits_service import CreditsService
from wellness_booking.services.email_service import EmailService, email_service as default_email_service
from wellness_booking.services.seat_allocation import SeatAllocationService, ReleaseOutcome
import logging

logger = logging.getLogger(__name__)

NOT_FOUND = "NOT_FOUND"
ALREADY_CANCELLED = "ALREADY_CANCELLED"
UNAUTHORIZED = "UNAUTHORIZED"
TOO_LATE = "TOO_LATE"
INVALID_STATUS = "INVALID_STATUS"
INTERNAL_ERROR = "INTERNAL_ERROR"

CANCELLED_BY_USER = "user"
CANCELLED_BY_ADMIN = "admin"
CANCELLED_BY_SYSTEM = "system"

DEFAULT_REASONS = {
    CANCELLED_BY_USER: "Cancelada por el cliente",
    CANCELLED_BY_ADMIN: "Cancelada por administrador",
    CANCELLED_BY_SYSTEM: "Cancelada por el sistema",
}


@dataclass
class RefundSummary:
    credits: bool = False
    seats_released: int = 0


@dataclass
class CancellationResult:
    success: bool
    booking: Optional[Booking] = None
    refunded: Optional[RefundSummary] = None
    message: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class BulkCancellationResult:
    successful: List[str] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)


def _snapshot(booking: Booking) -> dict:
    return {
        "status": booking.status.value,
        "cancelled_at": booking.cancelled_at.isoformat() if booking.cancelled_at else None,
        "cancellation_reason": booking.cancellation_reason,
    }


class BookingCancellationService:
    """Cancels bookings and fans out the refund, seat and notification side effects"""

    def __init__(
        self,
        seat_service: Optional[SeatAllocationService] = None,
        email_service: Optional[EmailService] = None,
    ):
        self.seat_service = seat_service or SeatAllocationService()
        self.email_service = email_service or default_email_service

    @staticmethod
    def _reject(cancelled_by: str, error_code: str, error: str) -> CancellationResult:
        record_cancellation(cancelled_by, error_code)
        return CancellationResult(success=False, error=error, error_code=error_code)

    async def cancel_booking(
        self,
        db: AsyncSession,
        booking_id: str,
        cancelled_by: str,
        requesting_user_id: str,
        reason: Optional[str] = None,
        skip_email: bool = False,
        skip_time_restriction: bool = False,
        admin_email: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CancellationResult:
        now = now or datetime.utcnow()
        is_admin = cancelled_by == CANCELLED_BY_ADMIN

        try:
            async with atomic(db):
                result = await db.execute(
                    select(Booking).where(Booking.id == booking_id).with_for_update()
                )
                booking = result.scalar_one_or_none()

                if not booking:
                    return self._reject(cancelled_by, NOT_FOUND, "Reserva no encontrada")

                if booking.status == BookingStatus.CANCELLED:
                    return self._reject(cancelled_by, ALREADY_CANCELLED, "La reserva ya está cancelada")

                if not booking.is_cancellable:
                    return self._reject(
                        cancelled_by,
                        INVALID_STATUS,
                        f"No se puede cancelar una reserva con estado: {booking.status.value}",
                    )

                if cancelled_by == CANCELLED_BY_USER and booking.user_id != requesting_user_id:
                    return self._reject(cancelled_by, UNAUTHORIZED, "No tienes permiso para cancelar esta reserva")

                hours_until = booking.hours_until_start(now)
                if (
                    not is_admin
                    and not skip_time_restriction
                    and hours_until is not None
                    and hours_until < settings.CANCELLATION_MIN_LEAD_HOURS
                ):
                    return self._reject(
                        cancelled_by,
                        TOO_LATE,
                        f"Las cancelaciones deben hacerse con al menos "
                        f"{settings.CANCELLATION_MIN_LEAD_HOURS} horas de anticipación. "
                        f"Contacta con nuestro equipo para casos especiales.",
                    )

                before = _snapshot(booking)
                refunded = RefundSummary()

                refund = await CreditsService.refund_credit(db, booking.user_id, booking.id, now=now)
                refunded.credits = refund.refunded

                release = ReleaseOutcome()
                if booking.booking_type == BookingType.EVENT:
                    release = await self.seat_service.release_booking_seats(db, booking.id, now)
                    refunded.seats_released = release.seats_released

                cancellation_reason = reason or DEFAULT_REASONS.get(cancelled_by, DEFAULT_REASONS[CANCELLED_BY_USER])
                booking.status = BookingStatus.CANCELLED
                booking.cancelled_at = now
                booking.cancellation_reason = cancellation_reason
                await db.flush()

                user = await db.get(User, booking.user_id)

        except (SQLAlchemyError, ContentStoreError) as e:
            logger.error(f"Error cancelling booking {booking_id}: {e}", exc_info=True)
            record_cancellation(cancelled_by, INTERNAL_ERROR)
            return CancellationResult(
                success=False,
                error="Error interno al cancelar la reserva",
                error_code=INTERNAL_ERROR,
            )

        record_cancellation(cancelled_by, "success")
        if refunded.credits:
            credits_refunded_total.inc()
        logger.info(
            f"Booking {booking_id} cancelled by {cancelled_by} "
            f"(credit refunded: {refunded.credits}, seats released: {refunded.seats_released})",
            extra={"booking_id": booking_id, "user_id": booking.user_id},
        )

        await self.seat_service.notify_release(release)

        if is_admin:
            await self._audit(db, booking, requesting_user_id, admin_email, before, refunded, reason)

        if not skip_email and user:
            await self.email_service.send_cancellation_email(
                email=user.email,
                name=user.name,
                session_name=booking.resource_name,
                scheduled_date=booking.scheduled_at,
                cancelled_by=cancelled_by,
                reason=reason,
                credit_refunded=refunded.credits,
                seats_released=refunded.seats_released,
            )

        if refunded.seats_released > 0:
            message = (
                f"Reserva cancelada. {refunded.seats_released} cupo(s) liberado(s) "
                f"y ofrecido(s) a la lista de espera."
            )
        elif refunded.credits:
            message = "Sesión cancelada. Tu crédito ha sido reembolsado."
        else:
            message = "Reserva cancelada exitosamente"

        return CancellationResult(success=True, booking=booking, refunded=refunded, message=message)

    async def _audit(
        self,
        db: AsyncSession,
        booking: Booking,
        admin_id: str,
        admin_email: Optional[str],
        before: dict,
        refunded: RefundSummary,
        reason: Optional[str],
    ) -> None:
        try:
            await AuditService.create_audit_log(
                db,
                actor_id=admin_id,
                actor_email=admin_email or "",
                entity_type="booking",
                entity_id=booking.id,
                action="cancel",
                before=before,
                after=_snapshot(booking),
                reason=reason,
                metadata={
                    "credit_refunded": refunded.credits,
                    "seats_released": refunded.seats_released,
                    "resource_name": booking.resource_name,
                },
            )
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Failed to write audit log for booking {booking.id}: {e}")

    async def cancel_multiple_bookings(
        self,
        db: AsyncSession,
        booking_ids: List[str],
        cancelled_by: str,
        requesting_user_id: str,
        reason: Optional[str] = None,
        skip_email: bool = False,
        admin_email: Optional[str] = None,
    ) -> BulkCancellationResult:
        """Cancel bookings one by one; each stands or falls on its own"""
        bulk = BulkCancellationResult()
        for booking_id in booking_ids:
            result = await self.cancel_booking(
                db,
                booking_id=booking_id,
                cancelled_by=cancelled_by,
                requesting_user_id=requesting_user_id,
                reason=reason,
                skip_email=skip_email,
                skip_time_restriction=cancelled_by == CANCELLED_BY_ADMIN,
                admin_email=admin_email,
            )
            if result.success:
                bulk.successful.append(booking_id)
            else:
                bulk.failed.append({"id": booking_id, "error": result.error or "Error desconocido"})
        return bulk
