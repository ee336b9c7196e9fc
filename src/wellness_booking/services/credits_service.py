"""
Membership credits ledger

Credits are granted to members and redeemed against 1:1 session bookings.
The ledger is append-only; balances are derived from it.

None of these methods open or commit a transaction: they run inside the
caller's, so a refund issued during a cancellation commits or rolls back
together with the cancellation itself.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_booking.core.config import settings
from wellness_booking.models import Booking, CreditsLedger, CreditReason, GRANT_REASONS
import logging

logger = logging.getLogger(__name__)


@dataclass
class CreditBalance:
    available: int
    pending: int  # credits expiring soon
    next_expiration_date: Optional[datetime] = None
    next_expiration_amount: int = 0

    @property
    def total(self) -> int:
        return self.available


@dataclass
class RedeemResult:
    success: bool
    error: Optional[str] = None


@dataclass
class RefundResult:
    success: bool
    refunded: bool


class CreditsService:
    """Balance, redemption and refund over the credits ledger"""

    @staticmethod
    async def get_balance(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> CreditBalance:
        """
        Unexpired grants minus redemptions, consumed oldest grant first.

        Negative admin adjustments count as redemptions.
        """
        now = now or datetime.utcnow()
        soon = now + timedelta(days=settings.CREDIT_EXPIRING_SOON_DAYS)

        result = await db.execute(
            select(CreditsLedger)
            .where(CreditsLedger.user_id == user_id)
            .order_by(CreditsLedger.created_at.asc())
        )
        entries = result.scalars().all()

        grants = []
        total_redeemed = 0
        for entry in entries:
            if entry.reason in GRANT_REASONS:
                if entry.amount > 0:
                    if entry.expires_at is None or entry.expires_at > now:
                        grants.append(entry)
                else:
                    total_redeemed += abs(entry.amount)
            elif entry.reason == CreditReason.REDEEM:
                total_redeemed += abs(entry.amount)

        balance = CreditBalance(available=0, pending=0)
        remaining = total_redeemed
        for grant in grants:
            if remaining >= grant.amount:
                remaining -= grant.amount
                continue

            left_in_grant = grant.amount - remaining
            remaining = 0
            balance.available += left_in_grant

            if grant.expires_at and grant.expires_at <= soon:
                balance.pending += left_in_grant
                if balance.next_expiration_date is None or grant.expires_at < balance.next_expiration_date:
                    balance.next_expiration_date = grant.expires_at
                    balance.next_expiration_amount = left_in_grant

        return balance

    @staticmethod
    async def redeem_credit(db: AsyncSession, user_id: str, booking_id: str) -> RedeemResult:
        balance = await CreditsService.get_balance(db, user_id)
        if balance.available < 1:
            return RedeemResult(success=False, error="No hay créditos disponibles")

        booking = await db.get(Booking, booking_id)
        if booking is None or booking.user_id != user_id:
            return RedeemResult(success=False, error="Reserva no encontrada")

        if await CreditsService._find_entry(db, user_id, booking_id, CreditReason.REDEEM):
            return RedeemResult(success=False, error="Crédito ya canjeado para esta reserva")

        db.add(CreditsLedger(
            user_id=user_id,
            amount=-1,
            reason=CreditReason.REDEEM,
            booking_id=booking_id,
            notes=f"Canje para {booking.resource_name}",
        ))
        await db.flush()

        logger.info("Credit redeemed", extra={"user_id": user_id, "booking_id": booking_id})
        return RedeemResult(success=True)

    @staticmethod
    async def refund_credit(
        db: AsyncSession,
        user_id: str,
        booking_id: str,
        now: Optional[datetime] = None,
    ) -> RefundResult:
        """Return the credit a booking consumed; a booking is refunded at most once"""
        if not await CreditsService._find_entry(db, user_id, booking_id, CreditReason.REDEEM):
            return RefundResult(success=True, refunded=False)

        if await CreditsService._find_entry(db, user_id, booking_id, CreditReason.REFUND):
            return RefundResult(success=True, refunded=False)

        now = now or datetime.utcnow()
        db.add(CreditsLedger(
            user_id=user_id,
            amount=1,
            reason=CreditReason.REFUND,
            booking_id=booking_id,
            expires_at=now + timedelta(days=settings.CREDIT_REFUND_EXPIRY_DAYS),
            notes="Devolución por cancelación de reserva",
        ))
        await db.flush()

        logger.info("Credit refunded for cancelled booking", extra={"user_id": user_id, "booking_id": booking_id})
        return RefundResult(success=True, refunded=True)

    @staticmethod
    async def was_paid_with_credit(db: AsyncSession, booking_id: str) -> bool:
        result = await db.execute(
            select(CreditsLedger.id).where(
                CreditsLedger.booking_id == booking_id,
                CreditsLedger.reason == CreditReason.REDEEM,
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_history(db: AsyncSession, user_id: str, limit: int = 50) -> List[CreditsLedger]:
        result = await db.execute(
            select(CreditsLedger)
            .where(CreditsLedger.user_id == user_id)
            .order_by(CreditsLedger.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def expire_credits(db: AsyncSession, now: Optional[datetime] = None) -> int:
        """
        Count grants past their expiry.

        Balances already ignore expired grants; this only feeds the audit job.
        """
        now = now or datetime.utcnow()
        result = await db.execute(
            select(func.count(CreditsLedger.id)).where(
                CreditsLedger.reason.in_(GRANT_REASONS),
                CreditsLedger.amount > 0,
                CreditsLedger.expires_at <= now,
            )
        )
        expired = result.scalar() or 0
        logger.info(f"{expired} credit entries have expired")
        return expired

    @staticmethod
    async def admin_adjust_credits(
        db: AsyncSession,
        user_id: str,
        amount: int,
        notes: str,
        admin_user_id: str,
        expires_in_days: Optional[int] = None,
    ) -> CreditsLedger:
        expires_at = datetime.utcnow() + timedelta(days=expires_in_days) if expires_in_days else None
        entry = CreditsLedger(
            user_id=user_id,
            amount=amount,
            reason=CreditReason.ADMIN_ADJUSTMENT,
            expires_at=expires_at,
            notes=notes,
            created_by=admin_user_id,
        )
        db.add(entry)
        await db.flush()

        logger.info(f"Admin {admin_user_id} adjusted credits for user {user_id}: {amount:+d}")
        return entry

    @staticmethod
    async def _find_entry(
        db: AsyncSession,
        user_id: str,
        booking_id: str,
        reason: CreditReason,
    ) -> Optional[CreditsLedger]:
        result = await db.execute(
            select(CreditsLedger).where(
                CreditsLedger.user_id == user_id,
                CreditsLedger.booking_id == booking_id,
                CreditsLedger.reason == reason,
            ).limit(1)
        )
        return result.scalar_one_or_none()
