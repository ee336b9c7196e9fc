"""
Scheduled job endpoints

Called by an external scheduler with ``Authorization: Bearer <CRON_SECRET>``.
In development the secret is optional.
"""
import secrets
import time
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from wellness_booking.api.deps import get_seat_service
from wellness_booking.core.config import settings
from wellness_booking.core.database import get_db
from wellness_booking.schemas import CreditExpiryResponse, WaitlistSweepResponse, WaitlistSweepResults
from wellness_booking.services import CreditsService, SeatAllocationService

logger = logging.getLogger(__name__)

router = APIRouter()


async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if settings.is_development:
        return

    if not settings.CRON_SECRET:
        logger.error("CRON_SECRET not configured")
        raise HTTPException(status_code=500, detail="Server configuration error")

    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not secrets.compare_digest(authorization, expected):
        logger.warning("Unauthorized cron request")
        raise HTTPException(status_code=401, detail="Unauthorized")


def _allow_get_in_development(request: Request) -> None:
    if request.method == "GET" and not settings.is_development:
        raise HTTPException(status_code=405, detail="Method not allowed")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.api_route(
    "/cron/expire-waitlist-offers",
    methods=["POST", "GET"],
    response_model=WaitlistSweepResponse,
    dependencies=[Depends(_allow_get_in_development), Depends(verify_cron_secret)],
)
async def expire_waitlist_offers(
    db: AsyncSession = Depends(get_db),
    seat_service: SeatAllocationService = Depends(get_seat_service),
):
    """Expire overdue waitlist offers, pass seats on and send reminders"""
    logger.info("Starting waitlist offer expiration job")
    start = time.time()

    result = await seat_service.process_expired_offers(db)

    duration_ms = int((time.time() - start) * 1000)
    logger.info(
        f"Waitlist job completed in {duration_ms}ms: {result.expired} expired, {result.reminders} reminders",
        extra={"duration_ms": duration_ms},
    )
    return WaitlistSweepResponse(
        timestamp=_timestamp(),
        duration=f"{duration_ms}ms",
        results=WaitlistSweepResults(expiredOffers=result.expired, remindersSent=result.reminders),
    )


@router.api_route(
    "/cron/expire-credits",
    methods=["POST", "GET"],
    response_model=CreditExpiryResponse,
    dependencies=[Depends(_allow_get_in_development), Depends(verify_cron_secret)],
)
async def expire_credits(db: AsyncSession = Depends(get_db)):
    """Audit expired credits; balances already ignore them"""
    start = time.time()
    expired = await CreditsService.expire_credits(db)
    duration_ms = int((time.time() - start) * 1000)
    return CreditExpiryResponse(timestamp=_timestamp(), duration=f"{duration_ms}ms", expired=expired)
