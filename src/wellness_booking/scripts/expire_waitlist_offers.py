"""
Run one waitlist sweep: expire overdue offers and send reminders

For schedulers that run commands rather than call the cron endpoint.

Usage:
    python -m wellness_booking.scripts.expire_waitlist_offers
"""
import asyncio
import logging

from wellness_booking.core.database import AsyncSessionLocal, engine
from wellness_booking.core.logging_config import setup_logging
from wellness_booking.core.redis import redis_client
from wellness_booking.services import SeatAllocationService

logger = logging.getLogger(__name__)


async def run_sweep():
    await redis_client.connect()
    try:
        async with AsyncSessionLocal() as db:
            result = await SeatAllocationService().process_expired_offers(db)
        logger.info(f"Sweep finished: {result.expired} expired, {result.reminders} reminders")
        return result
    finally:
        await redis_client.close()
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(run_sweep())
