"""
Cache service for content-store payloads kept in Redis
"""
from typing import Optional, Dict, Any
from wellness_booking.core.redis import redis_client
from wellness_booking.core.config import settings
import logging

logger = logging.getLogger(__name__)


class CacheService:
    """Cache keys and invalidation for read-only content"""

    EVENT_CONTENT_KEY = "content:event:{event_id}"

    @staticmethod
    async def get_event_content(event_id: str) -> Optional[Dict[str, Any]]:
        key = CacheService.EVENT_CONTENT_KEY.format(event_id=event_id)
        cached = await redis_client.get(key)
        if cached:
            logger.debug(f"Cache HIT: {key}")
        return cached

    @staticmethod
    async def set_event_content(event_id: str, data: Dict[str, Any]) -> bool:
        key = CacheService.EVENT_CONTENT_KEY.format(event_id=event_id)
        return await redis_client.set(key, data, ttl=settings.REDIS_CACHE_TTL)
