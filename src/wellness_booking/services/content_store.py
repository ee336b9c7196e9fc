"""
Read-only client for the headless content store

Event definitions (title, date, capacity, price) are authored in the CMS.
Capacity there is the configured limit; how much of it is taken is tracked
in the relational store.
"""
from typing import Optional
import logging

import httpx

from wellness_booking.core.config import settings
from wellness_booking.schemas.event import EventContent
from wellness_booking.services.cache_service import CacheService

logger = logging.getLogger(__name__)

EVENT_BY_ID_QUERY = (
    '*[_type == "event" && _id == $id][0]'
    '{_id, title, eventDate, endDate, capacity, maxPerBooking, status, price}'
)


class ContentStoreError(Exception):
    """Raised when the content store cannot be reached or answers garbage"""
    pass


class ContentStoreClient:
    """Fetches event content over the CMS query API, with Redis caching"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.CONTENT_API_URL
        self.token = token if token is not None else settings.CONTENT_API_TOKEN
        self.transport = transport

    def _headers(self) -> dict:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def get_event(self, event_id: str) -> Optional[EventContent]:
        """Return the event or None when the CMS has no such document"""
        cached = await CacheService.get_event_content(event_id)
        if cached:
            return EventContent.model_validate(cached)

        params = {"query": EVENT_BY_ID_QUERY, "$id": f'"{event_id}"'}
        try:
            async with httpx.AsyncClient(
                timeout=settings.CONTENT_API_TIMEOUT_SECONDS,
                transport=self.transport,
            ) as client:
                response = await client.get(self.base_url, params=params, headers=self._headers())
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Content store request failed for event {event_id}: {e}")
            raise ContentStoreError(f"Content store unavailable: {e}") from e

        document = payload.get("result")
        if not document:
            return None

        event = EventContent.model_validate(document)
        await CacheService.set_event_content(event_id, event.model_dump(mode="json", by_alias=True))
        return event


# Global client instance
content_store = ContentStoreClient()


async def get_content_store() -> ContentStoreClient:
    """Dependency to get the content store client"""
    return content_store
