"""
Rate limiting using SlowAPI
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
import logging

from wellness_booking.core.config import settings
from wellness_booking.core.security import decode_access_token, InvalidTokenError

logger = logging.getLogger(__name__)


def get_identifier(request: Request) -> str:
    """
    Rate-limit key: the authenticated user when the bearer token checks out,
    the client IP otherwise
    """
    auth_header = request.headers.get('Authorization', '')
    scheme, _, token = auth_header.partition(' ')
    if scheme.lower() == 'bearer' and token:
        try:
            return f"user:{decode_access_token(token)['user_id']}"
        except InvalidTokenError:
            pass

    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_identifier,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)
