"""
JWT bearer tokens

Tokens are issued by the account service; this service only verifies them.
``create_access_token`` exists for scripts and tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict

import jwt

from wellness_booking.core.config import settings


class InvalidTokenError(Exception):
    """Raised when a bearer token cannot be verified"""
    pass


def create_access_token(user) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user.id),
        'exp': now + timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS),
        'iat': now,
        'user_id': user.id,
        'email': user.email,
        'name': user.name,
        'role': user.role.value,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError as e:
        raise InvalidTokenError(str(e)) from e

    if not payload.get('user_id'):
        raise InvalidTokenError('Token has no user_id claim')
    return payload
