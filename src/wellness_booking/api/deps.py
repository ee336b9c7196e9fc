"""
Shared API dependencies: authentication and service wiring
"""
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_booking.core.database import get_db
from wellness_booking.core.security import decode_access_token, InvalidTokenError
from wellness_booking.models import User
from wellness_booking.services import (
    BookingCancellationService,
    ContentStoreClient,
    EmailService,
    SeatAllocationService,
    get_content_store,
    get_email_service,
)
import logging

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def _user_from_token(token: str, db: AsyncSession) -> Optional[User]:
    try:
        payload = decode_access_token(token)
    except InvalidTokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        return None
    return await db.get(User, payload['user_id'])


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No autorizado")

    user = await _user_from_token(credentials.credentials, db)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No autorizado")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    if credentials is None:
        return None
    return await _user_from_token(credentials.credentials, db)


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No autorizado")
    return user


async def get_seat_service(
    content_store: ContentStoreClient = Depends(get_content_store),
    email_service: EmailService = Depends(get_email_service),
) -> SeatAllocationService:
    return SeatAllocationService(content_store=content_store, email_service=email_service)


async def get_cancellation_service(
    seat_service: SeatAllocationService = Depends(get_seat_service),
    email_service: EmailService = Depends(get_email_service),
) -> BookingCancellationService:
    return BookingCancellationService(seat_service=seat_service, email_service=email_service)
