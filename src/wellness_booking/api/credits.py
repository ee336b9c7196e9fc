"""Credits API endpoints"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_booking.api.deps import get_current_user
from wellness_booking.core.database import get_db
from wellness_booking.models import User
from wellness_booking.schemas import (
    CreditBalanceResponse,
    CreditHistoryResponse,
    CreditLedgerEntryResponse,
)
from wellness_booking.services import CreditsService

router = APIRouter()


@router.get("/credits/balance", response_model=CreditBalanceResponse)
async def get_credit_balance(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    balance = await CreditsService.get_balance(db, user.id)
    return CreditBalanceResponse(
        available=balance.available,
        pending=balance.pending,
        nextExpirationDate=balance.next_expiration_date,
        nextExpirationAmount=balance.next_expiration_amount,
    )


@router.get("/credits/history", response_model=CreditHistoryResponse)
async def get_credit_history(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    entries = await CreditsService.get_history(db, user.id, limit=limit)
    return CreditHistoryResponse(entries=[CreditLedgerEntryResponse.from_entry(e) for e in entries])
