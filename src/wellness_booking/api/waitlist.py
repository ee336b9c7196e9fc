"""Waitlist API endpoints"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_booking.api.deps import get_current_user, get_seat_service
from wellness_booking.core.database import get_db
from wellness_booking.middleware.rate_limiter import limiter
from wellness_booking.models import User
from wellness_booking.schemas import (
    AcceptOfferResponse,
    JoinWaitlistRequest,
    JoinWaitlistResponse,
    MessageResponse,
    WaitlistEntryResponse,
    WaitlistStatusResponse,
)
from wellness_booking.services import (
    SeatAllocationService,
    SeatAllocationError,
    EventNotFoundError,
    WaitlistEntryNotFoundError,
    WaitlistPermissionError,
    OfferNotAvailableError,
    OfferExpiredError,
    SeatsUnavailableError,
    InvalidStateTransitionError,
)

router = APIRouter()


@router.post("/events/{event_id}/waitlist", response_model=JoinWaitlistResponse)
@limiter.limit("10/minute")
async def join_waitlist(
    request: Request,
    event_id: str,
    body: JoinWaitlistRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    seat_service: SeatAllocationService = Depends(get_seat_service),
):
    """Join the waitlist of a sold-out event"""
    try:
        entry = await seat_service.add_to_waitlist(
            db, event_id, user, seats_requested=body.seats, notes=body.notes
        )
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except SeatAllocationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return JoinWaitlistResponse(
        waitlistEntryId=entry.id,
        position=entry.position,
        seatsRequested=entry.seats_requested,
        message=f"Te has unido a la lista de espera en posición {entry.position}",
    )


@router.get("/events/{event_id}/waitlist", response_model=WaitlistStatusResponse)
async def get_my_waitlist_entry(
    event_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    seat_service: SeatAllocationService = Depends(get_seat_service),
):
    entry = await seat_service.get_waitlist_entry(db, event_id, user.id)
    if not entry:
        return WaitlistStatusResponse(inWaitlist=False)
    return WaitlistStatusResponse(inWaitlist=entry.is_active, entry=WaitlistEntryResponse.from_entry(entry))


@router.delete("/events/{event_id}/waitlist", response_model=MessageResponse)
async def leave_waitlist(
    event_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    seat_service: SeatAllocationService = Depends(get_seat_service),
):
    entry = await seat_service.get_waitlist_entry(db, event_id, user.id)
    if not entry or not entry.is_active:
        raise HTTPException(status_code=404, detail="No estás en la lista de espera para este evento")

    try:
        await seat_service.cancel_waitlist_entry(db, entry.id, user.id)
    except SeatAllocationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return MessageResponse(message="Has salido de la lista de espera")


@router.post("/waitlist/{entry_id}/accept", response_model=AcceptOfferResponse)
@limiter.limit("10/minute")
async def accept_offer(
    request: Request,
    entry_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    seat_service: SeatAllocationService = Depends(get_seat_service),
):
    """Accept a waitlist offer and create the booking"""
    try:
        result = await seat_service.accept_waitlist_offer(db, entry_id, user.id)
    except OfferExpiredError as e:
        raise HTTPException(status_code=410, detail=e.message)
    except OfferNotAvailableError as e:
        raise HTTPException(status_code=410, detail=e.message)
    except (WaitlistEntryNotFoundError, EventNotFoundError) as e:
        raise HTTPException(status_code=404, detail=e.message)
    except WaitlistPermissionError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except (SeatsUnavailableError, InvalidStateTransitionError) as e:
        raise HTTPException(status_code=409, detail=e.message)

    if result.needs_payment:
        message = "Cupo aceptado. Procede al pago para confirmar tu reserva."
    else:
        message = "¡Cupo aceptado! Tu reserva ha sido confirmada."

    return AcceptOfferResponse(bookingId=result.booking.id, needsPayment=result.needs_payment, message=message)


@router.post("/waitlist/{entry_id}/decline", response_model=MessageResponse)
async def decline_offer(
    entry_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    seat_service: SeatAllocationService = Depends(get_seat_service),
):
    """Decline a waitlist offer; the seat moves to the next person in line"""
    try:
        await seat_service.decline_waitlist_offer(db, entry_id, user.id)
    except WaitlistEntryNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except WaitlistPermissionError as e:
        raise HTTPException(status_code=403, detail=e.message)
    except (OfferNotAvailableError, InvalidStateTransitionError):
        raise HTTPException(status_code=410, detail="Esta oferta ya no está disponible")

    return MessageResponse(
        message="Has rechazado la oferta. El cupo ha sido ofrecido a la siguiente persona."
    )
