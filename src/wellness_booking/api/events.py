"""Events API endpoints: availability and event booking cancellation"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_booking.api.deps import (
    get_cancellation_service,
    get_current_user,
    get_optional_user,
    get_seat_service,
)
from wellness_booking.core.database import get_db
from wellness_booking.middleware.rate_limiter import limiter
from wellness_booking.models import Booking, BookingType, User
from wellness_booking.schemas import (
    BookingResponse,
    CancelBookingRequest,
    CancelBookingResponse,
    EventAvailabilityResponse,
)
from wellness_booking.services import (
    BookingCancellationService,
    EventNotFoundError,
    SeatAllocationService,
)

router = APIRouter()

# Cancellation error code -> HTTP status
CANCELLATION_STATUS = {
    "NOT_FOUND": 404,
    "ALREADY_CANCELLED": 400,
    "UNAUTHORIZED": 403,
    "TOO_LATE": 400,
    "INVALID_STATUS": 400,
    "INTERNAL_ERROR": 500,
}


@router.get("/events/{event_id}/availability", response_model=EventAvailabilityResponse)
async def get_event_availability(
    event_id: str,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    seat_service: SeatAllocationService = Depends(get_seat_service),
):
    """
    Capacity and waitlist snapshot for an event

    Authentication is optional; signed-in users also get their waitlist position.
    """
    try:
        availability = await seat_service.get_event_availability(db, event_id)
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    position = None
    if user:
        position = await seat_service.get_waitlist_position(db, event_id, user.id)

    return EventAvailabilityResponse(
        eventId=availability.event_id,
        capacity=availability.capacity,
        allocatedSeats=availability.allocated_seats,
        availableSpots=availability.available_spots,
        waitlistCount=availability.waitlist_count,
        hasWaitlist=availability.waitlist_count > 0,
        isSoldOut=availability.capacity is not None and availability.available_spots == 0,
        userWaitlistPosition=position,
    )


@router.patch("/events/{event_id}/cancel-booking", response_model=CancelBookingResponse)
@limiter.limit("20/minute")
async def cancel_event_booking(
    request: Request,
    event_id: str,
    body: CancelBookingRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cancellation_service: BookingCancellationService = Depends(get_cancellation_service),
):
    """
    Cancel the caller's booking for this event

    Freed seats are offered to the waitlist.
    """
    booking = await db.get(Booking, body.bookingId)
    if not booking:
        raise HTTPException(status_code=404, detail="Reserva no encontrada")
    if booking.resource_id != event_id:
        raise HTTPException(status_code=400, detail="La reserva no corresponde a este evento")
    if booking.booking_type != BookingType.EVENT:
        raise HTTPException(status_code=400, detail="Esta reserva no es para un evento")

    result = await cancellation_service.cancel_booking(
        db,
        booking_id=body.bookingId,
        cancelled_by="user",
        requesting_user_id=user.id,
        reason=body.reason,
    )
    if not result.success:
        raise HTTPException(status_code=CANCELLATION_STATUS.get(result.error_code, 500), detail=result.error)

    return CancelBookingResponse(
        booking=BookingResponse.model_validate(result.booking),
        seatsReleased=result.refunded.seats_released,
        message=result.message,
    )
