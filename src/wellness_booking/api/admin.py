"""Admin API endpoints"""
from typing import List, Optional
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_booking.api.deps import get_cancellation_service, get_seat_service, require_admin
from wellness_booking.core.database import get_db
from wellness_booking.models import User
from wellness_booking.schemas import (
    AdminCancelBookingRequest,
    AdminCancelBookingResponse,
    BookingResponse,
    BulkCancelRequest,
    BulkCancelResponse,
)
from wellness_booking.services import (
    AuditService,
    BookingCancellationService,
    SeatAllocationService,
)

router = APIRouter()

ADMIN_CANCELLATION_STATUS = {
    "NOT_FOUND": 404,
    "ALREADY_CANCELLED": 400,
    "INVALID_STATUS": 400,
    "INTERNAL_ERROR": 500,
}


@router.post("/admin/bookings/{booking_id}/cancel", response_model=AdminCancelBookingResponse)
async def admin_cancel_booking(
    booking_id: str,
    body: Optional[AdminCancelBookingRequest] = Body(None),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    cancellation_service: BookingCancellationService = Depends(get_cancellation_service),
):
    """Cancel any booking, with no lead-time restriction"""
    body = body or AdminCancelBookingRequest()
    result = await cancellation_service.cancel_booking(
        db,
        booking_id=booking_id,
        cancelled_by="admin",
        requesting_user_id=admin.id,
        admin_email=admin.email,
        reason=body.reason,
        skip_email=body.skipEmail,
        skip_time_restriction=True,
    )
    if not result.success:
        raise HTTPException(
            status_code=ADMIN_CANCELLATION_STATUS.get(result.error_code, 500), detail=result.error
        )

    return AdminCancelBookingResponse(
        booking=BookingResponse.model_validate(result.booking),
        seatsReleased=result.refunded.seats_released,
        creditRefunded=result.refunded.credits,
        message=result.message,
    )


@router.post("/admin/bookings/cancel-bulk", response_model=BulkCancelResponse)
async def admin_cancel_bookings(
    body: BulkCancelRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    cancellation_service: BookingCancellationService = Depends(get_cancellation_service),
):
    bulk = await cancellation_service.cancel_multiple_bookings(
        db,
        booking_ids=body.bookingIds,
        cancelled_by="admin",
        requesting_user_id=admin.id,
        reason=body.reason,
        skip_email=body.skipEmail,
        admin_email=admin.email,
    )
    return BulkCancelResponse(successful=bulk.successful, failed=bulk.failed)


@router.get("/admin/events/{event_id}/waitlist-stats")
async def get_waitlist_stats(
    event_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    seat_service: SeatAllocationService = Depends(get_seat_service),
):
    stats = await seat_service.get_event_waitlist_stats(db, event_id)
    return {
        "waiting": stats.waiting,
        "offerPending": stats.offer_pending,
        "accepted": stats.accepted,
        "declined": stats.declined,
        "expired": stats.expired,
        "cancelled": stats.cancelled,
        "total": stats.total,
    }


def _audit_log_dict(log) -> dict:
    return {
        "id": log.id,
        "entityType": log.entity_type,
        "entityId": log.entity_id,
        "actorId": log.actor_id,
        "actorEmail": log.actor_email,
        "action": log.action,
        "before": log.before,
        "after": log.after,
        "reason": log.reason,
        "metadata": log.extra,
        "createdAt": log.created_at.isoformat(),
    }


@router.get("/admin/audit")
async def list_audit_logs(
    entity_type: Optional[str] = Query(None, alias="entityType"),
    actor_id: Optional[str] = Query(None, alias="actorId"),
    action: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Paged audit trail, newest first, with the unpaged total"""
    filters = {"entity_type": entity_type, "actor_id": actor_id, "action": action}
    logs = await AuditService.get_audit_logs(db, limit=limit, offset=offset, **filters)
    total = await AuditService.count_audit_logs(db, **filters)
    return {"logs": [_audit_log_dict(log) for log in logs], "total": total}


@router.get("/admin/audit/{entity_type}/{entity_id}")
async def get_entity_audit_history(
    entity_type: str,
    entity_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> List[dict]:
    logs = await AuditService.get_entity_audit_history(db, entity_type, entity_id)
    return [_audit_log_dict(log) for log in logs]
