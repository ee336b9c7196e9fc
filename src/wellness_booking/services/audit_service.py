"""
Audit trail for administrative actions
"""
from datetime import datetime
from typing import Any, List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from wellness_booking.models import AuditLog
import logging

logger = logging.getLogger(__name__)

ENTITY_TYPES = ("booking", "order", "subscription", "user")

ACTIONS = (
    "cancel",
    "reschedule",
    "refund",
    "status_change",
    "complete",
    "no_show",
    "create",
    "update",
    "delete",
    "resend_email",
    "role_change",
)


class AuditService:

    @staticmethod
    async def create_audit_log(
        db: AsyncSession,
        actor_id: str,
        actor_email: str,
        entity_type: str,
        entity_id: str,
        action: str,
        before: Optional[Any] = None,
        after: Optional[Any] = None,
        reason: Optional[str] = None,
        metadata: Optional[Any] = None,
    ) -> AuditLog:
        """Append one audit row and commit it"""
        if entity_type not in ENTITY_TYPES:
            raise ValueError(f"Unknown audit entity type: {entity_type}")
        if action not in ACTIONS:
            raise ValueError(f"Unknown audit action: {action}")

        entry = AuditLog(
            actor_id=actor_id,
            actor_email=actor_email,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            before=before,
            after=after,
            reason=reason,
            extra=metadata,
        )
        db.add(entry)
        await db.commit()
        return entry

    @staticmethod
    def _filtered(query, entity_type=None, entity_id=None, actor_id=None, action=None,
                  date_from: Optional[datetime] = None, date_to: Optional[datetime] = None):
        if entity_type:
            query = query.where(AuditLog.entity_type == entity_type)
        if entity_id:
            query = query.where(AuditLog.entity_id == entity_id)
        if actor_id:
            query = query.where(AuditLog.actor_id == actor_id)
        if action:
            query = query.where(AuditLog.action == action)
        if date_from:
            query = query.where(AuditLog.created_at >= date_from)
        if date_to:
            query = query.where(AuditLog.created_at <= date_to)
        return query

    @staticmethod
    async def get_audit_logs(
        db: AsyncSession,
        limit: int = 50,
        offset: int = 0,
        **filters,
    ) -> List[AuditLog]:
        query = AuditService._filtered(select(AuditLog), **filters)
        query = query.order_by(AuditLog.created_at.desc()).offset(offset).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_entity_audit_history(db: AsyncSession, entity_type: str, entity_id: str) -> List[AuditLog]:
        return await AuditService.get_audit_logs(
            db, limit=1000, entity_type=entity_type, entity_id=entity_id
        )

    @staticmethod
    async def count_audit_logs(db: AsyncSession, **filters) -> int:
        query = AuditService._filtered(select(func.count(AuditLog.id)), **filters)
        result = await db.execute(query)
        return result.scalar() or 0
