"""
AuditLog model - who did what to which entity
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, JSON

from wellness_booking.core.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    actor_id = Column(String(36), nullable=False, index=True)
    actor_email = Column(String(320), nullable=False)
    entity_type = Column(String(50), nullable=False, index=True)  # booking, order, subscription, user
    entity_id = Column(String(100), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)
    extra = Column("metadata", JSON, nullable=True)  # 'metadata' is reserved on declarative classes
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(entity={self.entity_type}:{self.entity_id}, action='{self.action}')>"
