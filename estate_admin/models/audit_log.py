"""Permission audit log model: append-only."""

import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum

from estate_admin.db.base import Base
from estate_admin.core.timeutils import utcnow


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    BATCH_DELETE = "BATCH_DELETE"
    BATCH_UPDATE = "BATCH_UPDATE"
    CLEANUP = "CLEANUP"


class PermissionAuditLog(Base):
    """Immutable audit trail for permission mutations.

    Rows are never updated. They are deleted only by the retention cleanup,
    which records its own CLEANUP entry.
    """
    __tablename__ = "permission_audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)  # actor
    action = Column(Enum(AuditAction), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False, index=True)
    resource_id = Column(Integer, nullable=False, default=0)  # 0 for batch operations
    before_data = Column(Text, nullable=True)
    after_data = Column(Text, nullable=True)
    description = Column(String(1000), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "action": self.action.value if self.action else None,
            "resourceType": self.resource_type,
            "resourceId": self.resource_id,
            "beforeData": self.before_data,
            "afterData": self.after_data,
            "description": self.description,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "createdAt": self.created_at,
        }
