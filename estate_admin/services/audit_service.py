"""Audit service: permission audit trail and retention cleanup.

Mutating service operations are wrapped with :func:`audited`. They return an
:class:`Audited` outcome; the decorator writes its entry after the
operation has committed. Writing is best-effort: a failure is logged and
swallowed, and never undoes the mutation it describes.
"""

import functools
import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Any, Callable

from fastapi import Request
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from estate_admin.core.config import settings
from estate_admin.core.exceptions import InternalError, ValidationError
from estate_admin.core.timeutils import utcnow, to_naive_utc
from estate_admin.models.audit_log import PermissionAuditLog, AuditAction

logger = logging.getLogger("estate_admin.audit")


@dataclass(frozen=True)
class AuditContext:
    """Who performed a mutation and from where."""
    actor_id: Optional[int] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request, principal=None) -> "AuditContext":
        forwarded = request.headers.get("x-forwarded-for", "")
        ip = (
            forwarded.split(",")[0].strip()
            or request.headers.get("x-real-ip")
            or (request.client.host if request.client else None)
        )
        ua = request.headers.get("user-agent", "")[:500]
        return cls(
            actor_id=principal.id if principal is not None else None,
            ip_address=ip,
            user_agent=ua,
        )

    @classmethod
    def system(cls) -> "AuditContext":
        return cls(actor_id=None, ip_address=None, user_agent="estate-admin-cli")


@dataclass
class AuditEntry:
    action: AuditAction
    resource_type: str
    resource_id: int = 0
    before: Optional[Any] = None
    after: Optional[Any] = None
    description: str = ""


@dataclass
class Audited:
    """Result of a mutating operation plus the audit entry describing it."""
    value: Any = None
    entry: Optional[AuditEntry] = None


@dataclass
class CleanupResult:
    deleted_count: int
    message: str
    cutoff: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {"deletedCount": self.deleted_count, "message": self.message}


def _serialize(snapshot: Optional[Any]) -> Optional[str]:
    if snapshot is None:
        return None
    return json.dumps(snapshot, default=str, ensure_ascii=False)


def audited(func: Callable) -> Callable:
    """Record the entry of an :class:`Audited` outcome after ``func`` returns.

    The wrapped callable takes ``(db, ctx, ...)`` and is expected to have
    committed its own work.
    """

    @functools.wraps(func)
    def wrapper(db: Session, ctx: AuditContext, *args, **kwargs):
        outcome = func(db, ctx, *args, **kwargs)
        if not isinstance(outcome, Audited):
            return outcome
        if outcome.entry is not None:
            AuditService.record(db, ctx, outcome.entry)
        return outcome.value

    return wrapper


class AuditService:
    """Records and queries permission audit entries."""

    @staticmethod
    def record(db: Session, ctx: AuditContext, entry: AuditEntry) -> Optional[PermissionAuditLog]:
        """Write one audit row. Returns ``None`` when the write failed."""
        try:
            row = PermissionAuditLog(
                user_id=ctx.actor_id,
                action=entry.action,
                resource_type=entry.resource_type,
                resource_id=entry.resource_id or 0,
                before_data=_serialize(entry.before),
                after_data=_serialize(entry.after),
                description=(entry.description or "")[:1000],
                ip_address=ctx.ip_address,
                user_agent=ctx.user_agent,
            )
            db.add(row)
            db.commit()
            return row
        except Exception:
            logger.exception(
                "Failed to write audit entry %s %s#%s",
                entry.action, entry.resource_type, entry.resource_id,
            )
            db.rollback()
            return None

    @staticmethod
    def query_logs(
        db: Session,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        user_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        """Query audit logs with filters and pagination, plus per-action stats."""
        query = db.query(PermissionAuditLog)

        if action:
            try:
                query = query.filter(PermissionAuditLog.action == AuditAction(action))
            except ValueError:
                raise ValidationError(
                    f"Invalid audit action '{action}'",
                    details={"allowed": [a.value for a in AuditAction]},
                )
        if resource_type:
            query = query.filter(PermissionAuditLog.resource_type == resource_type)
        if user_id is not None:
            query = query.filter(PermissionAuditLog.user_id == user_id)
        if start_date:
            query = query.filter(PermissionAuditLog.created_at >= to_naive_utc(start_date))
        if end_date:
            query = query.filter(PermissionAuditLog.created_at <= to_naive_utc(end_date))
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                PermissionAuditLog.description.ilike(pattern),
                PermissionAuditLog.ip_address.ilike(pattern),
            ))

        total = query.count()
        logs = (
            query.order_by(PermissionAuditLog.created_at.desc(), PermissionAuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return {
            "data": [log.to_dict() for log in logs],
            "pagination": {
                "total": total,
                "page": page,
                "pageSize": page_size,
                "totalPages": math.ceil(total / page_size) if page_size else 0,
            },
            "stats": AuditService.action_stats(db),
        }

    @staticmethod
    def action_stats(db: Session, window_days: Optional[int] = None) -> dict:
        """Count entries per action over the recent stats window."""
        days = window_days if window_days is not None else settings.AUDIT_STATS_WINDOW_DAYS
        since = utcnow() - timedelta(days=days)
        rows = (
            db.query(PermissionAuditLog.action, func.count(PermissionAuditLog.id))
            .filter(PermissionAuditLog.created_at >= since)
            .group_by(PermissionAuditLog.action)
            .all()
        )
        return {action.value: count for action, count in rows}

    @staticmethod
    @audited
    def cleanup(
        db: Session,
        ctx: AuditContext,
        before_date: Optional[datetime] = None,
        keep_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Audited:
        """Delete entries older than the cutoff.

        An explicit ``before_date`` wins over ``keep_days``; with neither the
        configured retention window applies. Nothing to delete is a successful
        no-op and writes no CLEANUP entry.
        """
        now = to_naive_utc(now) or utcnow()
        if before_date is not None:
            cutoff = to_naive_utc(before_date)
        elif keep_days is not None:
            cutoff = now - timedelta(days=keep_days)
        else:
            cutoff = now - timedelta(days=settings.AUDIT_RETENTION_DAYS)

        stale = db.query(PermissionAuditLog).filter(PermissionAuditLog.created_at < cutoff)
        if stale.count() == 0:
            return Audited(CleanupResult(0, "no logs needed cleanup", cutoff))

        try:
            deleted = stale.delete()
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Audit cleanup failed")
            raise InternalError("Failed to clean up audit logs") from exc

        logger.info("Purged %d audit entries older than %s", deleted, cutoff.isoformat())
        entry = AuditEntry(
            action=AuditAction.CLEANUP,
            resource_type="audit_log",
            resource_id=0,
            after={"deletedCount": deleted, "cutoff": cutoff.isoformat()},
            description=f"Cleaned up audit logs: deleted {deleted} records created before {cutoff.isoformat()}",
        )
        return Audited(CleanupResult(deleted, f"cleaned up {deleted} audit logs", cutoff), entry)


audit_service = AuditService()
