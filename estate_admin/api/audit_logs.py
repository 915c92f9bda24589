"""Permission audit log API router."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from estate_admin.core.security import require_route_roles
from estate_admin.db.session import get_db
from estate_admin.schemas.schemas import AuditCleanupRequest
from estate_admin.services.audit_service import AuditContext, audit_service
from estate_admin.services.authorization import Principal

router = APIRouter(prefix="/admin/permissions/audit-logs", tags=["audit"])


@router.get("")
async def get_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None, alias="resourceType"),
    user_id: Optional[int] = Query(None, alias="userId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200, alias="pageSize"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """Query audit logs with filters, pagination and per-action stats."""
    result = audit_service.query_logs(
        db, action, resource_type, user_id, start_date, end_date, search, page, page_size,
    )
    return {"success": True, **result}


@router.delete("")
async def cleanup_audit_logs(
    request: Request,
    body: Optional[AuditCleanupRequest] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """Purge audit logs older than ``beforeDate`` or ``keepDays`` (default retention)."""
    body = body or AuditCleanupRequest()
    result = audit_service.cleanup(
        db, AuditContext.from_request(request, principal),
        before_date=body.before_date, keep_days=body.keep_days,
    )
    return {"success": True, "data": result.to_dict(), "message": result.message}
