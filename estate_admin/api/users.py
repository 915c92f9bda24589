"""User permission admin API router."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from estate_admin.core.security import require_route_roles
from estate_admin.db.session import get_db
from estate_admin.schemas.schemas import UserPermissionUpdate, UserBatchUpdate
from estate_admin.services.audit_service import AuditContext
from estate_admin.services.authorization import Principal
from estate_admin.services.user_permission_service import user_permission_service

router = APIRouter(prefix="/admin/permissions/users", tags=["user-permissions"])


@router.get("")
async def list_users(
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    result = user_permission_service.list_users(db, search, role, is_active, page, page_size)
    return {"success": True, **result}


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """User detail with role grants and effective permissions."""
    return {"success": True, "data": user_permission_service.get_user_detail(db, user_id)}


@router.put("")
async def batch_update_users(
    body: UserBatchUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """Apply one role, status or project scope to several users."""
    result = user_permission_service.batch_update_users(
        db, AuditContext.from_request(request, principal), body,
    )
    return {"success": True, "data": result.to_dict(), "message": f"Updated {result.count} user(s)"}


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    body: UserPermissionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    user = user_permission_service.update_user(
        db, AuditContext.from_request(request, principal), user_id, body,
    )
    return {"success": True, "data": user, "message": "User updated"}
