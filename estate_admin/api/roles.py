"""Role admin API router."""

from typing import Optional, List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from estate_admin.core.security import require_route_roles
from estate_admin.db.session import get_db
from estate_admin.schemas.schemas import RoleCreate, RoleUpdate, RoleBatchStatus
from estate_admin.services.audit_service import AuditContext
from estate_admin.services.authorization import Principal
from estate_admin.services.role_service import role_service

router = APIRouter(prefix="/admin/roles", tags=["roles"])


@router.get("")
async def list_roles(
    search: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """List roles with user counts."""
    result = role_service.list_roles(db, search, is_active, page, page_size)
    return {"success": True, **result}


@router.get("/{role_id}")
async def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """Role detail including its menu and button grants."""
    return {"success": True, "data": role_service.get_role(db, role_id)}


@router.post("", status_code=201)
async def create_role(
    body: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    role = role_service.create_role(db, AuditContext.from_request(request, principal), body)
    return {"success": True, "data": role, "message": "Role created"}


@router.put("/batch/status")
async def batch_update_status(
    body: RoleBatchStatus,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """Enable or disable several roles at once."""
    result = role_service.batch_update_status(
        db, AuditContext.from_request(request, principal), body.role_ids, body.is_active,
    )
    return {"success": True, "data": result.to_dict(), "message": f"Updated {result.count} role(s)"}


@router.put("/{role_id}")
async def update_role(
    role_id: int,
    body: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    role = role_service.update_role(db, AuditContext.from_request(request, principal), role_id, body)
    return {"success": True, "data": role, "message": "Role updated"}


@router.delete("/{role_id}")
async def delete_role(
    role_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """Delete a role. System roles and roles still assigned to users are refused."""
    role_service.delete_role(db, AuditContext.from_request(request, principal), role_id)
    return {"success": True, "message": "Role deleted"}


@router.delete("")
async def batch_delete_roles(
    request: Request,
    ids: List[int] = Query(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """Delete several roles; refused ones are reported per id."""
    result = role_service.batch_delete_roles(db, AuditContext.from_request(request, principal), ids)
    return {"success": True, "data": result.to_dict(), "message": f"Deleted {result.count} role(s)"}
