"""Button admin API router."""

from typing import Optional, List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from estate_admin.core.security import require_route_roles
from estate_admin.db.session import get_db
from estate_admin.schemas.schemas import ButtonCreate, ButtonUpdate, ButtonGrantReplace
from estate_admin.services.audit_service import AuditContext
from estate_admin.services.authorization import Principal
from estate_admin.services.button_service import button_service
from estate_admin.services.grant_service import grant_service

router = APIRouter(prefix="/admin/permissions/buttons", tags=["buttons"])


@router.get("")
async def list_buttons(
    menu_id: Optional[int] = Query(None, alias="menuId"),
    search: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500, alias="pageSize"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """List buttons, optionally for one menu or lifecycle state."""
    result = button_service.list_buttons(db, menu_id, search, state, page, page_size)
    return {"success": True, **result}


@router.get("/{button_id}")
async def get_button(
    button_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    return {"success": True, "data": button_service.get_button(db, button_id)}


@router.post("", status_code=201)
async def create_button(
    body: ButtonCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    button = button_service.create_button(db, AuditContext.from_request(request, principal), body)
    return {"success": True, "data": button, "message": "Button created"}


@router.put("")
async def replace_button_grants(
    body: ButtonGrantReplace,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """Replace the full button grant set of a role."""
    grants = grant_service.replace_button_grants(
        db, AuditContext.from_request(request, principal), body.role_id, body.button_permissions,
    )
    return {"success": True, "data": grants, "message": "Button permissions updated"}


@router.put("/{button_id}")
async def update_button(
    button_id: int,
    body: ButtonUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    button = button_service.update_button(
        db, AuditContext.from_request(request, principal), button_id, body,
    )
    return {"success": True, "data": button, "message": "Button updated"}


@router.delete("/{button_id}")
async def delete_button(
    button_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    button_service.delete_button(db, AuditContext.from_request(request, principal), button_id)
    return {"success": True, "message": "Button deleted"}


@router.delete("")
async def batch_delete_buttons(
    request: Request,
    ids: List[int] = Query(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    result = button_service.batch_delete_buttons(db, AuditContext.from_request(request, principal), ids)
    return {"success": True, "data": result.to_dict(), "message": f"Deleted {result.count} button(s)"}
