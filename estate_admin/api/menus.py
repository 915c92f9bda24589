"""Menu admin API router.

``PUT`` on the collection replaces a role's complete menu grant set.
"""

from typing import Optional, List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from estate_admin.core.security import require_route_roles
from estate_admin.db.session import get_db
from estate_admin.schemas.schemas import MenuCreate, MenuUpdate, MenuGrantReplace
from estate_admin.services.audit_service import AuditContext
from estate_admin.services.authorization import Principal
from estate_admin.services.grant_service import grant_service
from estate_admin.services.menu_service import menu_service

router = APIRouter(prefix="/admin/permissions/menus", tags=["menus"])


@router.get("")
async def list_menus(
    search: Optional[str] = Query(None),
    tree: bool = Query(False),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """List menus, flat or nested."""
    return {"success": True, **menu_service.list_menus(db, search, tree)}


@router.get("/{menu_id}")
async def get_menu(
    menu_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    return {"success": True, "data": menu_service.get_menu(db, menu_id)}


@router.post("", status_code=201)
async def create_menu(
    body: MenuCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    menu = menu_service.create_menu(db, AuditContext.from_request(request, principal), body)
    return {"success": True, "data": menu, "message": "Menu created"}


@router.put("")
async def replace_menu_grants(
    body: MenuGrantReplace,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """Replace the full menu grant set of a role."""
    grants = grant_service.replace_menu_grants(
        db, AuditContext.from_request(request, principal), body.role_id, body.menu_permissions,
    )
    return {"success": True, "data": grants, "message": "Menu permissions updated"}


@router.put("/{menu_id}")
async def update_menu(
    menu_id: int,
    body: MenuUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """Update a menu; moving it under its own subtree is rejected."""
    menu = menu_service.update_menu(db, AuditContext.from_request(request, principal), menu_id, body)
    return {"success": True, "data": menu, "message": "Menu updated"}


@router.delete("/{menu_id}")
async def delete_menu(
    menu_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    menu_service.delete_menu(db, AuditContext.from_request(request, principal), menu_id)
    return {"success": True, "message": "Menu deleted"}


@router.delete("")
async def batch_delete_menus(
    request: Request,
    ids: List[int] = Query(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    result = menu_service.batch_delete_menus(db, AuditContext.from_request(request, principal), ids)
    return {"success": True, "data": result.to_dict(), "message": f"Deleted {result.count} menu(s)"}
