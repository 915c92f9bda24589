"""Permission scan preview router.

Read-only: syncing into the store happens out-of-band through the CLI or
the startup flag.
"""

from fastapi import APIRouter, Depends, Request

from estate_admin.core.security import require_route_roles
from estate_admin.services.authorization import Principal
from estate_admin.services.route_registry import RouteRegistry
from estate_admin.services.scanner_service import scanner_service

router = APIRouter(prefix="/admin/permissions/scan", tags=["scan"])


@router.get("")
async def preview_scan(
    request: Request,
    principal: Principal = Depends(require_route_roles),
):
    """Permission records the scanner would derive from the current routes."""
    records = scanner_service.preview(RouteRegistry.from_app(request.app))
    return {
        "success": True,
        "data": [r.to_dict() for r in records],
        "total": len(records),
    }
