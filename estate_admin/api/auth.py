"""Auth API router: login, me, permissions."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from estate_admin.core.security import require_route_roles
from estate_admin.db.session import get_db
from estate_admin.schemas.schemas import LoginRequest, TokenResponse
from estate_admin.services.auth_service import auth_service
from estate_admin.services.authorization import Principal

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate and return a JWT access token."""
    return auth_service.authenticate(db, body.username, body.password)


@router.get("/me")
async def me(principal: Principal = Depends(require_route_roles)):
    """Get the current principal."""
    return {"success": True, "data": principal.to_dict()}


@router.get("/permissions")
async def my_permissions(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_route_roles),
):
    """Effective button identifiers and menu tree of the current user."""
    return {"success": True, "data": auth_service.permission_view(db, principal)}
