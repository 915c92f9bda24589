"""JWT authentication and RBAC authorization dependencies."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from estate_admin.core.config import settings
from estate_admin.core.roles import SUPER_ADMIN_ROLE
from estate_admin.db.session import get_db
from estate_admin.models.user import User
from estate_admin.services.authorization import (
    Principal,
    authorize,
    authorize_operation,
)
from estate_admin.services.identifier import generate_identifier

logger = logging.getLogger("estate_admin.security")

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Check a login password; accounts without a stored hash never match."""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def create_access_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign an access token. ``claims["sub"]`` must be the user id as a string."""
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    payload = {**claims, "iat": issued_at, "exp": issued_at + lifetime, "type": "access"}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token; ``None`` when invalid or expired."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def current_principal(token: Optional[str], db: Session) -> Optional[Principal]:
    """Resolve the bearer token to a principal, re-reading the user row.

    The token only carries the user id; role and active flag always come
    from the store.
    """
    if not token:
        return None
    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        return None
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        return None
    return Principal.from_user(user)


async def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
) -> Optional[Principal]:
    """Principal of the request, or ``None`` when not logged in."""
    token = credentials.credentials if credentials else None
    return current_principal(token, db)


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class RequireRoles:
    """Dependency running the coarse role check.

    With no roles given, the static route table is consulted for the
    request's path and method.
    """

    def __init__(self, *roles: str):
        self.roles = frozenset(roles)

    async def __call__(
        self,
        request: Request,
        principal: Optional[Principal] = Depends(get_optional_principal),
    ) -> Principal:
        decision = authorize(
            principal,
            self.roles,
            method=request.method,
            path=request.url.path,
        )
        if not decision.allow:
            logger.info(
                "Denied %s %s: %s", request.method, request.url.path, decision.reason.value,
            )
        return decision.raise_for_deny()


class RequirePermission:
    """Dependency running the fine-grained button-permission check.

    Without an explicit identifier, one is derived from the matched route
    template and method, the same way the permission scanner derives it.
    """

    def __init__(self, identifier: Optional[str] = None):
        self.identifier = identifier

    async def __call__(
        self,
        request: Request,
        principal: Optional[Principal] = Depends(get_optional_principal),
        db: Session = Depends(get_db),
    ) -> Principal:
        identifier = self.identifier or generate_identifier(
            request.method, _route_template(request),
        )
        return authorize_operation(db, principal, identifier).raise_for_deny()


# Convenience dependency factories
require_route_roles = RequireRoles()
require_super_admin = RequireRoles(SUPER_ADMIN_ROLE)
