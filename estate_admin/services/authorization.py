"""Authorization gate: request-time allow/deny decisions.

Every decision reads the current user, role and grant rows from the store.
Nothing is cached between calls, so a grant change is visible to the very
next request.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional, Iterable, List, Dict, FrozenSet

from sqlalchemy.orm import Session

from estate_admin.core.config import settings
from estate_admin.core.exceptions import (
    EstateAdminError,
    UnauthenticatedError,
    AccountDisabledError,
    InsufficientRoleError,
    InsufficientPermissionError,
)
from estate_admin.core.roles import SUPER_ADMIN_ROLE, ALL_PROJECTS_ROLES, lookup_allowed_roles
from estate_admin.models.user import User
from estate_admin.models.role import Role
from estate_admin.models.button import Button
from estate_admin.models.grants import RoleButtonPermission

logger = logging.getLogger("estate_admin.authz")


@dataclass(frozen=True)
class Principal:
    """The authenticated actor of a request."""
    id: int
    username: str
    email: str
    role: str
    is_active: bool
    project_ids: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN_ROLE

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            is_active=bool(user.is_active),
            project_ids=frozenset(user.project_scope),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "isActive": self.is_active,
            "projectIds": sorted(self.project_ids),
        }


class DenyReason(str, enum.Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    INSUFFICIENT_PERMISSION = "INSUFFICIENT_PERMISSION"


_DENY_ERRORS = {
    DenyReason.UNAUTHENTICATED: (UnauthenticatedError, "Not authenticated, please log in"),
    DenyReason.ACCOUNT_DISABLED: (AccountDisabledError, "Account has been disabled"),
    DenyReason.INSUFFICIENT_ROLE: (InsufficientRoleError, "Role not permitted for this resource"),
    DenyReason.INSUFFICIENT_PERMISSION: (InsufficientPermissionError, "Missing required operation permission"),
}


@dataclass
class AuthDecision:
    allow: bool
    principal: Optional[Principal] = None
    reason: Optional[DenyReason] = None
    required_permission: Optional[str] = None

    @classmethod
    def allowed(cls, principal: Principal) -> "AuthDecision":
        return cls(allow=True, principal=principal)

    @classmethod
    def denied(cls, reason: DenyReason, principal: Optional[Principal] = None, **kwargs) -> "AuthDecision":
        return cls(allow=False, principal=principal, reason=reason, **kwargs)

    def to_error(self) -> EstateAdminError:
        error_cls, message = _DENY_ERRORS[self.reason]
        details = {"requiredPermission": self.required_permission} if self.required_permission else None
        return error_cls(message, details=details)

    def raise_for_deny(self) -> Principal:
        """Return the principal on allow, raise the mapped error on deny."""
        if not self.allow:
            raise self.to_error()
        return self.principal

    def to_dict(self) -> dict:
        result = {
            "allow": self.allow,
            "principal": self.principal.to_dict() if self.principal else None,
        }
        if self.reason is not None:
            result["reason"] = self.reason.value
        return result


def authorize(
    principal: Optional[Principal],
    required_roles: Optional[Iterable[str]] = None,
    method: Optional[str] = None,
    path: Optional[str] = None,
) -> AuthDecision:
    """Coarse role check.

    Order matters: a missing or disabled principal is denied before the
    super-admin bypass, so a disabled super admin is still refused.
    When ``required_roles`` is empty the static role table is consulted for
    ``(path, method)``.
    """
    if principal is None:
        return AuthDecision.denied(DenyReason.UNAUTHENTICATED)
    if not principal.is_active:
        return AuthDecision.denied(DenyReason.ACCOUNT_DISABLED, principal)
    if principal.is_super_admin:
        return AuthDecision.allowed(principal)

    roles = set(required_roles or ())
    if roles:
        if principal.role in roles:
            return AuthDecision.allowed(principal)
        return AuthDecision.denied(DenyReason.INSUFFICIENT_ROLE, principal)

    allowed = lookup_allowed_roles(path or "", method or "GET")
    if allowed is None:
        if settings.AUTHZ_ALLOW_UNDECLARED_ROUTES:
            return AuthDecision.allowed(principal)
        logger.warning("Denied undeclared route %s %s for user %s", method, path, principal.id)
        return AuthDecision.denied(DenyReason.INSUFFICIENT_ROLE, principal)
    if principal.role in allowed:
        return AuthDecision.allowed(principal)
    return AuthDecision.denied(DenyReason.INSUFFICIENT_ROLE, principal)


def _active_role(db: Session, role_name: str) -> Optional[Role]:
    return (
        db.query(Role)
        .filter(Role.name == role_name, Role.is_active == True)  # noqa: E712
        .first()
    )


def has_button_permission(db: Session, user_id: int, identifier: str) -> bool:
    """Fine-grained check: does the user's role operate ``identifier``?

    Only active users, active roles and active buttons count. When the same
    identifier is registered under several menus, a grant on any of them
    suffices.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        return False
    if user.role == SUPER_ADMIN_ROLE:
        return True

    role = _active_role(db, user.role)
    if not role:
        return False

    grant = (
        db.query(RoleButtonPermission)
        .join(Button, Button.id == RoleButtonPermission.button_id)
        .filter(
            RoleButtonPermission.role_id == role.id,
            RoleButtonPermission.can_operate == True,  # noqa: E712
            Button.identifier == identifier,
            Button.is_active == True,  # noqa: E712
        )
        .first()
    )
    return grant is not None


def authorize_operation(
    db: Session,
    principal: Optional[Principal],
    identifier: str,
) -> AuthDecision:
    """Principal checks followed by the button-permission check."""
    if principal is None:
        return AuthDecision.denied(DenyReason.UNAUTHENTICATED)
    if not principal.is_active:
        return AuthDecision.denied(DenyReason.ACCOUNT_DISABLED, principal)
    if principal.is_super_admin or has_button_permission(db, principal.id, identifier):
        return AuthDecision.allowed(principal)
    return AuthDecision.denied(
        DenyReason.INSUFFICIENT_PERMISSION, principal, required_permission=identifier,
    )


def check_multiple_permissions(db: Session, user_id: int, identifiers: Iterable[str]) -> Dict[str, bool]:
    """Map each identifier to the result of :func:`has_button_permission`."""
    return {identifier: has_button_permission(db, user_id, identifier) for identifier in identifiers}


def get_user_permissions(db: Session, user_id: int) -> List[str]:
    """All active button identifiers the user may operate, sorted."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        return []

    if user.role == SUPER_ADMIN_ROLE:
        rows = db.query(Button.identifier).filter(Button.is_active == True).distinct().all()  # noqa: E712
        return sorted(r[0] for r in rows)

    role = _active_role(db, user.role)
    if not role:
        return []

    rows = (
        db.query(Button.identifier)
        .join(RoleButtonPermission, RoleButtonPermission.button_id == Button.id)
        .filter(
            RoleButtonPermission.role_id == role.id,
            RoleButtonPermission.can_operate == True,  # noqa: E712
            Button.is_active == True,  # noqa: E712
        )
        .distinct()
        .all()
    )
    return sorted(r[0] for r in rows)


def check_project_access(db: Session, user_id: int, project_id) -> bool:
    """Tenant scope check: may the user see ``project_id``?"""
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        return False
    if user.role in ALL_PROJECTS_ROLES:
        return True
    scope = user.project_scope
    return "*" in scope or str(project_id) in scope
