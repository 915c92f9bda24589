"""User permission service: role assignment, activation and project scope."""

import logging
import math
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from estate_admin.core.exceptions import ResourceNotFoundError, ValidationError
from estate_admin.db.session import commit_or_rollback
from estate_admin.models.audit_log import AuditAction
from estate_admin.models.role import Role
from estate_admin.models.user import User
from estate_admin.schemas.schemas import UserPermissionUpdate, UserBatchUpdate
from estate_admin.services.audit_service import AuditContext, AuditEntry, Audited, audited
from estate_admin.services.authorization import get_user_permissions
from estate_admin.services.batch import BatchResult
from estate_admin.services.menu_service import MenuService

logger = logging.getLogger("estate_admin.users")

RESOURCE_TYPE = "user"


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ResourceNotFoundError(f"User {user_id} not found")
    return user


def _ensure_role(db: Session, role_name: str) -> Role:
    role = db.query(Role).filter(Role.name == role_name).first()
    if not role:
        raise ValidationError(f"Role '{role_name}' does not exist")
    return role


def _snapshot(user: User) -> dict:
    return {
        "id": user.id,
        "role": user.role,
        "isActive": user.is_active,
        "projectIds": sorted(user.project_scope),
    }


class UserPermissionService:
    """Assigns roles and project scopes to users."""

    @staticmethod
    def list_users(
        db: Session,
        search: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        query = db.query(User)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                User.username.ilike(pattern),
                User.email.ilike(pattern),
                User.full_name.ilike(pattern),
            ))
        if role:
            query = query.filter(User.role == role)
        if is_active is not None:
            query = query.filter(User.is_active == is_active)

        total = query.count()
        users = (
            query.order_by(User.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {
            "data": [u.to_dict() for u in users],
            "pagination": {
                "total": total,
                "page": page,
                "pageSize": page_size,
                "totalPages": math.ceil(total / page_size) if page_size else 0,
            },
        }

    @staticmethod
    def get_user_detail(db: Session, user_id: int) -> dict:
        """User with role grants and the effective permission identifiers."""
        user = get_user_or_404(db, user_id)
        detail = user.to_dict()
        role = db.query(Role).filter(Role.name == user.role).first()
        detail["roleInfo"] = role.to_dict() if role else None
        detail["menuPermissions"] = [p.to_dict() for p in role.menu_permissions] if role else []
        detail["buttonPermissions"] = [p.to_dict() for p in role.button_permissions] if role else []
        detail["permissions"] = get_user_permissions(db, user.id)
        detail["menus"] = MenuService.menus_for_role(db, user.role) if user.is_active else []
        return detail

    @staticmethod
    @audited
    def update_user(db: Session, ctx: AuditContext, user_id: int, data: UserPermissionUpdate) -> Audited:
        user = get_user_or_404(db, user_id)
        before = _snapshot(user)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        if "role" in changes:
            _ensure_role(db, changes["role"])
        if "email" in changes and changes["email"] != user.email:
            if db.query(User.id).filter(User.email == changes["email"], User.id != user_id).first():
                raise ValidationError(f"Email '{changes['email']}' is already in use")

        project_ids = changes.pop("project_ids", None)
        if project_ids is not None:
            user.project_scope = project_ids
        for key, value in changes.items():
            setattr(user, key, value)

        commit_or_rollback(db, "update user")
        db.refresh(user)

        after = _snapshot(user)
        return Audited(user.to_dict(), AuditEntry(
            action=AuditAction.UPDATE,
            resource_type=RESOURCE_TYPE,
            resource_id=user_id,
            before=before,
            after=after,
            description=f"Updated permissions of user {user.username}",
        ))

    @staticmethod
    @audited
    def batch_update_users(db: Session, ctx: AuditContext, data: UserBatchUpdate) -> Audited:
        """Apply the same role, status or project scope to many users."""
        if data.role is None and data.is_active is None and data.project_ids is None:
            raise ValidationError("Nothing to update: provide role, isActive or projectIds")
        if data.role is not None:
            _ensure_role(db, data.role)

        result = BatchResult()
        before = []
        for user_id in dict.fromkeys(data.user_ids):
            user = db.query(User).filter(User.id == user_id).first()
            if user is None:
                result.fail(user_id, ResourceNotFoundError(f"User {user_id} not found"))
                continue
            before.append(_snapshot(user))
            if data.role is not None:
                user.role = data.role
            if data.is_active is not None:
                user.is_active = data.is_active
            if data.project_ids is not None:
                user.project_scope = data.project_ids
            result.succeeded.append(user_id)

        if not result.succeeded:
            return Audited(result)

        commit_or_rollback(db, "update users")
        after = data.model_dump(by_alias=True, exclude_none=True)
        after["userIds"] = result.succeeded
        return Audited(result, AuditEntry(
            action=AuditAction.BATCH_UPDATE,
            resource_type=RESOURCE_TYPE,
            resource_id=0,
            before=before,
            after=after,
            description=f"Batch updated {result.count} user(s)",
        ))


user_permission_service = UserPermissionService()
