"""Role service: role CRUD, status toggles and guarded deletion."""

import logging
import math
from typing import Optional, List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from estate_admin.core.exceptions import (
    ResourceNotFoundError,
    ResourceConflictError,
    ValidationError,
)
from estate_admin.db.session import commit_or_rollback
from estate_admin.models.audit_log import AuditAction
from estate_admin.models.role import Role
from estate_admin.models.user import User
from estate_admin.schemas.schemas import RoleCreate, RoleUpdate
from estate_admin.services.audit_service import AuditContext, AuditEntry, Audited, audited
from estate_admin.services.batch import BatchResult

logger = logging.getLogger("estate_admin.roles")

RESOURCE_TYPE = "role"


def get_role_or_404(db: Session, role_id: int) -> Role:
    role = db.query(Role).filter(Role.id == role_id).first()
    if not role:
        raise ResourceNotFoundError(f"Role {role_id} not found")
    return role


def _user_count(db: Session, role_name: str) -> int:
    return db.query(User).filter(User.role == role_name).count()


def _check_deletable(db: Session, role: Role) -> None:
    """Raise when ``role`` may not be deleted."""
    if role.is_system:
        raise ValidationError(f"System role '{role.name}' cannot be deleted")
    users = _user_count(db, role.name)
    if users:
        raise ResourceConflictError(
            f"Role '{role.name}' is assigned to {users} user(s)",
            details={"userCount": users},
        )


class RoleService:
    """Role management."""

    @staticmethod
    def list_roles(
        db: Session,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        query = db.query(Role)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Role.name.ilike(pattern),
                Role.display_name.ilike(pattern),
                Role.description.ilike(pattern),
            ))
        if is_active is not None:
            query = query.filter(Role.is_active == is_active)

        total = query.count()
        roles = (
            query.order_by(Role.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        data = []
        for role in roles:
            item = role.to_dict()
            item["userCount"] = _user_count(db, role.name)
            data.append(item)
        return {
            "data": data,
            "pagination": {
                "total": total,
                "page": page,
                "pageSize": page_size,
                "totalPages": math.ceil(total / page_size) if page_size else 0,
            },
        }

    @staticmethod
    def get_role(db: Session, role_id: int) -> dict:
        """Role with its current menu and button grants."""
        role = get_role_or_404(db, role_id)
        detail = role.to_dict()
        detail["userCount"] = _user_count(db, role.name)
        detail["menuPermissions"] = [p.to_dict() for p in role.menu_permissions]
        detail["buttonPermissions"] = [p.to_dict() for p in role.button_permissions]
        return detail

    @staticmethod
    @audited
    def create_role(db: Session, ctx: AuditContext, data: RoleCreate) -> Audited:
        if db.query(Role.id).filter(Role.name == data.name).first():
            raise ValidationError(f"Role name '{data.name}' already exists")

        role = Role(
            name=data.name,
            display_name=data.display_name,
            description=data.description,
            is_active=data.is_active,
        )
        db.add(role)
        commit_or_rollback(db, "create role")
        db.refresh(role)

        after = role.to_dict()
        return Audited(after, AuditEntry(
            action=AuditAction.CREATE,
            resource_type=RESOURCE_TYPE,
            resource_id=role.id,
            after=after,
            description=f"Created role: {role.name}",
        ))

    @staticmethod
    @audited
    def update_role(db: Session, ctx: AuditContext, role_id: int, data: RoleUpdate) -> Audited:
        """Update a role. A rename is carried over to the users holding it."""
        role = get_role_or_404(db, role_id)
        before = role.to_dict()
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        new_name = changes.pop("name", None)
        if new_name is not None and new_name != role.name:
            if role.is_system:
                raise ValidationError(f"System role '{role.name}' cannot be renamed")
            if db.query(Role.id).filter(Role.name == new_name, Role.id != role_id).first():
                raise ValidationError(f"Role name '{new_name}' already exists")
            db.query(User).filter(User.role == role.name).update(
                {User.role: new_name}, synchronize_session=False,
            )
            role.name = new_name

        for key, value in changes.items():
            setattr(role, key, value)

        commit_or_rollback(db, "update role")
        db.refresh(role)

        after = role.to_dict()
        return Audited(after, AuditEntry(
            action=AuditAction.UPDATE,
            resource_type=RESOURCE_TYPE,
            resource_id=role_id,
            before=before,
            after=after,
            description=f"Updated role: {role.name}",
        ))

    @staticmethod
    @audited
    def delete_role(db: Session, ctx: AuditContext, role_id: int) -> Audited:
        role = get_role_or_404(db, role_id)
        _check_deletable(db, role)

        before = role.to_dict()
        db.delete(role)
        commit_or_rollback(db, "delete role")

        return Audited(None, AuditEntry(
            action=AuditAction.DELETE,
            resource_type=RESOURCE_TYPE,
            resource_id=role_id,
            before=before,
            description=f"Deleted role: {before['name']}",
        ))

    @staticmethod
    @audited
    def batch_update_status(db: Session, ctx: AuditContext, role_ids: List[int], is_active: bool) -> Audited:
        result = BatchResult()
        before = []
        for role_id in dict.fromkeys(role_ids):
            role = db.query(Role).filter(Role.id == role_id).first()
            if role is None:
                result.fail(role_id, ResourceNotFoundError(f"Role {role_id} not found"))
                continue
            before.append({"id": role.id, "name": role.name, "isActive": role.is_active})
            role.is_active = is_active
            result.succeeded.append(role_id)

        if not result.succeeded:
            return Audited(result)

        commit_or_rollback(db, "update role status")
        state = "enabled" if is_active else "disabled"
        return Audited(result, AuditEntry(
            action=AuditAction.BATCH_UPDATE,
            resource_type=RESOURCE_TYPE,
            resource_id=0,
            before=before,
            after={"roleIds": result.succeeded, "isActive": is_active},
            description=f"Batch {state} {result.count} role(s)",
        ))

    @staticmethod
    @audited
    def batch_delete_roles(db: Session, ctx: AuditContext, role_ids: List[int]) -> Audited:
        """Delete each role that passes the guards; the rest are reported."""
        result = BatchResult()
        deleted = []
        for role_id in dict.fromkeys(role_ids):
            role = db.query(Role).filter(Role.id == role_id).first()
            if role is None:
                result.fail(role_id, ResourceNotFoundError(f"Role {role_id} not found"))
                continue
            try:
                _check_deletable(db, role)
            except (ValidationError, ResourceConflictError) as exc:
                result.fail(role_id, exc)
                continue
            deleted.append(role.to_dict())
            db.delete(role)
            result.succeeded.append(role_id)

        if not deleted:
            return Audited(result)

        commit_or_rollback(db, "delete roles")
        return Audited(result, AuditEntry(
            action=AuditAction.BATCH_DELETE,
            resource_type=RESOURCE_TYPE,
            resource_id=0,
            before=deleted,
            description="Batch deleted roles: " + ", ".join(r["name"] for r in deleted),
        ))


role_service = RoleService()
