"""Batch grant replacement for a role's menu and button permissions.

A role's grant set is never patched: every edit deletes all of the role's
rows and inserts the submitted list in one transaction, so the stored set
always equals the caller's input. The role row is locked for the duration,
which serializes concurrent replacements of the same role.
"""

import logging
from collections import Counter
from typing import List, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from estate_admin.core.exceptions import (
    EstateAdminError,
    InternalError,
    ResourceNotFoundError,
    ValidationError,
)
from estate_admin.models.audit_log import AuditAction
from estate_admin.models.button import Button
from estate_admin.models.grants import RoleMenuPermission, RoleButtonPermission
from estate_admin.models.menu import Menu
from estate_admin.models.role import Role
from estate_admin.schemas.schemas import MenuGrant, ButtonGrant
from estate_admin.services.audit_service import AuditContext, AuditEntry, Audited, audited

logger = logging.getLogger("estate_admin.grants")


def _lock_role(db: Session, role_id: int) -> Role:
    role = db.query(Role).filter(Role.id == role_id).with_for_update().first()
    if not role:
        db.rollback()
        raise ResourceNotFoundError(f"Role {role_id} not found")
    return role


def _validate_targets(db: Session, model, ids: Sequence[int], label: str) -> None:
    """Every referenced id must exist and appear once."""
    duplicates = sorted(i for i, n in Counter(ids).items() if n > 1)
    if duplicates:
        db.rollback()
        raise ValidationError(f"Duplicate {label} ids in request", details={"ids": duplicates})
    if not ids:
        return
    found = {row[0] for row in db.query(model.id).filter(model.id.in_(set(ids))).all()}
    missing = sorted(set(ids) - found)
    if missing:
        db.rollback()
        raise ValidationError(f"Unknown {label} ids", details={"ids": missing})


def _delete_menu_grants(db: Session, role_id: int) -> None:
    db.query(RoleMenuPermission).filter(
        RoleMenuPermission.role_id == role_id
    ).delete()


def _insert_menu_grants(db: Session, role_id: int, grants: List[MenuGrant]) -> None:
    db.add_all([
        RoleMenuPermission(
            role_id=role_id,
            menu_id=g.menu_id,
            can_view=g.can_view,
            can_create=g.can_create,
            can_update=g.can_update,
            can_delete=g.can_delete,
        )
        for g in grants
    ])
    db.flush()


def _delete_button_grants(db: Session, role_id: int) -> None:
    db.query(RoleButtonPermission).filter(
        RoleButtonPermission.role_id == role_id
    ).delete()


def _insert_button_grants(db: Session, role_id: int, grants: List[ButtonGrant]) -> None:
    db.add_all([
        RoleButtonPermission(role_id=role_id, button_id=g.button_id, can_operate=g.can_operate)
        for g in grants
    ])
    db.flush()


def _replace(db: Session, operation: str, delete_fn, insert_fn, role_id: int, grants) -> None:
    """Run delete then insert and commit; any failure leaves the old set intact."""
    try:
        delete_fn(db, role_id)
        if grants:
            insert_fn(db, role_id, grants)
        db.commit()
    except EstateAdminError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Grant replacement failed: %s for role %s", operation, role_id)
        raise InternalError(f"Failed to {operation}") from exc


class GrantService:
    """Replaces a role's full menu or button grant set."""

    @staticmethod
    @audited
    def replace_menu_grants(db: Session, ctx: AuditContext, role_id: int, grants: List[MenuGrant]) -> Audited:
        role = _lock_role(db, role_id)
        _validate_targets(db, Menu, [g.menu_id for g in grants], "menu")

        before = [p.to_dict() for p in role.menu_permissions]
        after = [g.model_dump(by_alias=True) for g in grants]

        _replace(db, "replace menu permissions", _delete_menu_grants, _insert_menu_grants, role_id, grants)
        db.expire(role)
        logger.info("Replaced menu grants of role %s: %d -> %d rows", role_id, len(before), len(after))

        return Audited(after, AuditEntry(
            action=AuditAction.UPDATE,
            resource_type="menu_permission",
            resource_id=role_id,
            before=before,
            after=after,
            description=f"Replaced menu permissions of role {role.name}: {len(after)} grant(s)",
        ))

    @staticmethod
    @audited
    def replace_button_grants(db: Session, ctx: AuditContext, role_id: int, grants: List[ButtonGrant]) -> Audited:
        role = _lock_role(db, role_id)
        _validate_targets(db, Button, [g.button_id for g in grants], "button")

        before = [p.to_dict() for p in role.button_permissions]
        after = [g.model_dump(by_alias=True) for g in grants]

        _replace(db, "replace button permissions", _delete_button_grants, _insert_button_grants, role_id, grants)
        db.expire(role)
        logger.info("Replaced button grants of role %s: %d -> %d rows", role_id, len(before), len(after))

        return Audited(after, AuditEntry(
            action=AuditAction.UPDATE,
            resource_type="button_permission",
            resource_id=role_id,
            before=before,
            after=after,
            description=f"Replaced button permissions of role {role.name}: {len(after)} grant(s)",
        ))


grant_service = GrantService()
