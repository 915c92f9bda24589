"""Button service: fine-grained operation permissions owned by menus."""

import logging
import math
from typing import Optional, List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from estate_admin.core.exceptions import ResourceNotFoundError, ValidationError
from estate_admin.db.session import commit_or_rollback
from estate_admin.models.audit_log import AuditAction
from estate_admin.models.button import Button, ButtonState, ButtonOrigin
from estate_admin.models.menu import Menu
from estate_admin.schemas.schemas import ButtonCreate, ButtonUpdate
from estate_admin.services.audit_service import AuditContext, AuditEntry, Audited, audited
from estate_admin.services.batch import BatchResult

logger = logging.getLogger("estate_admin.buttons")

RESOURCE_TYPE = "button"


def get_button_or_404(db: Session, button_id: int) -> Button:
    button = db.query(Button).filter(Button.id == button_id).first()
    if not button:
        raise ResourceNotFoundError(f"Button {button_id} not found")
    return button


def _ensure_menu(db: Session, menu_id: int) -> None:
    if not db.query(Menu.id).filter(Menu.id == menu_id).first():
        raise ValidationError(f"Menu {menu_id} does not exist")


def _ensure_unique(db: Session, menu_id: int, identifier: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Button.id).filter(Button.menu_id == menu_id, Button.identifier == identifier)
    if exclude_id is not None:
        query = query.filter(Button.id != exclude_id)
    if query.first():
        raise ValidationError(f"Identifier '{identifier}' already exists under menu {menu_id}")


class ButtonService:
    """Button management."""

    @staticmethod
    def list_buttons(
        db: Session,
        menu_id: Optional[int] = None,
        search: Optional[str] = None,
        state: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> dict:
        query = db.query(Button)
        if menu_id is not None:
            query = query.filter(Button.menu_id == menu_id)
        if state:
            try:
                query = query.filter(Button.state == ButtonState(state))
            except ValueError:
                raise ValidationError(
                    f"Invalid button state '{state}'",
                    details={"allowed": [s.value for s in ButtonState]},
                )
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Button.name.ilike(pattern),
                Button.identifier.ilike(pattern),
                Button.description.ilike(pattern),
            ))

        total = query.count()
        buttons = (
            query.order_by(Button.menu_id.asc(), Button.id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {
            "data": [b.to_dict() for b in buttons],
            "pagination": {
                "total": total,
                "page": page,
                "pageSize": page_size,
                "totalPages": math.ceil(total / page_size) if page_size else 0,
            },
        }

    @staticmethod
    def get_button(db: Session, button_id: int) -> dict:
        button = get_button_or_404(db, button_id)
        detail = button.to_dict()
        detail["menu"] = button.menu.to_dict() if button.menu else None
        detail["rolePermissions"] = [
            dict(p.to_dict(), roleId=p.role_id) for p in button.role_permissions
        ]
        return detail

    @staticmethod
    @audited
    def create_button(db: Session, ctx: AuditContext, data: ButtonCreate) -> Audited:
        _ensure_menu(db, data.menu_id)
        _ensure_unique(db, data.menu_id, data.identifier)

        button = Button(
            name=data.name,
            identifier=data.identifier,
            menu_id=data.menu_id,
            state=ButtonState.active if data.is_active else ButtonState.inactive,
            origin=ButtonOrigin.manual,
            description=data.description,
        )
        db.add(button)
        commit_or_rollback(db, "create button")
        db.refresh(button)

        after = button.to_dict()
        return Audited(after, AuditEntry(
            action=AuditAction.CREATE,
            resource_type=RESOURCE_TYPE,
            resource_id=button.id,
            after=after,
            description=f"Created button: {button.identifier}",
        ))

    @staticmethod
    @audited
    def update_button(db: Session, ctx: AuditContext, button_id: int, data: ButtonUpdate) -> Audited:
        button = get_button_or_404(db, button_id)
        before = button.to_dict()
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        menu_id = changes.get("menu_id", button.menu_id)
        identifier = changes.get("identifier", button.identifier)
        if "menu_id" in changes:
            _ensure_menu(db, menu_id)
        if menu_id != button.menu_id or identifier != button.identifier:
            _ensure_unique(db, menu_id, identifier, exclude_id=button_id)

        for key, value in changes.items():
            setattr(button, key, value)

        commit_or_rollback(db, "update button")
        db.refresh(button)

        after = button.to_dict()
        return Audited(after, AuditEntry(
            action=AuditAction.UPDATE,
            resource_type=RESOURCE_TYPE,
            resource_id=button_id,
            before=before,
            after=after,
            description=f"Updated button: {button.identifier}",
        ))

    @staticmethod
    @audited
    def delete_button(db: Session, ctx: AuditContext, button_id: int) -> Audited:
        button = get_button_or_404(db, button_id)
        before = button.to_dict()
        db.delete(button)
        commit_or_rollback(db, "delete button")

        return Audited(None, AuditEntry(
            action=AuditAction.DELETE,
            resource_type=RESOURCE_TYPE,
            resource_id=button_id,
            before=before,
            description=f"Deleted button: {before['identifier']}",
        ))

    @staticmethod
    @audited
    def batch_delete_buttons(db: Session, ctx: AuditContext, button_ids: List[int]) -> Audited:
        result = BatchResult()
        deleted = []
        for button_id in dict.fromkeys(button_ids):
            button = db.query(Button).filter(Button.id == button_id).first()
            if button is None:
                result.fail(button_id, ResourceNotFoundError(f"Button {button_id} not found"))
                continue
            deleted.append(button.to_dict())
            db.delete(button)
            result.succeeded.append(button_id)

        if not deleted:
            return Audited(result)

        commit_or_rollback(db, "delete buttons")
        return Audited(result, AuditEntry(
            action=AuditAction.BATCH_DELETE,
            resource_type=RESOURCE_TYPE,
            resource_id=0,
            before=deleted,
            description="Batch deleted buttons: " + ", ".join(b["identifier"] for b in deleted),
        ))


button_service = ButtonService()
