"""Menu service: menu tree CRUD with cycle-safe parent reassignment."""

import logging
from typing import Optional, List, Iterable

from sqlalchemy import or_
from sqlalchemy.orm import Session

from estate_admin.core.exceptions import ResourceNotFoundError, ValidationError
from estate_admin.core.roles import SUPER_ADMIN_ROLE
from estate_admin.db.session import commit_or_rollback
from estate_admin.models.audit_log import AuditAction
from estate_admin.models.grants import RoleMenuPermission
from estate_admin.models.menu import Menu
from estate_admin.models.role import Role
from estate_admin.schemas.schemas import MenuCreate, MenuUpdate
from estate_admin.services.audit_service import AuditContext, AuditEntry, Audited, audited
from estate_admin.services.batch import BatchResult

logger = logging.getLogger("estate_admin.menus")

RESOURCE_TYPE = "menu"


def would_create_cycle(db: Session, menu_id: int, proposed_parent_id: Optional[int]) -> bool:
    """True if making ``proposed_parent_id`` the parent of ``menu_id`` forms a cycle.

    Walks the proposed parent's ancestor chain. Meeting ``menu_id`` (or a
    node seen twice, which means the stored tree is already corrupt) is a
    cycle; reaching a root is not.
    """
    if proposed_parent_id is None:
        return False
    seen = set()
    current = proposed_parent_id
    while current is not None:
        if current == menu_id or current in seen:
            return True
        seen.add(current)
        row = db.query(Menu.parent_id).filter(Menu.id == current).first()
        if row is None:
            return False
        current = row[0]
    return False


def get_menu_or_404(db: Session, menu_id: int) -> Menu:
    menu = db.query(Menu).filter(Menu.id == menu_id).first()
    if not menu:
        raise ResourceNotFoundError(f"Menu {menu_id} not found")
    return menu


def build_menu_tree(menus: Iterable[Menu]) -> List[dict]:
    """Nest a flat menu list by ``parent_id``; orphans are promoted to roots."""
    nodes = {}
    for menu in menus:
        node = menu.to_dict()
        node["children"] = []
        nodes[menu.id] = node

    roots = []
    for node in nodes.values():
        parent = nodes.get(node["parentId"])
        if parent is not None:
            parent["children"].append(node)
        else:
            roots.append(node)

    def _sort(items):
        items.sort(key=lambda n: (n["sortOrder"], n["id"]))
        for item in items:
            _sort(item["children"])

    _sort(roots)
    return roots


def _ensure_unique_name(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Menu.id).filter(Menu.name == name)
    if exclude_id is not None:
        query = query.filter(Menu.id != exclude_id)
    if query.first():
        raise ValidationError(f"Menu name '{name}' already exists")


def _ensure_parent_exists(db: Session, parent_id: int) -> None:
    if not db.query(Menu.id).filter(Menu.id == parent_id).first():
        raise ValidationError(f"Parent menu {parent_id} does not exist")


class MenuService:
    """Menu CRUD. Every mutation is audited."""

    @staticmethod
    def list_menus(db: Session, search: Optional[str] = None, tree: bool = False) -> dict:
        query = db.query(Menu)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Menu.name.ilike(pattern),
                Menu.display_name.ilike(pattern),
                Menu.path.ilike(pattern),
            ))
        menus = query.order_by(Menu.parent_id.asc(), Menu.sort_order.asc(), Menu.id.asc()).all()
        if tree:
            return {"data": build_menu_tree(menus), "total": len(menus)}
        return {"data": [m.to_dict() for m in menus], "total": len(menus)}

    @staticmethod
    def get_menu(db: Session, menu_id: int) -> dict:
        menu = get_menu_or_404(db, menu_id)
        detail = menu.to_dict()
        detail["parent"] = menu.parent.to_dict() if menu.parent else None
        detail["children"] = [c.to_dict() for c in menu.children]
        detail["buttons"] = [b.to_dict() for b in menu.buttons]
        detail["rolePermissions"] = [
            dict(p.to_dict(), roleId=p.role_id, roleName=p.role.name if p.role else None)
            for p in menu.role_permissions
        ]
        return detail

    @staticmethod
    @audited
    def create_menu(db: Session, ctx: AuditContext, data: MenuCreate) -> Audited:
        _ensure_unique_name(db, data.name)
        if data.parent_id is not None:
            _ensure_parent_exists(db, data.parent_id)

        menu = Menu(
            name=data.name,
            display_name=data.display_name or data.name,
            path=data.path,
            icon=data.icon,
            parent_id=data.parent_id,
            sort_order=data.sort_order,
            is_visible=data.is_visible,
            description=data.description,
        )
        db.add(menu)
        commit_or_rollback(db, "create menu")
        db.refresh(menu)

        after = menu.to_dict()
        return Audited(after, AuditEntry(
            action=AuditAction.CREATE,
            resource_type=RESOURCE_TYPE,
            resource_id=menu.id,
            after=after,
            description=f"Created menu: {menu.name}",
        ))

    @staticmethod
    @audited
    def update_menu(db: Session, ctx: AuditContext, menu_id: int, data: MenuUpdate) -> Audited:
        menu = get_menu_or_404(db, menu_id)
        before = menu.to_dict()
        changes = data.model_dump(exclude_unset=True)

        if "name" in changes and changes["name"] != menu.name:
            _ensure_unique_name(db, changes["name"], exclude_id=menu_id)

        # Reassigning to the current parent is a no-op and skips validation.
        if "parent_id" in changes and changes["parent_id"] != menu.parent_id:
            new_parent = changes["parent_id"]
            if new_parent is not None:
                if new_parent != menu_id:
                    _ensure_parent_exists(db, new_parent)
                if would_create_cycle(db, menu_id, new_parent):
                    raise ValidationError(
                        "A menu cannot be moved under itself or one of its descendants",
                        details={"menuId": menu_id, "parentId": new_parent},
                    )
        else:
            changes.pop("parent_id", None)

        for key in ("display_name", "name", "sort_order", "is_visible"):
            if key in changes and changes[key] is None:
                changes.pop(key)
        for key, value in changes.items():
            setattr(menu, key, value)

        commit_or_rollback(db, "update menu")
        db.refresh(menu)

        after = menu.to_dict()
        return Audited(after, AuditEntry(
            action=AuditAction.UPDATE,
            resource_type=RESOURCE_TYPE,
            resource_id=menu_id,
            before=before,
            after=after,
            description=f"Updated menu: {menu.name}",
        ))

    @staticmethod
    @audited
    def delete_menu(db: Session, ctx: AuditContext, menu_id: int) -> Audited:
        menu = get_menu_or_404(db, menu_id)
        if menu.children:
            raise ValidationError(
                "Delete the child menus first",
                details={"children": [c.id for c in menu.children]},
            )
        before = menu.to_dict()
        db.delete(menu)
        commit_or_rollback(db, "delete menu")

        return Audited(None, AuditEntry(
            action=AuditAction.DELETE,
            resource_type=RESOURCE_TYPE,
            resource_id=menu_id,
            before=before,
            description=f"Deleted menu: {before['name']}",
        ))

    @staticmethod
    @audited
    def batch_delete_menus(db: Session, ctx: AuditContext, menu_ids: List[int]) -> Audited:
        """Delete many menus; a menu that still has children outside the batch fails.

        Leaves are removed first, so a parent and all of its children can be
        deleted in one request.
        """
        result = BatchResult()
        pending = {}
        for menu_id in dict.fromkeys(menu_ids):
            menu = db.query(Menu).filter(Menu.id == menu_id).first()
            if menu is None:
                result.fail(menu_id, ResourceNotFoundError(f"Menu {menu_id} not found"))
            else:
                pending[menu_id] = menu

        deleted = []
        progress = True
        while pending and progress:
            progress = False
            for menu_id in list(pending):
                child_ids = {
                    row[0] for row in db.query(Menu.id).filter(Menu.parent_id == menu_id).all()
                }
                if child_ids:
                    continue
                menu = pending.pop(menu_id)
                deleted.append(menu.to_dict())
                db.delete(menu)
                db.flush()
                progress = True

        for menu_id in pending:
            result.fail(menu_id, ValidationError("Delete the child menus first"))

        if not deleted:
            db.rollback()
            return Audited(result)

        commit_or_rollback(db, "delete menus")
        result.succeeded = [m["id"] for m in deleted]
        return Audited(result, AuditEntry(
            action=AuditAction.BATCH_DELETE,
            resource_type=RESOURCE_TYPE,
            resource_id=0,
            before=deleted,
            description="Batch deleted menus: " + ", ".join(m["name"] for m in deleted),
        ))

    @staticmethod
    def menus_for_role(db: Session, role_name: str) -> List[dict]:
        """Menu tree visible to a role: granted ``can_view`` rows, all for super admin."""
        if role_name == SUPER_ADMIN_ROLE:
            menus = db.query(Menu).filter(Menu.is_visible == True).all()  # noqa: E712
            return build_menu_tree(menus)

        role = db.query(Role).filter(Role.name == role_name, Role.is_active == True).first()  # noqa: E712
        if not role:
            return []
        menus = (
            db.query(Menu)
            .join(RoleMenuPermission, RoleMenuPermission.menu_id == Menu.id)
            .filter(
                RoleMenuPermission.role_id == role.id,
                RoleMenuPermission.can_view == True,  # noqa: E712
                Menu.is_visible == True,  # noqa: E712
            )
            .all()
        )
        return build_menu_tree(menus)


menu_service = MenuService()

