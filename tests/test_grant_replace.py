"""Batch grant replacement: exactness, atomicity, audit."""

import json

import pytest
from sqlalchemy.exc import OperationalError

from estate_admin.core.exceptions import InternalError, ResourceNotFoundError, ValidationError
from estate_admin.core.roles import SystemRole
from estate_admin.models.audit_log import PermissionAuditLog
from estate_admin.models.button import Button
from estate_admin.models.grants import RoleMenuPermission, RoleButtonPermission
from estate_admin.models.menu import Menu
from estate_admin.models.role import Role
from estate_admin.schemas.schemas import MenuGrant, ButtonGrant
from estate_admin.services import grant_service as grant_module
from estate_admin.services import audit_service as audit_module
from estate_admin.services.grant_service import GrantService


@pytest.fixture
def role(db):
    return db.query(Role).filter(Role.name == SystemRole.FINANCE.value).one()


@pytest.fixture
def menus(db):
    items = [Menu(name=f"menu-{i}", display_name=f"Menu {i}", path=f"/m{i}") for i in range(4)]
    db.add_all(items)
    db.commit()
    return items


@pytest.fixture
def buttons(db, menus):
    items = [Button(name=f"Op {i}", identifier=f"op_{i}", menu_id=menus[0].id) for i in range(3)]
    db.add_all(items)
    db.commit()
    return items


def _menu_grants(db, role_id):
    rows = db.query(RoleMenuPermission).filter(RoleMenuPermission.role_id == role_id).all()
    return sorted((r.menu_id, r.can_view, r.can_create, r.can_update, r.can_delete) for r in rows)


def _grant(menu, view=True, create=False, update=False, delete=False):
    return MenuGrant(menuId=menu.id, canView=view, canCreate=create, canUpdate=update, canDelete=delete)


def test_replace_is_exact(db, ctx, role, menus):
    GrantService.replace_menu_grants(db, ctx, role.id, [_grant(menus[0]), _grant(menus[1], create=True)])
    GrantService.replace_menu_grants(db, ctx, role.id, [_grant(menus[1]), _grant(menus[2], delete=True)])

    assert _menu_grants(db, role.id) == sorted([
        (menus[1].id, True, False, False, False),
        (menus[2].id, True, False, False, True),
    ])


def test_replace_with_empty_list_clears(db, ctx, role, menus):
    GrantService.replace_menu_grants(db, ctx, role.id, [_grant(m) for m in menus])
    GrantService.replace_menu_grants(db, ctx, role.id, [])
    assert _menu_grants(db, role.id) == []


def test_replace_leaves_other_roles_alone(db, ctx, role, menus):
    other = db.query(Role).filter(Role.name == SystemRole.USER.value).one()
    GrantService.replace_menu_grants(db, ctx, other.id, [_grant(menus[3])])
    GrantService.replace_menu_grants(db, ctx, role.id, [_grant(menus[0])])
    assert _menu_grants(db, other.id) == [(menus[3].id, True, False, False, False)]


def test_failure_between_delete_and_insert_keeps_previous_set(db, ctx, role, menus, monkeypatch):
    GrantService.replace_menu_grants(db, ctx, role.id, [_grant(menus[0]), _grant(menus[1])])
    before = _menu_grants(db, role.id)

    def boom(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("lock wait timeout"))

    monkeypatch.setattr(grant_module, "_insert_menu_grants", boom)
    with pytest.raises(InternalError):
        GrantService.replace_menu_grants(db, ctx, role.id, [_grant(menus[2])])

    db.expire_all()
    assert _menu_grants(db, role.id) == before


def test_unknown_role_is_not_found(db, ctx, menus):
    with pytest.raises(ResourceNotFoundError):
        GrantService.replace_menu_grants(db, ctx, 9999, [_grant(menus[0])])


def test_unknown_or_duplicate_targets_are_rejected_before_mutation(db, ctx, role, menus):
    GrantService.replace_menu_grants(db, ctx, role.id, [_grant(menus[0])])
    before = _menu_grants(db, role.id)

    with pytest.raises(ValidationError):
        GrantService.replace_menu_grants(db, ctx, role.id, [MenuGrant(menuId=424242)])
    with pytest.raises(ValidationError):
        GrantService.replace_menu_grants(db, ctx, role.id, [_grant(menus[1]), _grant(menus[1])])

    assert _menu_grants(db, role.id) == before


def test_replace_writes_update_audit_with_snapshots(db, ctx, role, menus):
    GrantService.replace_menu_grants(db, ctx, role.id, [_grant(menus[0])])
    GrantService.replace_menu_grants(db, ctx, role.id, [_grant(menus[1], update=True)])

    log = (
        db.query(PermissionAuditLog)
        .filter(PermissionAuditLog.resource_type == "menu_permission")
        .order_by(PermissionAuditLog.id.desc())
        .first()
    )
    assert log.action.value == "UPDATE"
    assert log.resource_id == role.id
    assert log.user_id == ctx.actor_id
    assert [g["menuId"] for g in json.loads(log.before_data)] == [menus[0].id]
    after = json.loads(log.after_data)
    assert after == [{
        "menuId": menus[1].id, "canView": True, "canCreate": False, "canUpdate": True, "canDelete": False,
    }]


def test_audit_failure_does_not_undo_replace(db, ctx, role, menus, monkeypatch):
    class Broken:
        def __init__(self, *args, **kwargs):
            raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(audit_module, "PermissionAuditLog", Broken)
    result = GrantService.replace_menu_grants(db, ctx, role.id, [_grant(menus[0])])

    assert result[0]["menuId"] == menus[0].id
    assert _menu_grants(db, role.id) == [(menus[0].id, True, False, False, False)]


def test_replace_button_grants(db, ctx, role, buttons):
    GrantService.replace_button_grants(db, ctx, role.id, [
        ButtonGrant(buttonId=buttons[0].id, canOperate=True),
        ButtonGrant(buttonId=buttons[1].id, canOperate=False),
    ])
    GrantService.replace_button_grants(db, ctx, role.id, [
        ButtonGrant(buttonId=buttons[2].id, canOperate=True),
    ])
    rows = db.query(RoleButtonPermission).filter(RoleButtonPermission.role_id == role.id).all()
    assert [(r.button_id, r.can_operate) for r in rows] == [(buttons[2].id, True)]

    log = (
        db.query(PermissionAuditLog)
        .filter(PermissionAuditLog.resource_type == "button_permission")
        .order_by(PermissionAuditLog.id.desc())
        .first()
    )
    assert len(json.loads(log.before_data)) == 2
