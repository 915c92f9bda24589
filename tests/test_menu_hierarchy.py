"""Menu tree edits: cycle detection, delete guard, batch delete."""

import random

import pytest

from estate_admin.core.exceptions import ValidationError
from estate_admin.models.audit_log import PermissionAuditLog, AuditAction
from estate_admin.models.menu import Menu
from estate_admin.schemas.schemas import MenuCreate, MenuUpdate
from estate_admin.services.menu_service import (
    MenuService,
    build_menu_tree,
    would_create_cycle,
)


def _menu(db, name, parent=None):
    menu = Menu(name=name, display_name=name.title(), path=f"/{name}", parent_id=parent.id if parent else None)
    db.add(menu)
    db.commit()
    return menu


@pytest.fixture
def chain(db):
    """a -> b -> c, plus an unrelated root d."""
    a = _menu(db, "a")
    b = _menu(db, "b", a)
    c = _menu(db, "c", b)
    d = _menu(db, "d")
    return a, b, c, d


def _reaches_root(db, menu_id, limit=1000):
    current = menu_id
    for _ in range(limit):
        parent = db.query(Menu.parent_id).filter(Menu.id == current).scalar()
        if parent is None:
            return True
        current = parent
    return False


def test_self_parent_is_a_cycle(db, chain):
    a, _, _, _ = chain
    assert would_create_cycle(db, a.id, a.id) is True


def test_descendant_parent_is_a_cycle(db, chain):
    a, b, c, _ = chain
    assert would_create_cycle(db, a.id, c.id) is True
    assert would_create_cycle(db, b.id, c.id) is True


def test_unrelated_or_root_parent_is_safe(db, chain):
    a, b, c, d = chain
    assert would_create_cycle(db, c.id, d.id) is False
    assert would_create_cycle(db, c.id, a.id) is False
    assert would_create_cycle(db, a.id, None) is False


def test_update_rejects_cycle_without_mutation(db, ctx, chain):
    a, _, c, _ = chain
    with pytest.raises(ValidationError):
        MenuService.update_menu(db, ctx, a.id, MenuUpdate(parentId=c.id, displayName="Renamed"))
    db.expire_all()
    refreshed = db.query(Menu).filter(Menu.id == a.id).one()
    assert refreshed.parent_id is None
    assert refreshed.display_name == "A"


def test_update_to_current_parent_is_allowed(db, ctx, chain):
    _, b, c, _ = chain
    result = MenuService.update_menu(db, ctx, c.id, MenuUpdate(parentId=b.id, sortOrder=5))
    assert result["parentId"] == b.id
    assert result["sortOrder"] == 5


def test_update_can_move_to_root(db, ctx, chain):
    _, _, c, _ = chain
    result = MenuService.update_menu(db, ctx, c.id, MenuUpdate(parentId=None))
    assert result["parentId"] is None


def test_update_omitting_parent_keeps_it(db, ctx, chain):
    _, b, c, _ = chain
    result = MenuService.update_menu(db, ctx, c.id, MenuUpdate(displayName="Leaf"))
    assert result["parentId"] == b.id


def test_accepted_reassignments_never_form_cycles(db, ctx):
    menus = [_menu(db, f"m{i}") for i in range(12)]
    rng = random.Random(7)
    for _ in range(200):
        node, parent = rng.choice(menus), rng.choice(menus + [None])
        parent_id = parent.id if parent else None
        try:
            MenuService.update_menu(db, ctx, node.id, MenuUpdate(parentId=parent_id))
        except ValidationError:
            pass
    assert all(_reaches_root(db, m.id) for m in menus)


def test_create_menu_requires_existing_parent(db, ctx):
    with pytest.raises(ValidationError):
        MenuService.create_menu(db, ctx, MenuCreate(name="orphan", path="/orphan", parentId=999))


def test_create_menu_rejects_duplicate_name(db, ctx, chain):
    with pytest.raises(ValidationError):
        MenuService.create_menu(db, ctx, MenuCreate(name="a", path="/other"))


def test_delete_guard_keeps_parent_and_child(db, ctx):
    a = _menu(db, "parent")
    b = _menu(db, "child", a)
    with pytest.raises(ValidationError):
        MenuService.delete_menu(db, ctx, a.id)
    assert db.query(Menu).filter(Menu.id.in_([a.id, b.id])).count() == 2


def test_delete_leaf_writes_audit_entry(db, ctx, chain):
    _, _, c, _ = chain
    MenuService.delete_menu(db, ctx, c.id)
    assert db.query(Menu).filter(Menu.id == c.id).first() is None
    log = db.query(PermissionAuditLog).filter(PermissionAuditLog.action == AuditAction.DELETE).one()
    assert log.resource_type == "menu"
    assert log.resource_id == c.id


def test_batch_delete_removes_subtree_and_reports_blocked(db, ctx, chain):
    a, b, c, d = chain
    x = _menu(db, "x", d)

    result = MenuService.batch_delete_menus(db, ctx, [a.id, b.id, c.id, d.id, 404])

    assert sorted(result.succeeded) == sorted([a.id, b.id, c.id])
    failed = {f.id: f.code for f in result.failed}
    assert failed == {d.id: "VALIDATION_ERROR", 404: "NOT_FOUND"}
    assert db.query(Menu).filter(Menu.id.in_([d.id, x.id])).count() == 2

    log = db.query(PermissionAuditLog).filter(PermissionAuditLog.action == AuditAction.BATCH_DELETE).one()
    assert log.resource_id == 0


def test_build_menu_tree_nests_children(db, chain):
    a, b, c, d = chain
    tree = build_menu_tree(db.query(Menu).all())
    assert [n["id"] for n in tree] == [a.id, d.id]
    assert tree[0]["children"][0]["id"] == b.id
    assert tree[0]["children"][0]["children"][0]["id"] == c.id
