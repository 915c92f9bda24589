"""Route registry and the permission scanner/reconciler."""

import pytest
from fastapi import APIRouter, FastAPI

from estate_admin.core.config import settings
from estate_admin.models.button import Button, ButtonState, ButtonOrigin
from estate_admin.models.menu import Menu
from estate_admin.services import scanner_service as scanner_module
from estate_admin.services.route_registry import RouteRegistry
from estate_admin.services.scanner_service import ScannerService, find_menu


def _registry(*routes):
    registry = RouteRegistry()
    for method, path in routes:
        registry.register(method, path)
    return registry


def _roles_menu(db):
    menu = Menu(name="admin-roles", display_name="Roles", path="/admin/roles")
    db.add(menu)
    db.commit()
    return menu


def test_registry_from_app_lists_api_routes():
    router = APIRouter(prefix="/api/widgets")

    @router.get("")
    async def list_widgets():
        return []

    @router.api_route("/{widget_id}", methods=["PUT", "DELETE"])
    async def change_widget(widget_id: int):
        return {}

    app = FastAPI()
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {}

    keys = sorted(route.key for route in RouteRegistry.from_app(app, "/api"))
    assert keys == [
        ("DELETE", "/api/widgets/{widget_id}"),
        ("GET", "/api/widgets"),
        ("PUT", "/api/widgets/{widget_id}"),
    ]


def test_registry_from_real_app_covers_admin_routes():
    from estate_admin.main import create_app

    keys = {route.key for route in RouteRegistry.from_app(create_app())}
    assert ("GET", "/api/admin/roles") in keys
    assert ("PUT", "/api/admin/permissions/menus") in keys
    assert not any(path == "/health" for _, path in keys)


def test_preview_does_not_write(db):
    records = ScannerService.preview(_registry(("GET", "/api/admin/roles"), ("GET", "/api/admin/roles/{role_id}")))
    assert [r.identifier for r in records] == ["get_admin_roles", "get_admin_roles_id"]
    assert records[0].menu_path == "/admin/roles"
    assert db.query(Button).count() == 0


def test_rescanning_produces_one_button(db):
    menu = _roles_menu(db)
    registry = _registry(("GET", "/api/admin/roles"))

    for _ in range(1000):
        ScannerService.scan_and_sync(db, registry)

    buttons = db.query(Button).all()
    assert len(buttons) == 1
    assert buttons[0].identifier == "get_admin_roles"
    assert buttons[0].menu_id == menu.id
    assert buttons[0].origin == ButtonOrigin.scanned
    assert buttons[0].name == "View Admin Role"


def test_first_scan_creates_then_updates(db):
    _roles_menu(db)
    registry = _registry(("GET", "/api/admin/roles"), ("POST", "/api/admin/roles"))

    first = ScannerService.scan_and_sync(db, registry)
    second = ScannerService.scan_and_sync(db, registry)

    assert (first.created, first.updated) == (2, 0)
    assert (second.created, second.updated) == (0, 2)
    assert first.errors == []


def test_unmatched_routes_land_in_fallback_menu(db):
    report = ScannerService.scan_and_sync(db, _registry(("GET", "/api/widgets/{id}"), ("GET", "/api/gadgets")))

    fallback = db.query(Menu).filter(Menu.name == settings.FALLBACK_MENU_NAME).one()
    assert fallback.path == "/api-permissions"
    assert {r.menu_id for r in report.records} == {fallback.id}
    assert db.query(Menu).count() == 1


def test_menu_inference_falls_back_to_partial_matches(db):
    nested = Menu(name="admin-buttons", display_name="Buttons", path="/admin/permissions/buttons")
    named = Menu(name="finance-budget", display_name="Budget", path="/reports")
    db.add_all([nested, named])
    db.commit()

    assert find_menu(db, "/admin/permissions/buttons").id == nested.id
    assert find_menu(db, "/permissions/buttons").id == nested.id
    assert find_menu(db, "/finance/budget").id == named.id
    assert find_menu(db, "/nothing/here") is None
    assert find_menu(db, "") is None


def test_vanished_routes_are_marked_absent_not_deleted(db):
    _roles_menu(db)
    ScannerService.scan_and_sync(db, _registry(("GET", "/api/admin/roles"), ("DELETE", "/api/admin/roles/{id}")))

    report = ScannerService.scan_and_sync(db, _registry(("GET", "/api/admin/roles")))

    gone = db.query(Button).filter(Button.identifier == "delete_admin_roles_id").one()
    assert gone.state == ButtonState.absent
    assert report.absent == [gone.id]

    ScannerService.scan_and_sync(db, _registry(("GET", "/api/admin/roles"), ("DELETE", "/api/admin/roles/{id}")))
    db.refresh(gone)
    assert gone.state == ButtonState.active


def test_manual_buttons_are_never_marked_absent(db):
    menu = _roles_menu(db)
    manual = Button(name="Export", identifier="export_roles", menu_id=menu.id, origin=ButtonOrigin.manual)
    db.add(manual)
    db.commit()

    ScannerService.scan_and_sync(db, _registry(("GET", "/api/admin/roles")))
    db.refresh(manual)
    assert manual.state == ButtonState.active


def test_one_failing_route_does_not_abort_scan(db, monkeypatch):
    _roles_menu(db)
    real_upsert = scanner_module._upsert_button

    def flaky_upsert(session, record, menu):
        if record.method == "POST":
            raise ValueError("name too long")
        return real_upsert(session, record, menu)

    monkeypatch.setattr(scanner_module, "_upsert_button", flaky_upsert)
    report = ScannerService.scan_and_sync(
        db, _registry(("GET", "/api/admin/roles"), ("POST", "/api/admin/roles"), ("PUT", "/api/admin/roles/{id}")),
    )

    assert report.created == 2
    assert [(e.method, e.path) for e in report.errors] == [("POST", "/api/admin/roles")]
    assert "name too long" in report.errors[0].error
    assert {b.identifier for b in db.query(Button).all()} == {"get_admin_roles", "put_admin_roles_id"}


def test_failing_route_keeps_existing_button_active(db, monkeypatch):
    _roles_menu(db)
    registry = _registry(("GET", "/api/admin/roles"), ("POST", "/api/admin/roles"))
    ScannerService.scan_and_sync(db, registry)

    def broken(session, record, menu):
        raise ValueError("boom")

    monkeypatch.setattr(scanner_module, "_upsert_button", broken)
    report = ScannerService.scan_and_sync(db, registry)

    assert len(report.errors) == 2
    assert report.absent == []
    assert db.query(Button).filter(Button.state == ButtonState.active).count() == 2


@pytest.mark.parametrize("path", ["/api/admin/roles", "/api/admin/roles/"])
def test_trailing_slash_does_not_duplicate(db, path):
    _roles_menu(db)
    ScannerService.scan_and_sync(db, _registry(("GET", "/api/admin/roles")))
    ScannerService.scan_and_sync(db, _registry(("GET", path)))
    assert db.query(Button).count() == 1


def test_scanning_the_real_app_keeps_granted_buttons_active(db):
    from estate_admin.main import create_app

    menu = _roles_menu(db)
    button = Button(
        name="View Admin Role", identifier="get_admin_roles", menu_id=menu.id, origin=ButtonOrigin.scanned,
    )
    db.add(button)
    db.commit()

    registry = RouteRegistry.from_app(create_app())
    assert len(registry) > 0

    report = ScannerService.scan_and_sync(db, registry)
    db.refresh(button)
    assert button.state == ButtonState.active
    assert button.id not in report.absent


def test_empty_registry_marks_nothing_absent(db, caplog):
    menu = _roles_menu(db)
    button = Button(name="Old", identifier="get_admin_roles", menu_id=menu.id, origin=ButtonOrigin.scanned)
    db.add(button)
    db.commit()

    with caplog.at_level("WARNING", logger="estate_admin.scanner"):
        report = ScannerService.scan_and_sync(db, RouteRegistry())

    db.refresh(button)
    assert button.state == ButtonState.active
    assert report.absent == []
    assert "found no routes" in caplog.text
