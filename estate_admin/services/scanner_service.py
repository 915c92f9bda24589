"""Permission scanner: keeps the button catalog in sync with the API routes.

Each route yields one button identified by ``(identifier, menu_id)``. Existing
buttons are updated and reactivated, new ones created. Scanned buttons whose
route has vanished are marked ``absent``, never deleted, so grants and audit
records that reference them stay interpretable.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from estate_admin.core.config import settings
from estate_admin.core.exceptions import InternalError
from estate_admin.models.button import Button, ButtonState, ButtonOrigin
from estate_admin.models.menu import Menu
from estate_admin.services.identifier import (
    generate_identifier,
    generate_name,
    generate_description,
    infer_menu_path,
    normalize_route_path,
)
from estate_admin.services.route_registry import RouteRegistry, RouteDefinition

logger = logging.getLogger("estate_admin.scanner")

FALLBACK_MENU_DISPLAY_NAME = "API permissions"
FALLBACK_MENU_PATH = "/api-permissions"
FALLBACK_MENU_ICON = "ApiOutlined"
FALLBACK_MENU_SORT_ORDER = 999


@dataclass
class PermissionRecord:
    method: str
    path: str
    identifier: str
    name: str
    description: str
    menu_path: str
    menu_id: Optional[int] = None
    button_id: Optional[int] = None
    status: str = "preview"

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "path": self.path,
            "identifier": self.identifier,
            "name": self.name,
            "description": self.description,
            "menuPath": self.menu_path,
            "menuId": self.menu_id,
            "buttonId": self.button_id,
            "status": self.status,
        }


@dataclass
class ScanError:
    method: str
    path: str
    error: str


@dataclass
class ScanReport:
    records: List[PermissionRecord] = field(default_factory=list)
    created: int = 0
    updated: int = 0
    absent: List[int] = field(default_factory=list)
    errors: List[ScanError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": len(self.records),
            "created": self.created,
            "updated": self.updated,
            "absent": list(self.absent),
            "errors": [
                {"method": e.method, "path": e.path, "error": e.error} for e in self.errors
            ],
            "permissions": [r.to_dict() for r in self.records],
        }


def build_record(route: RouteDefinition) -> PermissionRecord:
    path = normalize_route_path(route.path)
    return PermissionRecord(
        method=route.method,
        path=path,
        identifier=generate_identifier(route.method, path),
        name=generate_name(route.method, path),
        description=generate_description(route.method, path),
        menu_path=infer_menu_path(path),
    )


def find_menu(db: Session, menu_path: str) -> Optional[Menu]:
    """Best menu for a derived path: exact path, then path contains, then name contains."""
    if not menu_path:
        return None
    menu = db.query(Menu).filter(Menu.path == menu_path).first()
    if menu:
        return menu
    menu = (
        db.query(Menu)
        .filter(Menu.path.isnot(None), Menu.path != "", Menu.path.contains(menu_path))
        .order_by(Menu.id.asc())
        .first()
    )
    if menu:
        return menu
    last_segment = menu_path.rstrip("/").rsplit("/", 1)[-1]
    if not last_segment:
        return None
    return (
        db.query(Menu)
        .filter(Menu.name.contains(last_segment))
        .order_by(Menu.id.asc())
        .first()
    )


def ensure_fallback_menu(db: Session) -> Menu:
    """The catch-all menu for permissions with no matching menu, created if absent."""
    menu = db.query(Menu).filter(Menu.name == settings.FALLBACK_MENU_NAME).first()
    if menu:
        return menu
    menu = Menu(
        name=settings.FALLBACK_MENU_NAME,
        display_name=FALLBACK_MENU_DISPLAY_NAME,
        path=FALLBACK_MENU_PATH,
        icon=FALLBACK_MENU_ICON,
        sort_order=FALLBACK_MENU_SORT_ORDER,
        is_visible=True,
        description="Auto-generated API permissions with no matching menu",
    )
    db.add(menu)
    db.flush()
    logger.info("Created fallback menu %s (id=%s)", menu.name, menu.id)
    return menu


def _upsert_button(db: Session, record: PermissionRecord, menu: Menu) -> str:
    button = (
        db.query(Button)
        .filter(Button.identifier == record.identifier, Button.menu_id == menu.id)
        .first()
    )
    if button is None:
        button = Button(
            name=record.name,
            identifier=record.identifier,
            menu_id=menu.id,
            state=ButtonState.active,
            origin=ButtonOrigin.scanned,
            http_method=record.method,
            route_path=record.path,
            description=record.description,
        )
        db.add(button)
        status = "created"
    else:
        button.name = record.name
        button.description = record.description
        button.http_method = record.method
        button.route_path = record.path
        button.state = ButtonState.active
        status = "updated"
    db.flush()
    record.button_id = button.id
    return status


class ScannerService:
    """Derives permission records from routes and reconciles them into buttons."""

    @staticmethod
    def preview(registry: RouteRegistry) -> List[PermissionRecord]:
        """Permission records for every route, without touching the store."""
        records = {}
        for route in registry:
            record = build_record(route)
            records.setdefault((record.method, record.identifier), record)
        return sorted(records.values(), key=lambda r: (r.menu_path, r.path, r.method))

    @staticmethod
    def scan_and_sync(db: Session, registry: RouteRegistry) -> ScanReport:
        """Upsert one button per route; a failing route is reported, not fatal."""
        report = ScanReport()
        seen_ids = set()
        failed_identifiers = set()
        menus: Dict[str, Menu] = {}

        for route in registry:
            record = build_record(route)
            report.records.append(record)
            savepoint = db.begin_nested()
            try:
                menu = menus.get(record.menu_path)
                if menu is None:
                    menu = find_menu(db, record.menu_path) or ensure_fallback_menu(db)
                    menus[record.menu_path] = menu
                record.menu_id = menu.id
                record.status = _upsert_button(db, record, menu)
                savepoint.commit()
            except (SQLAlchemyError, ValueError) as exc:
                savepoint.rollback()
                menus.pop(record.menu_path, None)
                record.status = "error"
                failed_identifiers.add(record.identifier)
                report.errors.append(ScanError(record.method, record.path, str(exc)))
                logger.warning("Permission scan failed for %s %s: %s", record.method, record.path, exc)
                continue

            seen_ids.add(record.button_id)
            if record.status == "created":
                report.created += 1
            else:
                report.updated += 1

        # An empty registry means discovery failed, not that every route vanished.
        if len(registry) == 0:
            logger.warning("Permission scan found no routes; leaving existing buttons untouched")
            stale = []
        else:
            stale = (
                db.query(Button)
                .filter(
                    Button.origin == ButtonOrigin.scanned,
                    Button.state != ButtonState.absent,
                )
                .all()
            )
        for button in stale:
            if button.id not in seen_ids and button.identifier not in failed_identifiers:
                button.state = ButtonState.absent
                report.absent.append(button.id)

        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Permission scan commit failed")
            raise InternalError("Failed to commit permission scan") from exc

        logger.info(
            "Permission scan: %d routes, %d created, %d updated, %d absent, %d errors",
            len(report.records), report.created, report.updated, len(report.absent), len(report.errors),
        )
        return report


scanner_service = ScannerService()
