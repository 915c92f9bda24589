"""Seed the base console menu tree."""

from sqlalchemy.orm import Session

from estate_admin.models.menu import Menu

# (name, display name, path, icon, sort order, children)
BASE_MENUS = [
    ("dashboard", "Dashboard", "/dashboard", "DashboardOutlined", 1, []),
    ("sales-control", "Sales control", "/sales-control", "HomeOutlined", 2, []),
    ("parking", "Parking", "/parking", "CarOutlined", 3, []),
    ("customers", "Customers", "/customers", "TeamOutlined", 4, [
        ("appointments", "Appointments", "/appointments", "CalendarOutlined", 1),
    ]),
    ("finance", "Finance", "/finance", "AccountBookOutlined", 5, []),
    ("handover", "Handover", "/handover", "KeyOutlined", 6, []),
    ("statistics", "Statistics", "/statistics", "BarChartOutlined", 7, []),
    ("admin", "System administration", "/admin", "SettingOutlined", 90, [
        ("admin-roles", "Roles", "/admin/roles", "SafetyOutlined", 1),
        ("admin-menus", "Menus", "/admin/permissions/menus", "MenuOutlined", 2),
        ("admin-buttons", "Buttons", "/admin/permissions/buttons", "AppstoreOutlined", 3),
        ("admin-users", "User permissions", "/admin/permissions/users", "UserOutlined", 4),
        ("admin-audit-logs", "Audit logs", "/admin/permissions/audit-logs", "FileSearchOutlined", 5),
    ]),
]


def _get_or_create(db: Session, name, display_name, path, icon, sort_order, parent_id=None):
    menu = db.query(Menu).filter(Menu.name == name).first()
    if menu:
        return menu, False
    menu = Menu(
        name=name,
        display_name=display_name,
        path=path,
        icon=icon,
        sort_order=sort_order,
        parent_id=parent_id,
        is_visible=True,
    )
    db.add(menu)
    db.flush()
    return menu, True


def seed_menus(db: Session) -> None:
    """Insert the base menus if they don't already exist."""
    created = 0
    for name, display_name, path, icon, sort_order, children in BASE_MENUS:
        parent, is_new = _get_or_create(db, name, display_name, path, icon, sort_order)
        created += is_new
        for child in children:
            _, is_new = _get_or_create(db, *child, parent_id=parent.id)
            created += is_new

    db.commit()
    print(f"✅ Seeded {created} menus")
