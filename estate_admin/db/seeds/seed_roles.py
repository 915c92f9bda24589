"""Seed the system roles into the database."""

from sqlalchemy.orm import Session

from estate_admin.core.roles import SystemRole, SYSTEM_ROLE_DISPLAY
from estate_admin.models.role import Role


def seed_roles(db: Session) -> None:
    """Insert the system roles if they don't already exist."""
    created = 0
    for role in SystemRole:
        existing = db.query(Role).filter(Role.name == role.value).first()
        if existing:
            continue
        display_name, description = SYSTEM_ROLE_DISPLAY[role]
        db.add(Role(name=role.value, display_name=display_name, description=description, is_active=True))
        created += 1

    db.commit()
    print(f"✅ Seeded {created} roles ({len(SystemRole)} system roles total)")
