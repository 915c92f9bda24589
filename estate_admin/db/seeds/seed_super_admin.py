"""Seed the super-admin user from env vars."""

from sqlalchemy import or_
from sqlalchemy.orm import Session

from estate_admin.core.config import settings
from estate_admin.core.roles import SUPER_ADMIN_ROLE
from estate_admin.core.security import hash_password
from estate_admin.models.role import Role
from estate_admin.models.user import User


def seed_super_admin(db: Session) -> None:
    """Create the super-admin user if not already present."""
    if not db.query(Role).filter(Role.name == SUPER_ADMIN_ROLE).first():
        print(f"⚠️  {SUPER_ADMIN_ROLE} role not found. Run seed_roles first.")
        return

    existing = db.query(User).filter(or_(
        User.username == settings.SUPER_ADMIN_USERNAME,
        User.email == settings.SUPER_ADMIN_EMAIL,
    )).first()
    if existing:
        print(f"ℹ️  Super admin '{settings.SUPER_ADMIN_USERNAME}' already exists, skipping.")
        return

    admin = User(
        username=settings.SUPER_ADMIN_USERNAME,
        email=settings.SUPER_ADMIN_EMAIL,
        hashed_password=hash_password(settings.SUPER_ADMIN_PASSWORD),
        full_name="Super Admin",
        role=SUPER_ADMIN_ROLE,
        is_active=True,
        project_ids="*",
    )
    db.add(admin)
    db.commit()
    print(f"✅ Created super admin: {settings.SUPER_ADMIN_USERNAME}")
