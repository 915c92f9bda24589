"""User model."""

from typing import Set

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, func

from estate_admin.db.base import Base


class User(Base):
    """Console user; ``role`` holds the referenced ``Role.name``."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    project_ids = Column(Text, nullable=True)  # comma separated, "*" = every project
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def project_scope(self) -> Set[str]:
        if not self.project_ids:
            return set()
        return {p.strip() for p in self.project_ids.split(",") if p.strip()}

    @project_scope.setter
    def project_scope(self, values) -> None:
        cleaned = sorted({str(v).strip() for v in values if str(v).strip()})
        self.project_ids = ",".join(cleaned) if cleaned else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "fullName": self.full_name,
            "role": self.role,
            "isActive": self.is_active,
            "projectIds": sorted(self.project_scope),
            "lastLoginAt": self.last_login_at,
            "createdAt": self.created_at,
        }
