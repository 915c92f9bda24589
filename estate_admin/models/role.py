"""Role model for RBAC."""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, func
from sqlalchemy.orm import relationship

from estate_admin.db.base import Base
from estate_admin.core.roles import SYSTEM_ROLE_NAMES


class Role(Base):
    """Named role; users reference it by ``name``."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    menu_permissions = relationship(
        "RoleMenuPermission", back_populates="role", cascade="all",
    )
    button_permissions = relationship(
        "RoleButtonPermission", back_populates="role", cascade="all",
    )

    @property
    def is_system(self) -> bool:
        return self.name in SYSTEM_ROLE_NAMES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "displayName": self.display_name,
            "description": self.description,
            "isActive": self.is_active,
            "isSystem": self.is_system,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
