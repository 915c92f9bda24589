"""Menu model: a forest of navigation entries."""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship

from estate_admin.db.base import Base


class Menu(Base):
    """Navigation menu node; ``parent_id`` is NULL for roots."""
    __tablename__ = "menus"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    path = Column(String(255), nullable=True, index=True)
    icon = Column(String(100), nullable=True)
    parent_id = Column(Integer, ForeignKey("menus.id"), nullable=True, index=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_visible = Column(Boolean, default=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    parent = relationship("Menu", remote_side=[id], back_populates="children")
    children = relationship("Menu", back_populates="parent", order_by="Menu.sort_order")
    buttons = relationship("Button", back_populates="menu", cascade="all")
    role_permissions = relationship(
        "RoleMenuPermission", back_populates="menu", cascade="all",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "displayName": self.display_name,
            "path": self.path,
            "icon": self.icon,
            "parentId": self.parent_id,
            "sortOrder": self.sort_order,
            "isVisible": self.is_visible,
            "description": self.description,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
