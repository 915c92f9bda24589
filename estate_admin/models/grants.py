"""Grant join tables: Role x Menu and Role x Button."""

from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship

from estate_admin.db.base import Base


class RoleMenuPermission(Base):
    """Per-role CRUD flags on a menu."""
    __tablename__ = "role_menu_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "menu_id", name="uq_role_menu"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_id = Column(Integer, ForeignKey("menus.id", ondelete="CASCADE"), nullable=False, index=True)
    can_view = Column(Boolean, default=False, nullable=False)
    can_create = Column(Boolean, default=False, nullable=False)
    can_update = Column(Boolean, default=False, nullable=False)
    can_delete = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    role = relationship("Role", back_populates="menu_permissions")
    menu = relationship("Menu", back_populates="role_permissions")

    def to_dict(self) -> dict:
        return {
            "menuId": self.menu_id,
            "canView": self.can_view,
            "canCreate": self.can_create,
            "canUpdate": self.can_update,
            "canDelete": self.can_delete,
        }


class RoleButtonPermission(Base):
    """Per-role operate flag on a button."""
    __tablename__ = "role_button_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "button_id", name="uq_role_button"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    button_id = Column(Integer, ForeignKey("buttons.id", ondelete="CASCADE"), nullable=False, index=True)
    can_operate = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    role = relationship("Role", back_populates="button_permissions")
    button = relationship("Button", back_populates="role_permissions")

    def to_dict(self) -> dict:
        return {
            "buttonId": self.button_id,
            "canOperate": self.can_operate,
        }
