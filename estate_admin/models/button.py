"""Button model: one fine-grained operation, usually a method x route."""

import enum

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Enum, UniqueConstraint, func,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship

from estate_admin.db.base import Base


class ButtonState(str, enum.Enum):
    """Lifecycle of a button permission.

    ``absent`` marks a scanned button whose route no longer exists. It is kept
    so audit records that reference it stay interpretable.
    """
    active = "active"
    inactive = "inactive"
    absent = "absent"


class ButtonOrigin(str, enum.Enum):
    manual = "manual"
    scanned = "scanned"


class Button(Base):
    """Button permission owned by a menu."""
    __tablename__ = "buttons"
    __table_args__ = (
        UniqueConstraint("menu_id", "identifier", name="uq_button_menu_identifier"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    identifier = Column(String(255), nullable=False, index=True)
    menu_id = Column(Integer, ForeignKey("menus.id", ondelete="CASCADE"), nullable=False, index=True)
    state = Column(Enum(ButtonState), default=ButtonState.active, nullable=False)
    origin = Column(Enum(ButtonOrigin), default=ButtonOrigin.manual, nullable=False)
    http_method = Column(String(10), nullable=True)
    route_path = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    menu = relationship("Menu", back_populates="buttons")
    role_permissions = relationship(
        "RoleButtonPermission", back_populates="button", cascade="all",
    )

    @hybrid_property
    def is_active(self) -> bool:
        return self.state == ButtonState.active

    @is_active.setter
    def is_active(self, value: bool) -> None:
        self.state = ButtonState.active if value else ButtonState.inactive

    @is_active.expression
    def is_active(cls):
        return cls.state == ButtonState.active

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "identifier": self.identifier,
            "menuId": self.menu_id,
            "isActive": self.is_active,
            "state": self.state.value if self.state else None,
            "origin": self.origin.value if self.origin else None,
            "method": self.http_method,
            "routePath": self.route_path,
            "description": self.description,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
