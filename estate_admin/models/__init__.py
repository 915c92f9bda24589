"""Models package: import all models so metadata discovery sees them."""

from estate_admin.models.role import Role
from estate_admin.models.menu import Menu
from estate_admin.models.button import Button, ButtonState, ButtonOrigin
from estate_admin.models.grants import RoleMenuPermission, RoleButtonPermission
from estate_admin.models.user import User
from estate_admin.models.audit_log import PermissionAuditLog, AuditAction

__all__ = [
    "Role", "Menu", "Button", "ButtonState", "ButtonOrigin",
    "RoleMenuPermission", "RoleButtonPermission",
    "User", "PermissionAuditLog", "AuditAction",
]
