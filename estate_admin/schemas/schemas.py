"""Pydantic schemas for API request/response serialization.

Request bodies accept the console's camelCase keys and snake_case alike.
"""

from datetime import datetime
from typing import Optional, List, Dict, Any, Union

from pydantic import BaseModel, Field


class RequestModel(BaseModel):
    class Config:
        populate_by_name = True
        extra = "ignore"


# ---- Auth ----
class LoginRequest(RequestModel):
    username: str = Field(..., min_length=2, description="Username or email")
    password: str = Field(..., min_length=4)

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[Dict[str, Any]] = None


# ---- Role ----
class RoleCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=50)
    display_name: str = Field(..., min_length=1, max_length=100, alias="displayName")
    description: Optional[str] = None
    is_active: bool = Field(True, alias="isActive")

class RoleUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    display_name: Optional[str] = Field(None, min_length=1, max_length=100, alias="displayName")
    description: Optional[str] = None
    is_active: Optional[bool] = Field(None, alias="isActive")

class RoleBatchStatus(RequestModel):
    role_ids: List[int] = Field(..., min_length=1, alias="roleIds")
    is_active: bool = Field(..., alias="isActive")


# ---- Menu ----
class MenuCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_name: Optional[str] = Field(None, max_length=100, alias="displayName")
    path: str = Field(..., min_length=1, max_length=255)
    icon: Optional[str] = None
    parent_id: Optional[int] = Field(None, alias="parentId")
    sort_order: int = Field(0, alias="sortOrder")
    is_visible: bool = Field(True, alias="isVisible")
    description: Optional[str] = None

class MenuUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    display_name: Optional[str] = Field(None, min_length=1, max_length=100, alias="displayName")
    path: Optional[str] = None
    icon: Optional[str] = None
    parent_id: Optional[int] = Field(None, alias="parentId")
    sort_order: Optional[int] = Field(None, alias="sortOrder")
    is_visible: Optional[bool] = Field(None, alias="isVisible")
    description: Optional[str] = None

class MenuGrant(RequestModel):
    menu_id: int = Field(..., alias="menuId")
    can_view: bool = Field(False, alias="canView")
    can_create: bool = Field(False, alias="canCreate")
    can_update: bool = Field(False, alias="canUpdate")
    can_delete: bool = Field(False, alias="canDelete")

class MenuGrantReplace(RequestModel):
    role_id: int = Field(..., alias="roleId")
    menu_permissions: List[MenuGrant] = Field(..., alias="menuPermissions")


# ---- Button ----
class ButtonCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=200)
    identifier: str = Field(..., min_length=1, max_length=255)
    menu_id: int = Field(..., alias="menuId")
    is_active: bool = Field(True, alias="isActive")
    description: Optional[str] = None

class ButtonUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    identifier: Optional[str] = Field(None, min_length=1, max_length=255)
    menu_id: Optional[int] = Field(None, alias="menuId")
    is_active: Optional[bool] = Field(None, alias="isActive")
    description: Optional[str] = None

class ButtonGrant(RequestModel):
    button_id: int = Field(..., alias="buttonId")
    can_operate: bool = Field(False, alias="canOperate")

class ButtonGrantReplace(RequestModel):
    role_id: int = Field(..., alias="roleId")
    button_permissions: List[ButtonGrant] = Field(..., alias="buttonPermissions")


# ---- User permissions ----
class UserPermissionUpdate(RequestModel):
    full_name: Optional[str] = Field(None, alias="fullName")
    email: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = Field(None, alias="isActive")
    project_ids: Optional[List[Union[int, str]]] = Field(None, alias="projectIds")

class UserBatchUpdate(RequestModel):
    user_ids: List[int] = Field(..., min_length=1, alias="userIds")
    role: Optional[str] = None
    is_active: Optional[bool] = Field(None, alias="isActive")
    project_ids: Optional[List[Union[int, str]]] = Field(None, alias="projectIds")


# ---- Audit ----
class AuditCleanupRequest(RequestModel):
    before_date: Optional[datetime] = Field(None, alias="beforeDate")
    keep_days: Optional[int] = Field(None, ge=1, alias="keepDays")


# ---- Generic ----
class MessageResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[Any] = None
