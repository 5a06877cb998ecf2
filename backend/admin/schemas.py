# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the administration endpoints."""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from core.permissions import PermissionName


def _permission_name(v: str) -> str:
    return str(PermissionName.parse(v.strip()))


# -- Users -----------------------------------------------------------------


class _UserFields(BaseModel):
    """Editable profile fields shared by create and update."""

    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=32)
    date_of_birth: Optional[date] = None
    gender: Optional[Literal["male", "female", "other"]] = None
    avatar_url: Optional[str] = Field(None, max_length=500)
    role_ids: List[int] = []

    # Forms send "" for an untouched optional field
    @field_validator("phone", "date_of_birth", "gender", "avatar_url", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return None if v == "" else v


class UserCreateRequest(_UserFields):
    password: str = Field(..., min_length=8, max_length=128)
    is_active: bool = True


class UserUpdateRequest(_UserFields):
    is_active: bool
    # Blank keeps the current password
    password: Optional[str] = Field(None, min_length=8, max_length=128)

    @field_validator("password", mode="before")
    @classmethod
    def blank_password(cls, v):
        return None if v == "" else v


class RoleRef(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class UserRow(BaseModel):
    id: int
    uuid: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    avatar_url: Optional[str] = None
    is_active: bool
    email_verified_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    created_at: datetime
    roles: List[RoleRef] = []

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    users: List[UserRow]


# -- Roles -----------------------------------------------------------------


class RoleRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    permission_ids: List[int] = []

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Role name must not be blank")
        return v


class PermissionRef(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class RoleRow(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime
    permissions: List[PermissionRef] = []
    user_count: int = 0


class RoleListResponse(BaseModel):
    roles: List[RoleRow]


# -- Permissions -----------------------------------------------------------


class PermissionRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return _permission_name(v)


class PermissionBulkItem(BaseModel):
    """``name`` is the resource; ``type`` (the action) is appended when given."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    type: Optional[str] = Field(None, max_length=50)

    @property
    def full_name(self) -> str:
        return _permission_name(f"{self.name}:{self.type}" if self.type else self.name)


class PermissionBulkRequest(BaseModel):
    permissions: List[PermissionBulkItem] = Field(..., min_length=1)


class PermissionRow(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime
    roles: List[RoleRef] = []

    model_config = {"from_attributes": True}


class PermissionListResponse(BaseModel):
    permissions: List[PermissionRow]


class BulkCreateResponse(BaseModel):
    created: List[str]
    skipped: List[str]


# -- User roles ------------------------------------------------------------


class AssignRolesRequest(BaseModel):
    role_ids: List[int] = []


class UserRoleRow(BaseModel):
    user_id: int
    user_email: str
    user_name: str
    role_id: int
    role_name: str
    created_at: datetime


class UserRoleListResponse(BaseModel):
    assignments: List[UserRoleRow]


# -- Menus -----------------------------------------------------------------


class MenuRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    href: Optional[str] = Field(None, max_length=255)
    icon: Optional[str] = Field(None, max_length=64)
    order: int = 0
    parent_id: Optional[int] = None
    permission_id: Optional[int] = None


class MenuRow(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    href: Optional[str] = None
    icon: Optional[str] = None
    order: int
    parent_id: Optional[int] = None
    permission_id: Optional[int] = None

    model_config = {"from_attributes": True}


class MenuListResponse(BaseModel):
    menus: List[MenuRow]


# -- Login history ---------------------------------------------------------


class LoginHistoryRow(BaseModel):
    id: int
    user_id: int
    user_email: Optional[str] = None
    user_name: Optional[str] = None
    status: str
    failure_reason: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    login_at: datetime


class LoginHistoryListResponse(BaseModel):
    entries: List[LoginHistoryRow]
