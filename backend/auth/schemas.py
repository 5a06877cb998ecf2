# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth endpoints."""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128


# -- Requests --------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)


class UpdateProfileRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=32)
    date_of_birth: Optional[date] = None
    gender: Optional[Literal["male", "female", "other"]] = None
    avatar_url: Optional[str] = Field(None, max_length=500)

    # Empty form fields clear the stored value
    @field_validator("phone", "date_of_birth", "gender", "avatar_url", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return None if v == "" else v


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)


# -- Responses -------------------------------------------------------------


class MessageResponse(BaseModel):
    detail: str


class UserInfoResponse(BaseModel):
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
    roles: List[str] = []
    permissions: List[str] = []

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    detail: str
    user: UserInfoResponse


class SidebarItem(BaseModel):
    id: int
    name: str
    href: Optional[str] = None
    icon: str
    children: List["SidebarItem"] = []


class SidebarResponse(BaseModel):
    items: List[SidebarItem]
