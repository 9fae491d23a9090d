"""
API request and response models for the storefront auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from auth/models.py, which owns the internal CredentialRecord shape.
Route handlers map between the two with user_public().

Every response carries success: bool. Errors use ErrorResponse
({"success": false, "message", "code"}); password hashes and action-token
digests never appear in any model here.
"""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from auth.models import CredentialRecord, Role

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PASSWORD_MIN = 6
PASSWORD_MAX = 50
PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"

# Pydantic's pattern= runs on a regex engine without lookaheads, so the
# composition rule is checked in a validator instead.
_PASSWORD_RULES = (re.compile(r"[a-z]"), re.compile(r"[A-Z]"), re.compile(r"\d"))


def _check_password_strength(value: str) -> str:
    if not all(rule.search(value) for rule in _PASSWORD_RULES):
        raise ValueError(
            "Password must contain at least one lowercase letter, one uppercase letter, and one number"
        )
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN, max_length=PASSWORD_MAX)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=255)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1, max_length=255)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=PASSWORD_MIN, max_length=PASSWORD_MAX)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=255)
    new_password: str = Field(min_length=PASSWORD_MIN, max_length=PASSWORD_MAX)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


class UpdateProfileRequest(BaseModel):
    """Request body for PUT /api/v1/auth/profile. Omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserPublic(BaseModel):
    """Outward view of a CredentialRecord."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: Role
    is_active: bool
    is_email_verified: bool
    created_at: str = ""
    last_login: Optional[str] = None


def user_public(record: CredentialRecord) -> UserPublic:
    return UserPublic(
        id=record.id or "",
        email=record.email,
        first_name=record.first_name,
        last_name=record.last_name,
        phone=record.phone,
        role=record.role,
        is_active=record.is_active,
        is_email_verified=record.is_email_verified,
        created_at=record.created_at or "",
        last_login=record.last_login,
    )


class SessionData(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserPublic
    token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class SessionResponse(BaseModel):
    """Response for register and login."""

    success: bool = True
    message: str
    data: SessionData


class TokenData(BaseModel):
    token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh."""

    success: bool = True
    message: str = "Token refreshed"
    data: TokenData


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UserData(BaseModel):
    user: UserPublic


class UserResponse(BaseModel):
    success: bool = True
    message: str = ""
    data: UserData


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class UserListData(BaseModel):
    users: list[UserPublic]
    pagination: Pagination


class UserListResponse(BaseModel):
    success: bool = True
    data: UserListData


class UserStats(BaseModel):
    total_users: int
    verified_users: int
    active_users: int
    admin_users: int
    recent_users: int
    verification_rate: int


class UserStatsResponse(BaseModel):
    success: bool = True
    data: UserStats


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    message: str
    code: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
