"""Auth request/response schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from csvauth.context import SessionContext


class ApiResponse(BaseModel):
    success: bool
    message: str
    data: dict[str, Any] | None = None


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class AuthUser(BaseModel):
    """Redacted user projection; never carries the password hash."""

    id: int
    username: str
    email: str
    created_at: str | None = None
    last_login: str | None = None


class UserStats(BaseModel):
    member_since: str | None = None
    last_login: str | None = None
    total_logins: int = 0
    total_activities: int = 0


class AuthResult(BaseModel):
    """Structured outcome of a facade operation."""

    success: bool
    error: str | None = None
    errors: list[str] = Field(default_factory=list)
    error_kind: str | None = None
    status_code: int = 200
    user: AuthUser | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    context: SessionContext | None = None


class RegisterRequest(BaseModel):
    username: str = Field(max_length=255)
    email: str = Field(max_length=320)
    password: str = Field(max_length=1024)


class LoginRequest(BaseModel):
    username_or_email: str = Field(min_length=1, max_length=320)
    password: str = Field(max_length=1024)
    remember_me: bool = False


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(max_length=1024)
    new_password: str = Field(max_length=1024)


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1, max_length=256)
