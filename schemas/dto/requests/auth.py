"""
Request DTOs for authentication endpoints.

RegisterRequest        — POST /api/auth/register
LoginRequest           — POST /api/auth/login
RefreshRequest         — POST /api/auth/refresh
LogoutRequest          — POST /api/auth/logout
ChangePasswordRequest  — POST /api/auth/change-password
ForgotPasswordRequest  — POST /api/auth/forgot-password
ResetPasswordRequest   — POST /api/auth/reset-password

Format and policy checks (email syntax, phone shape, password strength) run in
AuthService so they produce field-level ValidationErrors; these models only
guarantee presence and rough size.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register."""

    model_config = ConfigDict(populate_by_name=True)

    full_name: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=254)
    phone_number: str = Field(max_length=32)
    password: str = Field(max_length=128)


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    """Request body for POST /api/auth/logout.

    ``all_sessions`` revokes every refresh token of the caller instead of
    just ``refresh_token``.
    """

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: Optional[str] = None
    all_sessions: bool = False


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str
    new_password: str


class ForgotPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/auth/reset-password.

    ``code`` is the 6-digit code sent by forgot-password.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str
    code: str = Field(min_length=1, max_length=12)
    new_password: str
