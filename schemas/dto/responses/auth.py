"""
Response DTOs for authentication endpoints (the ``data`` part of the envelope).

UserProfileResponse — public view of a user; never carries password_hash or
                      token digests
SessionResponse     — access + refresh token pair
LoginData           — POST /api/auth/login, POST /api/auth/refresh
RegisterData        — POST /api/auth/register (201)
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import UserDoc
from services.token_service import Session


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


class UserProfileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    full_name: str
    email: str
    phone_number: str
    email_verified: bool
    phone_verified: bool
    role: str
    created_at: Optional[str] = None  # ISO 8601
    last_login_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: UserDoc) -> "UserProfileResponse":
        return cls(
            id=str(user.id),
            full_name=user.full_name,
            email=user.email,
            phone_number=user.phone_number,
            email_verified=user.email_verified,
            phone_verified=user.phone_verified,
            role=str(user.role),
            created_at=_iso(user.created_at),
            last_login_at=_iso(user.last_login_at),
        )


class SessionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            token_type=session.token_type,
            expires_in=session.expires_in,
        )


class LoginData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user: UserProfileResponse
    tokens: SessionResponse


class RegisterData(BaseModel):
    """No session is minted on registration; the client logs in afterwards."""

    model_config = ConfigDict(populate_by_name=True)

    user: UserProfileResponse
    verification_sent: dict[str, bool]
