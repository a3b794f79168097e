"""
User document model.

Maps to the `users` MongoDB collection.

email and phone_number are stored normalized (see shared.validators) and
carry unique indexes. password_hash never leaves the service; route handlers
build their responses from UserProfileResponse instead of dumping this model.
active_refresh_tokens holds SHA-256 digests of the opaque refresh tokens.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import ensure_utc


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    full_name: str
    email: str
    phone_number: str
    password_hash: str
    email_verified: bool = False
    phone_verified: bool = False
    failed_login_count: int = Field(default=0, ge=0)
    locked_until: Optional[datetime] = None
    is_active: bool = True
    is_suspended: bool = False
    suspension_reason: Optional[str] = None
    role: UserRole = UserRole.USER
    active_refresh_tokens: list[str] = []
    signup_ip: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    password_changed_at: Optional[datetime] = None

    def is_locked(self, now: datetime) -> bool:
        locked_until = ensure_utc(self.locked_until)
        return locked_until is not None and locked_until > now

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
