"""
Verification code document model.

Maps to the `verification-codes` MongoDB collection.

One document per issued one-time code. code_hash stores SHA-256(code); the
plain code is never stored. At most one document per (user_id, type) may have
verified=False; a partial unique index backs that rule. attempts counts failed
submissions and the document is deleted once it reaches the cap.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel, PyObjectId


class VerificationType(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    PASSWORD_RESET = "password_reset"

    @property
    def channel(self) -> "DeliveryChannel":
        return DeliveryChannel.SMS if self is VerificationType.PHONE else DeliveryChannel.EMAIL


class DeliveryChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


class VerificationCodeDoc(MongoBaseModel):
    """Document model for the `verification-codes` collection."""

    user_id: PyObjectId
    type: VerificationType
    code_hash: str
    contact: str
    verified: bool = False
    attempts: int = Field(default=0, ge=0)
    expires_at: datetime
    created_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
