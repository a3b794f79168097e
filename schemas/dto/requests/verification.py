"""
Request DTOs for contact verification endpoints.

SendVerificationRequest — POST /api/verification/send-verification
VerifyCodeRequest       — POST /api/verification/verify-code
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SendVerificationRequest(BaseModel):
    """The account may be identified by id, email or phone number.

    ``type`` is checked by the service: only ``email`` and ``phone`` are
    accepted here, password-reset codes come from forgot-password.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: str
    user_id: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None


class VerifyCodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str
    type: str
    code: str = Field(min_length=1, max_length=12)
