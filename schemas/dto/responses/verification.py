"""
Response DTOs for contact verification endpoints.

VerifyCodeData         — POST /api/verification/verify-code
VerificationStatusData — GET /api/verification/status/{user_id}
ClearPendingData       — DELETE /api/verification/clear/{user_id}
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from services.auth_service import VerificationStatusReport


class VerifyCodeData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str
    verified: bool


class PendingVerificationItem(BaseModel):
    """Metadata of one pending code; the code itself is never returned."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    contact: str
    expires_at: str  # ISO 8601
    attempts: int
    remaining_attempts: int


class VerificationStatusData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str
    email_verified: bool
    phone_verified: bool
    pending: list[PendingVerificationItem]

    @classmethod
    def from_report(cls, report: VerificationStatusReport) -> "VerificationStatusData":
        return cls(
            user_id=report.user_id,
            email_verified=report.email_verified,
            phone_verified=report.phone_verified,
            pending=[
                PendingVerificationItem(
                    type=str(item.type),
                    contact=item.contact,
                    expires_at=item.expires_at.isoformat(),
                    attempts=item.attempts,
                    remaining_attempts=item.remaining_attempts,
                )
                for item in report.pending
            ],
        )


class ClearPendingData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deleted: int
