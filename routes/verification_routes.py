"""
Contact verification endpoints under /api/verification.

send-verification answers the same way whether or not the account exists;
status and clear are restricted to the account itself or an admin.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import get_auth_service, get_current_user_id, rate_limit
from schemas.dto.requests.verification import SendVerificationRequest, VerifyCodeRequest
from schemas.dto.responses.common import Envelope
from schemas.dto.responses.verification import (
    ClearPendingData,
    VerificationStatusData,
    VerifyCodeData,
)
from services.auth_service import AuthService

router = APIRouter(prefix="/api/verification", tags=["verification"])

SEND_VERIFICATION_MESSAGE = "If the account exists, a verification code has been sent"


@router.post(
    "/send-verification",
    response_model=Envelope[None],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("verification"))],
)
async def send_verification(
    body: SendVerificationRequest, auth: AuthService = Depends(get_auth_service)
):
    await auth.send_verification(
        body.type,
        user_id=body.user_id,
        email=body.email,
        phone_number=body.phone_number,
    )
    return Envelope(message=SEND_VERIFICATION_MESSAGE)


@router.post(
    "/verify-code",
    response_model=Envelope[VerifyCodeData],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("verification"))],
)
async def verify_code(body: VerifyCodeRequest, auth: AuthService = Depends(get_auth_service)):
    await auth.verify_code(body.user_id, body.type, body.code)
    return Envelope(
        message="Verification successful",
        data=VerifyCodeData(type=body.type, verified=True),
    )


@router.get(
    "/status/{user_id}",
    response_model=Envelope[VerificationStatusData],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("default"))],
)
async def verification_status(
    user_id: str,
    requester_id: str = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
):
    report = await auth.verification_status(requester_id, user_id)
    return Envelope(
        message="Verification status",
        data=VerificationStatusData.from_report(report),
    )


@router.delete(
    "/clear/{user_id}",
    response_model=Envelope[ClearPendingData],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("default"))],
)
async def clear_pending_verifications(
    user_id: str,
    requester_id: str = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
):
    deleted = await auth.clear_pending(requester_id, user_id)
    return Envelope(
        message="Pending verifications cleared",
        data=ClearPendingData(deleted=deleted),
    )
