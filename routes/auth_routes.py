"""
Authentication endpoints under /api/auth.

Each route declares its rate-limit class as a route dependency, so the
limiter counts the call before validation or any service work happens.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import get_auth_service, get_client_address, get_current_user_id, rate_limit
from schemas.dto.requests.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from schemas.dto.responses.auth import (
    LoginData,
    RegisterData,
    SessionResponse,
    UserProfileResponse,
)
from schemas.dto.responses.common import Envelope
from services.auth_service import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset code has been sent"


@router.post(
    "/register",
    status_code=201,
    response_model=Envelope[RegisterData],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("register"))],
)
async def register(
    body: RegisterRequest,
    client_ip: str = Depends(get_client_address),
    auth: AuthService = Depends(get_auth_service),
):
    result = await auth.register(
        full_name=body.full_name,
        email=body.email,
        phone_number=body.phone_number,
        password=body.password,
        signup_ip=client_ip or None,
    )
    return Envelope(
        message="Registration successful. Please verify your email and phone number.",
        data=RegisterData(
            user=UserProfileResponse.from_user(result.user),
            verification_sent=result.verification_sent,
        ),
    )


@router.post(
    "/login",
    response_model=Envelope[LoginData],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("login"))],
)
async def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    user, session = await auth.login(body.email, body.password)
    return Envelope(
        message="Login successful",
        data=LoginData(
            user=UserProfileResponse.from_user(user),
            tokens=SessionResponse.from_session(session),
        ),
    )


@router.post(
    "/refresh",
    response_model=Envelope[LoginData],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("refresh"))],
)
async def refresh(body: RefreshRequest, auth: AuthService = Depends(get_auth_service)):
    user, session = await auth.refresh(body.refresh_token)
    return Envelope(
        message="Token refreshed",
        data=LoginData(
            user=UserProfileResponse.from_user(user),
            tokens=SessionResponse.from_session(session),
        ),
    )


@router.post(
    "/logout",
    response_model=Envelope[None],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("default"))],
)
async def logout(
    body: LogoutRequest,
    user_id: str = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
):
    await auth.logout(user_id, body.refresh_token, all_sessions=body.all_sessions)
    return Envelope(message="Logged out successfully")


@router.get(
    "/me",
    response_model=Envelope[UserProfileResponse],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("default"))],
)
async def me(
    user_id: str = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
):
    user = await auth.get_user(user_id)
    return Envelope(message="User profile", data=UserProfileResponse.from_user(user))


@router.post(
    "/change-password",
    response_model=Envelope[None],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("login"))],
)
async def change_password(
    body: ChangePasswordRequest,
    user_id: str = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
):
    await auth.change_password(user_id, body.current_password, body.new_password)
    return Envelope(message="Password changed successfully. Please log in again.")


@router.post(
    "/forgot-password",
    response_model=Envelope[None],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("password_reset"))],
)
async def forgot_password(
    body: ForgotPasswordRequest, auth: AuthService = Depends(get_auth_service)
):
    await auth.forgot_password(body.email)
    return Envelope(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/reset-password",
    response_model=Envelope[None],
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit("password_reset"))],
)
async def reset_password(
    body: ResetPasswordRequest, auth: AuthService = Depends(get_auth_service)
):
    await auth.reset_password(body.email, body.code, body.new_password)
    return Envelope(message="Password reset successfully. Please log in with your new password.")
