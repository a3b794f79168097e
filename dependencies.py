"""
FastAPI dependency providers.

All injectable dependencies are plain functions used with Depends(). Services
are built once in the app lifespan and read from app.state here, so tests can
swap any of them by assigning a fake onto app.state.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from errors import AuthenticationError, RateLimitError
from services.auth_service import AuthService
from services.rate_limiter import RateLimiter
from services.token_service import TokenService
from shared.ip_utils import get_client_ip, source_key

RATE_LIMIT_MESSAGE = "Too many attempts, please try again later"

_bearer = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_trusted_proxies(request: Request) -> list[str]:
    return request.app.state.settings.rate_limit.trusted_proxies


def get_client_address(
    request: Request, trusted_proxies: list[str] = Depends(get_trusted_proxies)
) -> str:
    return get_client_ip(request, trusted_proxies)


def rate_limit(endpoint_class: str):
    """Dependency factory: count the call against the caller's IP in
    *endpoint_class* and reject with 429 once the window is full.

    Declared on the route so it runs before the body handler touches any
    service.
    """

    async def _enforce(
        request: Request,
        limiter: RateLimiter = Depends(get_rate_limiter),
        trusted_proxies: list[str] = Depends(get_trusted_proxies),
    ) -> None:
        if not await limiter.admit(source_key(request, trusted_proxies), endpoint_class):
            raise RateLimitError(RATE_LIMIT_MESSAGE)

    return _enforce


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    tokens: TokenService = Depends(get_token_service),
) -> str:
    """Resolve the caller from an ``Authorization: Bearer <access token>`` header."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")
    claims = tokens.verify_access(credentials.credentials)
    return claims["sub"]
