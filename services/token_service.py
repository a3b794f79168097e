"""
Session tokens.

Access tokens are JWTs validated statelessly (signature, expiry, issuer,
audience); they are never stored, so revocation is by expiry alone.
Refresh tokens are opaque random strings whose SHA-256 digests live in the
user's ``active_refresh_tokens``; membership in that set is what makes a
refresh token valid, so removing the digest revokes it immediately.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Protocol

import jwt

from config import JWTSettings
from errors import AuthenticationError
from repositories.user_repository import UserRepository
from schemas.models.base import to_object_id
from shared.crypto import hash_token
from shared.datetime_utils import Clock, utcnow
from shared.generators import generate_secure_token
from shared.logging import get_logger

log = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"


class TokenSigner(Protocol):
    def sign(self, claims: dict[str, Any]) -> str: ...

    def verify(self, token: str) -> dict[str, Any]: ...


class JWTSigner:
    """PyJWT signer: RS256 when a key pair is configured, HS256 otherwise."""

    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings
        if settings.use_rs256:
            # Support keys provided via env with literal \n sequences
            self._signing_key: str | bytes = settings.jwt_private_key.replace("\\n", "\n").encode("utf-8")
            self._verify_key: str | bytes = settings.jwt_public_key.replace("\\n", "\n").encode("utf-8")
            self._algorithm = "RS256"
        else:
            if not settings.jwt_secret:
                raise RuntimeError("JWT_SECRET must be set when RS256 keys are not provided")
            self._signing_key = self._verify_key = settings.jwt_secret
            self._algorithm = "HS256"

    def sign(self, claims: dict[str, Any]) -> str:
        payload = {"iss": self._settings.jwt_issuer, "aud": self._settings.jwt_audience, **claims}
        return jwt.encode(payload, self._signing_key, algorithm=self._algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """Decode *token*; raises ``jwt.InvalidTokenError`` (or a subclass)."""
        return jwt.decode(
            token,
            self._verify_key,
            algorithms=[self._algorithm],
            audience=self._settings.jwt_audience,
            issuer=self._settings.jwt_issuer,
            options={"require": ["exp", "iat", "sub"]},
        )


@dataclass(frozen=True)
class Session:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


class TokenService:
    def __init__(
        self,
        users: UserRepository,
        signer: TokenSigner,
        settings: JWTSettings,
        max_active_sessions: int = 10,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._signer = signer
        self._settings = settings
        self._max_sessions = max_active_sessions
        self._clock = clock

    def create_access_token(self, user_id, auth_method: str = "pwd") -> str:
        now = self._clock()
        return self._signer.sign(
            {
                "sub": str(user_id),
                "iat": int(now.timestamp()),
                "exp": int((now + timedelta(seconds=self._settings.access_token_ttl_seconds)).timestamp()),
                "jti": uuid.uuid4().hex,
                "type": ACCESS_TOKEN_TYPE,
                "amr": [auth_method],  # Authentication Methods References
            }
        )

    def verify_access(self, token: str) -> dict[str, Any]:
        """Stateless validation of an access token.

        Raises:
            AuthenticationError: bad signature, expired, wrong audience/issuer
                or not an access token.
        """
        try:
            claims = self._signer.verify(token)
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Session expired. Please log in again.") from None
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token. Please log in again.") from None
        if claims.get("type") != ACCESS_TOKEN_TYPE:
            raise AuthenticationError("Invalid token. Please log in again.")
        return claims

    async def issue_session(self, user_id, auth_method: str = "pwd") -> Session:
        oid = to_object_id(user_id)
        refresh_token = generate_secure_token()
        await self._users.push_refresh_token(oid, hash_token(refresh_token), self._max_sessions)
        log.info("session_issued", user_id=str(oid), auth_method=auth_method)
        return Session(
            access_token=self.create_access_token(oid, auth_method),
            refresh_token=refresh_token,
            expires_in=self._settings.access_token_ttl_seconds,
        )

    async def rotate(self, refresh_token: str):
        """Swap a live refresh token for a new session.

        Returns:
            ``(user, session)``; the user as stored after the old token was
            removed.

        Raises:
            AuthenticationError: the token is not in any user's active set.
        """
        if not refresh_token:
            raise AuthenticationError("Invalid or expired refresh token")
        user = await self._users.take_refresh_token(hash_token(refresh_token))
        if user is None:
            log.warning("token_refresh_failed", reason="unknown_refresh_token")
            raise AuthenticationError("Invalid or expired refresh token")
        session = await self.issue_session(user.id, auth_method="refresh")
        log.info("token_refreshed", user_id=str(user.id))
        return user, session

    async def revoke(self, user_id, refresh_token: str) -> bool:
        """Drop exactly *refresh_token*; ``False`` when it was not active (not an error)."""
        oid = to_object_id(user_id)
        if oid is None or not refresh_token:
            return False
        removed = await self._users.pull_refresh_token(oid, hash_token(refresh_token))
        log.info("refresh_token_revoked", user_id=str(oid), was_active=removed)
        return removed

    async def revoke_all(self, user_id) -> None:
        oid = to_object_id(user_id)
        if oid is None:
            return
        await self._users.clear_refresh_tokens(oid)
        log.info("refresh_tokens_revoked_all", user_id=str(oid))
