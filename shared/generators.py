"""
Random one-time codes and opaque tokens.

All generators use cryptographically secure sources (``secrets`` module).
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class IssuedCode:
    """A freshly generated one-time code and the instant it stops being valid."""

    code: str
    expires_at: datetime


def generate_otp_code(length: int = 6) -> str:
    """Generate a cryptographically secure numeric OTP.

    Every digit is drawn independently, so the code is uniform over the whole
    space including leading zeros.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of random decimal digits.
    """
    return "".join(secrets.choice(string.digits) for _ in range(length))


def generate_code_with_ttl(now: datetime, ttl_seconds: int, length: int = 6) -> IssuedCode:
    """Return a new OTP together with ``now + ttl_seconds``."""
    return IssuedCode(
        code=generate_otp_code(length),
        expires_at=now + timedelta(seconds=ttl_seconds),
    )


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure URL-safe random token.

    Args:
        length: Number of random bytes before base64 encoding (default 32).
            The resulting string will be longer than *length* characters.

    Returns:
        URL-safe base64-encoded token string.
    """
    return secrets.token_urlsafe(length)
