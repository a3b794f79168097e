"""
Password hashing (argon2) and token digests (SHA-256).

Uses argon2 for passwords (via argon2-cffi) and SHA-256 for OTP codes and
refresh tokens. Services depend on the ``PasswordHasher`` protocol so the
primitive can be swapped without touching the lockout state machine.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Protocol

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError


class PasswordHasher(Protocol):
    def hash(self, password: str) -> str: ...

    def verify(self, password: str, digest: str) -> bool: ...


class Argon2PasswordHasher:
    """argon2id implementation of ``PasswordHasher``."""

    def __init__(self) -> None:
        self._hasher = _Argon2Hasher()

    def hash(self, password: str) -> str:
        """Return an argon2 hash string (includes parameters and salt)."""
        return self._hasher.hash(password)

    def verify(self, password: str, digest: str) -> bool:
        """``True`` if *password* matches *digest*; ``False`` for any mismatch
        or malformed digest."""
        if not digest:
            return False
        try:
            return self._hasher.verify(digest, password)
        except (VerificationError, InvalidHashError):
            return False


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Used to hash OTP codes and refresh tokens before storing them in the
    database so the plaintext is never persisted.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def tokens_match(plain: str, digest: str) -> bool:
    """Constant-time comparison of ``hash_token(plain)`` against *digest*."""
    return hmac.compare_digest(hash_token(plain), digest)
