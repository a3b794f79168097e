"""
Input validators and normalizers for account fields.

Email and phone normalization must run before every lookup and every write:
uniqueness is enforced on the normalized form.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

import validators as _validators

_PHONE_ALLOWED = re.compile(r"^\+?[\d\s\-()]+$")
_PHONE_STRIP = re.compile(r"[\s\-()]")

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128


def normalize_email(email: Optional[str]) -> str:
    """Trim and lower-case *email*; ``None`` becomes ``""``."""
    return (email or "").strip().lower()


def validate_email(email: str) -> bool:
    """Return True if *email* (already normalized) is a syntactically valid address."""
    if not email or len(email) > 254:
        return False
    return bool(_validators.email(email))


def normalize_phone(phone: Optional[str]) -> str:
    """Strip whitespace, dashes and parentheses, keeping a leading ``+``.

    ``"+1 (555) 010-2030"`` → ``"+15550102030"``
    """
    raw = (phone or "").strip()
    if not raw:
        return ""
    return _PHONE_STRIP.sub("", raw)


def validate_phone(raw_phone: str) -> bool:
    """Return True if *raw_phone* looks like a phone number.

    Accepts digits, spaces, dashes, parentheses and an optional leading ``+``;
    the normalized form must hold between 7 and 15 digits (E.164 range).
    """
    if not raw_phone or not _PHONE_ALLOWED.match(raw_phone.strip()):
        return False
    digits = normalize_phone(raw_phone).lstrip("+")
    return digits.isdigit() and 7 <= len(digits) <= 15


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Validate a password against the account password policy.

    Returns:
        Tuple[bool, List[str]]: (is_valid, missing_requirements)
    """
    if not password:
        return False, ["Password is required"]

    missing = []

    if len(password) < PASSWORD_MIN_LENGTH:
        missing.append("At least 8 characters")

    if len(password) > PASSWORD_MAX_LENGTH:
        missing.append("Maximum 128 characters")

    if not re.search(r"[A-Z]", password):
        missing.append("At least one uppercase letter")

    if not re.search(r"[a-z]", password):
        missing.append("At least one lowercase letter")

    if not re.search(r"[0-9]", password):
        missing.append("At least one number")

    if not re.search(r'[!@#$%^&*()_+\-=\[\]{};\':"\\|,.<>\/?~`]', password):
        missing.append("At least one special character")

    # Only allow safe characters
    if not re.match(
        r'^[a-zA-Z0-9!@#$%^&*()_+\-=\[\]{};\':"\\|,.<>\/?~`\s]+$', password
    ):
        missing.append("Contains invalid characters")

    return len(missing) == 0, missing


def get_password_requirements() -> List[str]:
    """Get list of all password requirements."""
    return [
        "At least 8 characters",
        "Maximum 128 characters",
        "At least one uppercase letter",
        "At least one lowercase letter",
        "At least one number",
        "At least one special character",
        "Only safe characters allowed",
    ]
