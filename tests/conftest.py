"""
Shared fixtures: in-memory repositories, a controllable clock and a
recording code sender.

The fake repositories implement the same conditional semantics as the Mongo
ones (guards on attempts/verified/expires_at, uniqueness on email and phone,
one pending code per user and type), so services can be tested against them
without a database.
"""

from __future__ import annotations

import copy
from datetime import datetime, timedelta
from typing import Optional

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from config import JWTSettings, SecuritySettings
from schemas.models.base import to_object_id
from schemas.models.user import UserDoc
from schemas.models.verification import VerificationCodeDoc
from shared.datetime_utils import utcnow

TEST_JWT_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
STRONG_PASSWORD = "Str0ng!Passw0rd"


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        # Anchored to the real time so JWTs minted under it stay valid for PyJWT
        self.now = start or utcnow().replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class InMemoryUserRepository:
    def __init__(self) -> None:
        self.docs: dict[ObjectId, dict] = {}

    def _get(self, user_id) -> Optional[dict]:
        return self.docs.get(to_object_id(user_id))

    def _find(self, **criteria) -> Optional[dict]:
        for doc in self.docs.values():
            if all(doc.get(k) == v for k, v in criteria.items()):
                return doc
        return None

    @staticmethod
    def _out(doc: Optional[dict]) -> Optional[UserDoc]:
        return UserDoc.from_mongo(copy.deepcopy(doc)) if doc is not None else None

    async def find_by_id(self, user_id):
        return self._out(self._get(user_id))

    async def find_by_email(self, email):
        return self._out(self._find(email=email))

    async def find_by_phone(self, phone_number):
        return self._out(self._find(phone_number=phone_number))

    async def find_conflicting(self, email, phone_number):
        return self._out(self._find(email=email) or self._find(phone_number=phone_number))

    async def create(self, user: UserDoc) -> ObjectId:
        doc = user.to_mongo()
        if self._find(email=doc["email"]) or self._find(phone_number=doc["phone_number"]):
            raise DuplicateKeyError("E11000 duplicate key error")
        doc["_id"] = doc.get("_id") or ObjectId()
        self.docs[doc["_id"]] = doc
        return doc["_id"]

    async def restart_failed_logins(self, user_id, now):
        doc = self._get(user_id)
        if doc is None or doc.get("locked_until") is None or doc["locked_until"] > now:
            return False
        doc["failed_login_count"] = 1
        doc.pop("locked_until", None)
        return True

    async def increment_failed_logins(self, user_id, now):
        doc = self._get(user_id)
        if doc is None:
            return None
        doc["failed_login_count"] = doc.get("failed_login_count", 0) + 1
        return doc["failed_login_count"]

    async def lock_until(self, user_id, until, now):
        doc = self._get(user_id)
        if doc is None:
            return False
        current = doc.get("locked_until")
        if current is not None and current > now:
            return False
        doc["locked_until"] = until
        return True

    async def clear_failed_logins(self, user_id, now):
        doc = self._get(user_id)
        if doc is not None:
            doc["failed_login_count"] = 0
            doc["last_login_at"] = now
            doc.pop("locked_until", None)

    async def mark_contact_verified(self, user_id, verification_type, now):
        field = {"email": "email_verified", "phone": "phone_verified"}.get(verification_type)
        doc = self._get(user_id)
        if field is None or doc is None:
            return False
        doc[field] = True
        return True

    async def set_password(self, user_id, password_hash, now):
        doc = self._get(user_id)
        if doc is None:
            return False
        doc.update(
            password_hash=password_hash,
            password_changed_at=now,
            active_refresh_tokens=[],
            failed_login_count=0,
        )
        doc.pop("locked_until", None)
        return True

    async def push_refresh_token(self, user_id, digest, max_tokens):
        doc = self._get(user_id)
        if doc is None:
            return False
        doc["active_refresh_tokens"] = (doc.get("active_refresh_tokens", []) + [digest])[-max_tokens:]
        return True

    async def pull_refresh_token(self, user_id, digest):
        doc = self._get(user_id)
        if doc is None or digest not in doc.get("active_refresh_tokens", []):
            return False
        doc["active_refresh_tokens"] = [t for t in doc["active_refresh_tokens"] if t != digest]
        return True

    async def take_refresh_token(self, digest):
        for doc in self.docs.values():
            if digest in doc.get("active_refresh_tokens", []):
                doc["active_refresh_tokens"] = [t for t in doc["active_refresh_tokens"] if t != digest]
                return self._out(doc)
        return None

    async def clear_refresh_tokens(self, user_id):
        doc = self._get(user_id)
        if doc is None:
            return False
        doc["active_refresh_tokens"] = []
        return True


class InMemoryVerificationRepository:
    def __init__(self) -> None:
        self.docs: dict[ObjectId, dict] = {}

    @staticmethod
    def _out(doc: Optional[dict]) -> Optional[VerificationCodeDoc]:
        return VerificationCodeDoc.from_mongo(copy.deepcopy(doc)) if doc is not None else None

    def _guarded(self, code_id, expected_attempts, now) -> Optional[dict]:
        doc = self.docs.get(code_id)
        if (
            doc is None
            or doc["attempts"] != expected_attempts
            or doc["verified"]
            or not doc["expires_at"] > now
        ):
            return None
        return doc

    async def find_pending(self, user_id, verification_type):
        for doc in self.docs.values():
            if doc["user_id"] == user_id and doc["type"] == verification_type and not doc["verified"]:
                return self._out(doc)
        return None

    async def list_pending(self, user_id):
        pending = [d for d in self.docs.values() if d["user_id"] == user_id and not d["verified"]]
        return [self._out(d) for d in sorted(pending, key=lambda d: d["type"])]

    async def replace_pending(self, doc: VerificationCodeDoc) -> ObjectId:
        data = doc.to_mongo()
        for code_id in [
            k for k, d in self.docs.items()
            if d["user_id"] == data["user_id"] and d["type"] == data["type"]
        ]:
            del self.docs[code_id]
        data["_id"] = ObjectId()
        self.docs[data["_id"]] = data
        return data["_id"]

    async def increment_attempts(self, code_id, expected_attempts, now):
        doc = self._guarded(code_id, expected_attempts, now)
        if doc is None:
            return None
        doc["attempts"] += 1
        return self._out(doc)

    async def mark_verified(self, code_id, expected_attempts, now):
        doc = self._guarded(code_id, expected_attempts, now)
        if doc is None:
            return None
        doc["verified"] = True
        doc["verified_at"] = now
        return self._out(doc)

    async def delete(self, code_id):
        return self.docs.pop(code_id, None) is not None

    async def delete_if_matches(self, code_id, expected_attempts=None):
        doc = self.docs.get(code_id)
        if doc is None or doc["verified"]:
            return False
        if expected_attempts is not None and doc["attempts"] != expected_attempts:
            return False
        del self.docs[code_id]
        return True

    async def delete_pending_for_user(self, user_id):
        doomed = [k for k, d in self.docs.items() if d["user_id"] == user_id and not d["verified"]]
        for code_id in doomed:
            del self.docs[code_id]
        return len(doomed)


class RecordingSender:
    """CodeSender that remembers every code it was asked to deliver."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent: list[dict] = []

    async def send_code(self, contact, code, display_name, channel, purpose=None):
        self.sent.append(
            {"contact": contact, "code": code, "channel": channel, "purpose": purpose}
        )
        return self.succeed

    def last_code(self, contact: str) -> str:
        for item in reversed(self.sent):
            if item["contact"] == contact:
                return item["code"]
        raise AssertionError(f"no code sent to {contact}")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def users_repo():
    return InMemoryUserRepository()


@pytest.fixture
def codes_repo():
    return InMemoryVerificationRepository()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def security_settings():
    return SecuritySettings(
        otp_length=6,
        otp_ttl_seconds=900,
        otp_max_attempts=5,
        max_failed_logins=5,
        lockout_seconds=7200,
        delivery_timeout_seconds=1.0,
        max_active_sessions=10,
    )


@pytest.fixture
def jwt_settings():
    return JWTSettings(jwt_secret=TEST_JWT_SECRET, jwt_private_key="", jwt_public_key="")
