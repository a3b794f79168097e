"""
Password check and the lockout state machine.

    failures < 5          → counter += 1
    5th failure           → locked_until = now + 2h
    failure while locked  → counter += 1, lock not extended
    failure after expiry  → counter = 1, lock cleared
    success               → counter = 0, lock cleared

Login callers must check the lock before they ever look at the password, so a
locked account never reveals whether the supplied password was right.
A login for an unknown email still pays for one hash verification against a
throwaway hash, so response time does not tell known and unknown emails apart.
"""

from __future__ import annotations

import secrets
from datetime import timedelta
from enum import Enum
from typing import Optional

from config import SecuritySettings
from schemas.models.user import UserDoc
from repositories.user_repository import UserRepository
from shared.crypto import PasswordHasher
from shared.datetime_utils import Clock, ensure_utc, utcnow
from shared.logging import get_logger

log = get_logger(__name__)


class LockState(str, Enum):
    OK = "ok"
    LOCKED = "locked"


class CredentialService:
    def __init__(
        self,
        users: UserRepository,
        hasher: PasswordHasher,
        settings: SecuritySettings,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._hasher = hasher
        self._settings = settings
        self._clock = clock
        self._dummy_hash: Optional[str] = None

    def check_lock(self, user: UserDoc) -> LockState:
        return LockState.LOCKED if user.is_locked(self._clock()) else LockState.OK

    def verify_password(self, user: UserDoc, candidate: str) -> bool:
        return self._hasher.verify(candidate or "", user.password_hash)

    def verify_dummy_password(self, candidate: str) -> None:
        if self._dummy_hash is None:
            self._dummy_hash = self._hasher.hash(secrets.token_urlsafe(16))
        self._hasher.verify(candidate or "", self._dummy_hash)

    def hash_password(self, password: str) -> str:
        return self._hasher.hash(password)

    async def record_failure(self, user: UserDoc) -> None:
        now = self._clock()

        lock_elapsed = user.locked_until is not None and not user.is_locked(now)
        if lock_elapsed and await self._users.restart_failed_logins(user.id, now):
            log.warning("login_failure_recorded", user_id=str(user.id), failed_login_count=1)
            return

        count = await self._users.increment_failed_logins(user.id, now)
        if count is None:
            return

        locked = False
        if count >= self._settings.max_failed_logins:
            until = now + timedelta(seconds=self._settings.lockout_seconds)
            locked = await self._users.lock_until(user.id, until, now)
            if locked:
                log.warning(
                    "account_locked",
                    user_id=str(user.id),
                    failed_login_count=count,
                    locked_until=until.isoformat(),
                )

        if not locked:
            log.warning("login_failure_recorded", user_id=str(user.id), failed_login_count=count)

    async def record_success(self, user: UserDoc) -> None:
        await self._users.clear_failed_logins(user.id, self._clock())

    def lock_remaining_seconds(self, user: UserDoc) -> int:
        locked_until = ensure_utc(user.locked_until)
        if locked_until is None:
            return 0
        return max(int((locked_until - self._clock()).total_seconds()), 0)
