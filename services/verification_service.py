"""
One-time code lifecycle: issue, resend, verify with attempt accounting,
expiry, status and clear.

State machine per (user, type):

    PENDING --wrong code--> PENDING (attempts + 1)
    PENDING --right code--> VERIFIED   (kept as audit row, never pending again)
    PENDING --past expiry-> EXPIRED    (deleted)
    PENDING --5th miss----> EXHAUSTED  (deleted)

Every transition is a conditional write keyed on the attempts value that was
read, so two concurrent verify calls cannot both consume the same attempt.
A lost race re-reads and re-evaluates.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from config import SecuritySettings
from errors import DeliveryError
from infrastructure.delivery import CodeSender, DeliveryPurpose
from repositories.user_repository import UserRepository
from repositories.verification_repository import VerificationRepository
from schemas.models.base import to_object_id
from schemas.models.user import UserDoc
from schemas.models.verification import VerificationCodeDoc, VerificationType
from shared.crypto import hash_token, tokens_match
from shared.datetime_utils import Clock, ensure_utc, utcnow
from shared.generators import IssuedCode, generate_code_with_ttl
from shared.logging import get_logger

log = get_logger(__name__)

_MAX_RACE_RETRIES = 3


class VerificationStatus(str, Enum):
    VERIFIED = "verified"
    INVALID = "invalid"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class VerificationOutcome:
    status: VerificationStatus
    # Only set for INVALID on an existing record
    remaining_attempts: Optional[int] = None
    # Failed attempts recorded on the code when the outcome was decided
    attempts: Optional[int] = None

    @property
    def verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED


@dataclass(frozen=True)
class PendingVerification:
    type: str
    contact: str
    expires_at: datetime
    attempts: int
    remaining_attempts: int


class VerificationService:
    def __init__(
        self,
        codes: VerificationRepository,
        users: UserRepository,
        sender: CodeSender,
        settings: SecuritySettings,
        clock: Clock = utcnow,
    ) -> None:
        self._codes = codes
        self._users = users
        self._sender = sender
        self._settings = settings
        self._clock = clock

    @property
    def max_attempts(self) -> int:
        return self._settings.otp_max_attempts

    # ── Issue ───────────────────────────────────────────────────────────────

    async def issue(
        self,
        user: UserDoc,
        verification_type: VerificationType | str,
        contact: Optional[str] = None,
    ) -> IssuedCode:
        """Replace any code for (user, type) with a fresh one and deliver it.

        Raises:
            DeliveryError: the provider failed or timed out; the new code has
                already been deleted, so nothing usable is left behind.
        """
        vtype = VerificationType(verification_type)
        contact = contact or _default_contact(user, vtype)
        now = self._clock()
        issued = generate_code_with_ttl(
            now, self._settings.otp_ttl_seconds, self._settings.otp_length
        )

        code_id = await self._codes.replace_pending(
            VerificationCodeDoc(
                user_id=user.id,
                type=vtype,
                code_hash=hash_token(issued.code),
                contact=contact,
                expires_at=issued.expires_at,
                created_at=now,
            )
        )

        if not await self._deliver(user, vtype, contact, issued.code):
            await self._codes.delete_if_matches(code_id)
            raise DeliveryError(
                f"Failed to send verification code to {vtype.channel.value}"
            )

        log.info(
            "verification_code_issued",
            user_id=str(user.id),
            verification_type=vtype.value,
            expires_at=issued.expires_at.isoformat(),
        )
        return issued

    async def resend(self, user: UserDoc, verification_type: VerificationType | str) -> IssuedCode:
        """Supersede the pending code; attempts start again from zero."""
        return await self.issue(user, verification_type)

    async def _deliver(self, user: UserDoc, vtype: VerificationType, contact: str, code: str) -> bool:
        purpose = (
            DeliveryPurpose.PASSWORD_RESET
            if vtype == VerificationType.PASSWORD_RESET
            else DeliveryPurpose.VERIFICATION
        )
        try:
            return await asyncio.wait_for(
                self._sender.send_code(contact, code, user.full_name, vtype.channel, purpose),
                timeout=self._settings.delivery_timeout_seconds,
            )
        except asyncio.TimeoutError:
            log.error(
                "verification_delivery_timeout",
                user_id=str(user.id),
                verification_type=vtype.value,
            )
        except Exception as e:
            log.error(
                "verification_delivery_error",
                user_id=str(user.id),
                verification_type=vtype.value,
                error=str(e),
                error_type=type(e).__name__,
            )
        return False

    # ── Verify ──────────────────────────────────────────────────────────────

    async def verify(
        self, user_id, verification_type: VerificationType | str, submitted_code: str
    ) -> VerificationOutcome:
        vtype = VerificationType(verification_type)
        oid = to_object_id(user_id)
        if oid is None:
            return VerificationOutcome(VerificationStatus.INVALID)

        for _ in range(_MAX_RACE_RETRIES):
            outcome = await self._attempt(oid, vtype, submitted_code)
            if outcome is not None:
                log.info(
                    "verification_attempt",
                    user_id=str(oid),
                    verification_type=vtype.value,
                    status=outcome.status.value,
                    attempts=outcome.attempts,
                )
                return outcome

        log.warning("verification_contention", user_id=str(oid), verification_type=vtype.value)
        return VerificationOutcome(VerificationStatus.INVALID)

    async def _attempt(self, user_id, vtype: VerificationType, submitted_code: str) -> Optional[VerificationOutcome]:
        """One read-evaluate-write round; ``None`` means the write lost a race."""
        now = self._clock()
        record = await self._codes.find_pending(user_id, vtype.value)
        if record is None:
            return VerificationOutcome(VerificationStatus.INVALID)

        if now >= ensure_utc(record.expires_at):
            await self._codes.delete(record.id)
            return VerificationOutcome(VerificationStatus.EXPIRED, attempts=record.attempts)

        if record.attempts >= self.max_attempts:
            await self._codes.delete(record.id)
            return VerificationOutcome(VerificationStatus.EXHAUSTED, attempts=record.attempts)

        if not tokens_match(submitted_code or "", record.code_hash):
            updated = await self._codes.increment_attempts(record.id, record.attempts, now)
            if updated is None:
                return None
            if updated.attempts >= self.max_attempts:
                await self._codes.delete_if_matches(updated.id, updated.attempts)
                return VerificationOutcome(
                    VerificationStatus.EXHAUSTED, remaining_attempts=0, attempts=updated.attempts
                )
            return VerificationOutcome(
                VerificationStatus.INVALID,
                remaining_attempts=self.max_attempts - updated.attempts,
                attempts=updated.attempts,
            )

        if await self._codes.mark_verified(record.id, record.attempts, now) is None:
            return None
        if vtype in (VerificationType.EMAIL, VerificationType.PHONE):
            await self._users.mark_contact_verified(user_id, vtype.value, now)
        return VerificationOutcome(VerificationStatus.VERIFIED, attempts=record.attempts)

    # ── Status / clear ──────────────────────────────────────────────────────

    async def pending(self, user_id) -> list[PendingVerification]:
        """Metadata of every live pending code; expired ones are deleted on the way."""
        oid = to_object_id(user_id)
        if oid is None:
            return []
        now = self._clock()
        result = []
        for record in await self._codes.list_pending(oid):
            expires_at = ensure_utc(record.expires_at)
            if now >= expires_at:
                await self._codes.delete(record.id)
                continue
            result.append(
                PendingVerification(
                    type=record.type,
                    contact=record.contact,
                    expires_at=expires_at,
                    attempts=record.attempts,
                    remaining_attempts=max(self.max_attempts - record.attempts, 0),
                )
            )
        return result

    async def clear(self, user_id) -> int:
        oid = to_object_id(user_id)
        if oid is None:
            return 0
        deleted = await self._codes.delete_pending_for_user(oid)
        log.info("pending_verifications_cleared", user_id=str(oid), deleted=deleted)
        return deleted


def _default_contact(user: UserDoc, vtype: VerificationType) -> str:
    return user.phone_number if vtype == VerificationType.PHONE else user.email
