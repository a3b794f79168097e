"""
AuthService: the public account operations.

Orchestrates the credential verifier, the verification engine and the token
issuer on top of the user repository. Route handlers stay thin: they parse
the request, call one method here and shape the envelope.

Enumeration resistance: login, send_verification, forgot_password and
reset_password answer an unknown account exactly like the matching failure
for a known one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pymongo.errors import DuplicateKeyError

from errors import (
    AttemptsExhaustedError,
    AuthenticationError,
    CodeExpiredError,
    ConflictError,
    DeliveryError,
    ForbiddenError,
    InvalidCodeError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from repositories.user_repository import UserRepository
from schemas.models.base import to_object_id
from schemas.models.user import UserDoc
from schemas.models.verification import VerificationType
from services.credential_service import CredentialService, LockState
from services.token_service import Session, TokenService
from services.verification_service import (
    PendingVerification,
    VerificationOutcome,
    VerificationService,
    VerificationStatus,
)
from shared.datetime_utils import Clock, utcnow
from shared.logging import get_logger
from shared.validators import (
    normalize_email,
    normalize_phone,
    validate_email,
    validate_password,
    validate_phone,
)

log = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_CODE = "Invalid verification code"

_CONTACT_TYPES = (VerificationType.EMAIL, VerificationType.PHONE)


@dataclass
class RegistrationResult:
    user: UserDoc
    verification_sent: dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class VerificationStatusReport:
    user_id: str
    email_verified: bool
    phone_verified: bool
    pending: list[PendingVerification]


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        credentials: CredentialService,
        verification: VerificationService,
        tokens: TokenService,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._credentials = credentials
        self._verification = verification
        self._tokens = tokens
        self._clock = clock

    # ── Registration ────────────────────────────────────────────────────────

    async def register(
        self,
        full_name: str,
        email: str,
        phone_number: str,
        password: str,
        signup_ip: Optional[str] = None,
    ) -> RegistrationResult:
        """Create the account and send email + phone codes (best effort).

        Raises:
            ValidationError: malformed name, email, phone or weak password.
            ConflictError: email or phone number already registered.
        """
        full_name = (full_name or "").strip()
        if not full_name:
            raise ValidationError("Full name is required", field="full_name")

        email = normalize_email(email)
        if not validate_email(email):
            raise ValidationError("Invalid email address", field="email")

        if not validate_phone(phone_number):
            raise ValidationError("Invalid phone number", field="phone_number")
        phone_number = normalize_phone(phone_number)

        is_valid, missing = validate_password(password)
        if not is_valid:
            raise ValidationError(
                "Password does not meet requirements",
                field="password",
                details={"missing_requirements": missing},
            )

        existing = await self._users.find_conflicting(email, phone_number)
        if existing is not None:
            raise _conflict_for(existing, email)

        now = self._clock()
        user = UserDoc(
            full_name=full_name,
            email=email,
            phone_number=phone_number,
            password_hash=self._credentials.hash_password(password),
            signup_ip=signup_ip,
            created_at=now,
            updated_at=now,
        )
        try:
            user_id = await self._users.create(user)
        except DuplicateKeyError:
            # Lost a race against a concurrent registration for the same contact
            raise ConflictError("Email or phone number already registered") from None

        user = user.model_copy(update={"id": user_id})
        log.info("user_registered", user_id=str(user_id))

        sent: dict[str, bool] = {}
        for vtype in _CONTACT_TYPES:
            try:
                await self._verification.issue(user, vtype)
                sent[vtype.value] = True
            except DeliveryError:
                sent[vtype.value] = False
                log.warning(
                    "registration_code_not_sent",
                    user_id=str(user_id),
                    verification_type=vtype.value,
                )
        return RegistrationResult(user=user, verification_sent=sent)

    # ── Sessions ────────────────────────────────────────────────────────────

    async def login(self, email: str, password: str) -> tuple[UserDoc, Session]:
        user = await self._users.find_by_email(normalize_email(email))
        if user is None:
            self._credentials.verify_dummy_password(password)
            log.warning("login_failed", reason="unknown_email")
            raise AuthenticationError(INVALID_CREDENTIALS)

        if self._credentials.check_lock(user) is LockState.LOCKED:
            log.warning("login_blocked", user_id=str(user.id), reason="locked")
            raise LockedError(
                "Account is temporarily locked due to too many failed login attempts",
                details={"retry_after_seconds": self._credentials.lock_remaining_seconds(user)},
            )

        _ensure_usable(user)

        if not self._credentials.verify_password(user, password):
            await self._credentials.record_failure(user)
            log.warning("login_failed", user_id=str(user.id), reason="invalid_password")
            raise AuthenticationError(INVALID_CREDENTIALS)

        await self._credentials.record_success(user)
        session = await self._tokens.issue_session(user.id, auth_method="pwd")
        log.info("login_success", user_id=str(user.id))
        return user, session

    async def refresh(self, refresh_token: str) -> tuple[UserDoc, Session]:
        user, session = await self._tokens.rotate(refresh_token)
        try:
            _ensure_usable(user)
        except ForbiddenError:
            await self._tokens.revoke_all(user.id)
            raise
        return user, session

    async def logout(self, user_id, refresh_token: Optional[str], all_sessions: bool = False) -> None:
        if all_sessions:
            await self._tokens.revoke_all(user_id)
        elif refresh_token:
            await self._tokens.revoke(user_id, refresh_token)
        log.info("logout", user_id=str(user_id), all_sessions=all_sessions)

    async def get_user(self, user_id) -> UserDoc:
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    # ── Passwords ───────────────────────────────────────────────────────────

    async def change_password(self, user_id, current_password: str, new_password: str) -> None:
        user = await self.get_user(user_id)

        if self._credentials.check_lock(user) is LockState.LOCKED:
            raise LockedError(
                "Account is temporarily locked due to too many failed login attempts",
                details={"retry_after_seconds": self._credentials.lock_remaining_seconds(user)},
            )

        if not self._credentials.verify_password(user, current_password):
            await self._credentials.record_failure(user)
            log.warning("password_change_failed", user_id=str(user.id), reason="invalid_current_password")
            raise AuthenticationError("Current password is incorrect", field="current_password")

        _check_password_policy(new_password, field_name="new_password")
        if self._credentials.verify_password(user, new_password):
            raise ValidationError(
                "New password must be different from the current password",
                field="new_password",
            )

        await self._users.set_password(
            user.id, self._credentials.hash_password(new_password), self._clock()
        )
        log.info("password_changed", user_id=str(user.id))

    async def forgot_password(self, email: str) -> None:
        """Send a reset code when the account exists; silent otherwise."""
        user = await self._users.find_by_email(normalize_email(email))
        if user is None:
            log.info("password_reset_requested", account_found=False)
            return
        try:
            await self._verification.issue(user, VerificationType.PASSWORD_RESET)
            log.info("password_reset_requested", account_found=True, user_id=str(user.id))
        except DeliveryError:
            log.error("password_reset_code_not_sent", user_id=str(user.id))

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        _check_password_policy(new_password, field_name="new_password")

        user = await self._users.find_by_email(normalize_email(email))
        if user is None:
            log.warning("password_reset_failed", reason="unknown_email")
            raise InvalidCodeError(INVALID_CODE)

        outcome = await self._verification.verify(user.id, VerificationType.PASSWORD_RESET, code)
        if outcome.status is not VerificationStatus.VERIFIED:
            log.warning("password_reset_failed", user_id=str(user.id), reason=outcome.status.value)
            raise InvalidCodeError(INVALID_CODE)

        await self._users.set_password(
            user.id, self._credentials.hash_password(new_password), self._clock()
        )
        log.info("password_reset_completed", user_id=str(user.id))

    # ── Contact verification ────────────────────────────────────────────────

    async def send_verification(
        self,
        verification_type: str,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
    ) -> None:
        """Issue a contact-verification code.

        Returns silently for unknown accounts, already-verified contacts and
        failed deliveries, so the response never tells whether the account
        exists.

        Raises:
            ValidationError: unsupported type or no account identifier.
        """
        vtype = _contact_type(verification_type)
        if not (user_id or email or phone_number):
            raise ValidationError("user_id, email or phone_number is required")

        user = await self._lookup(user_id, email, phone_number)
        if user is None:
            log.info("verification_requested", account_found=False, verification_type=vtype.value)
            return

        already = user.email_verified if vtype is VerificationType.EMAIL else user.phone_verified
        if already:
            log.info("verification_requested", user_id=str(user.id), verification_type=vtype.value, already_verified=True)
            return

        try:
            await self._verification.issue(user, vtype)
        except DeliveryError:
            log.error("verification_code_not_sent", user_id=str(user.id), verification_type=vtype.value)

    async def verify_code(self, user_id: str, verification_type: str, code: str) -> VerificationOutcome:
        vtype = _contact_type(verification_type)
        outcome = await self._verification.verify(user_id, vtype, code)
        _raise_for_outcome(outcome)
        return outcome

    async def verification_status(self, requester_id, user_id) -> VerificationStatusReport:
        user = await self._authorize_target(requester_id, user_id)
        return VerificationStatusReport(
            user_id=str(user.id),
            email_verified=user.email_verified,
            phone_verified=user.phone_verified,
            pending=await self._verification.pending(user.id),
        )

    async def clear_pending(self, requester_id, user_id) -> int:
        user = await self._authorize_target(requester_id, user_id)
        return await self._verification.clear(user.id)

    # ── Helpers ─────────────────────────────────────────────────────────────

    async def _lookup(self, user_id, email, phone_number) -> Optional[UserDoc]:
        if user_id:
            return await self._users.find_by_id(user_id)
        if email:
            return await self._users.find_by_email(normalize_email(email))
        return await self._users.find_by_phone(normalize_phone(phone_number))

    async def _authorize_target(self, requester_id, user_id) -> UserDoc:
        """Self or admin. A non-admin asking about someone else gets 403 whether
        or not that user exists."""
        target_oid = to_object_id(user_id)
        if str(requester_id) != str(user_id):
            requester = await self._users.find_by_id(requester_id)
            if requester is None or not requester.is_admin:
                raise ForbiddenError("You can only access your own verification data")
        if target_oid is None:
            raise NotFoundError("User not found")
        return await self.get_user(target_oid)


def _ensure_usable(user: UserDoc) -> None:
    if user.is_suspended:
        log.warning("login_blocked", user_id=str(user.id), reason="suspended")
        raise ForbiddenError(
            "Account is suspended",
            details={"reason": user.suspension_reason} if user.suspension_reason else None,
        )
    if not user.is_active:
        log.warning("login_blocked", user_id=str(user.id), reason="inactive")
        raise ForbiddenError("Account is deactivated")


def _check_password_policy(password: str, field_name: str) -> None:
    is_valid, missing = validate_password(password)
    if not is_valid:
        raise ValidationError(
            "Password does not meet requirements",
            field=field_name,
            details={"missing_requirements": missing},
        )


def _contact_type(value: str) -> VerificationType:
    try:
        vtype = VerificationType(value)
    except ValueError:
        vtype = None
    if vtype not in _CONTACT_TYPES:
        raise ValidationError("type must be 'email' or 'phone'", field="type")
    return vtype


def _conflict_for(existing: UserDoc, email: str) -> ConflictError:
    if existing.email == email:
        return ConflictError("Email already registered", field="email")
    return ConflictError("Phone number already registered", field="phone_number")


def _raise_for_outcome(outcome: VerificationOutcome) -> None:
    if outcome.status is VerificationStatus.VERIFIED:
        return
    if outcome.status is VerificationStatus.EXPIRED:
        raise CodeExpiredError("Verification code has expired. Please request a new one.")
    if outcome.status is VerificationStatus.EXHAUSTED:
        raise AttemptsExhaustedError("Too many failed attempts. Please request a new code.")
    details = None
    if outcome.remaining_attempts is not None:
        details = {"remaining_attempts": outcome.remaining_attempts}
    raise InvalidCodeError(INVALID_CODE, details=details)
