"""
Code delivery: routes a one-time code to the email or SMS provider.

The verification engine only sees ``CodeSender.send_code`` and its boolean
outcome; provider-specific detail stays in the providers' logs.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Protocol

from infrastructure.email.protocol import EmailProvider
from infrastructure.sms.protocol import SmsProvider
from schemas.models.verification import DeliveryChannel


class DeliveryPurpose(str, Enum):
    VERIFICATION = "verification"
    PASSWORD_RESET = "password_reset"


class CodeSender(Protocol):
    async def send_code(
        self,
        contact: str,
        code: str,
        display_name: Optional[str],
        channel: DeliveryChannel,
        purpose: DeliveryPurpose = DeliveryPurpose.VERIFICATION,
    ) -> bool: ...


class CodeDelivery:
    def __init__(
        self,
        email_provider: EmailProvider,
        sms_provider: SmsProvider,
        app_name: str = "eBanking",
        code_ttl_minutes: int = 15,
    ) -> None:
        self._email = email_provider
        self._sms = sms_provider
        self._app_name = app_name
        self._ttl_minutes = code_ttl_minutes

    async def send_code(
        self,
        contact: str,
        code: str,
        display_name: Optional[str],
        channel: DeliveryChannel,
        purpose: DeliveryPurpose = DeliveryPurpose.VERIFICATION,
    ) -> bool:
        if channel == DeliveryChannel.SMS:
            return await self._sms.send_sms(contact, self._sms_body(code, display_name, purpose))
        if purpose == DeliveryPurpose.PASSWORD_RESET:
            return await self._email.send_password_reset_email(contact, display_name, code)
        return await self._email.send_verification_email(contact, display_name, code)

    def _sms_body(self, code: str, display_name: Optional[str], purpose: DeliveryPurpose) -> str:
        first_name = (display_name or "").split()[:1]
        greeting = f"Hi {first_name[0]}, " if first_name else ""
        action = "password reset" if purpose == DeliveryPurpose.PASSWORD_RESET else "verification"
        return (
            f"{greeting}your {self._app_name} {action} code is {code}. "
            f"It expires in {self._ttl_minutes} minutes."
        )
