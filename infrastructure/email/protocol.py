"""Email side of code delivery; CodeDelivery picks the method by purpose."""

from typing import Optional, Protocol


class EmailProvider(Protocol):
    async def send_verification_email(
        self, email: str, full_name: Optional[str], otp_code: str
    ) -> bool: ...

    async def send_password_reset_email(
        self, email: str, full_name: Optional[str], otp_code: str
    ) -> bool: ...
