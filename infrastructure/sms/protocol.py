"""SMS side of code delivery."""

from typing import Protocol


class SmsProvider(Protocol):
    async def send_sms(self, phone_number: str, body: str) -> bool: ...
