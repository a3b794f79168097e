"""Twilio implementation of SmsProvider, via the Messages REST endpoint."""

from config import SmsSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class TwilioSmsProvider:
    def __init__(self, settings: SmsSettings, http_client: HttpClient) -> None:
        self._settings = settings
        self._http = http_client

    @property
    def configured(self) -> bool:
        s = self._settings
        return bool(s.twilio_account_sid and s.twilio_auth_token and s.twilio_from_number)

    async def send_sms(self, phone_number: str, body: str) -> bool:
        if not self.configured:
            log.error("sms_send_failed", reason="twilio_not_configured")
            return False

        sid = self._settings.twilio_account_sid
        try:
            response = await self._http.post_form(
                _TWILIO_MESSAGES_URL.format(sid=sid),
                data={
                    "To": phone_number,
                    "From": self._settings.twilio_from_number,
                    "Body": body,
                },
                auth=(sid, self._settings.twilio_auth_token),
            )
        except Exception as e:
            log.error("sms_send_error", error=str(e), error_type=type(e).__name__)
            return False

        if response.status_code in (200, 201):
            log.info("sms_sent_success", to_suffix=phone_number[-4:])
            return True
        log.error(
            "sms_send_failed",
            status_code=response.status_code,
            response=response.text[:200],
        )
        return False
