"""ZeptoMail implementation of EmailProvider.

Renders the HTML body from Jinja2 templates under ``templates/emails`` and
posts it to the ZeptoMail HTTP API through the shared HttpClient. Every
failure (unconfigured token, non-2xx, transport error) is logged and reported
as ``False``; the caller decides what a failed send means.
"""

import os
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.com/v1.1/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class ZeptoMailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_name: str = "eBanking",
        code_ttl_minutes: int = 15,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_name = app_name
        self._ttl_minutes = code_ttl_minutes
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def _send(
        self,
        to_email: str,
        to_name: Optional[str],
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [
                {
                    "email_address": {
                        "address": to_email,
                        "name": to_name or to_email,
                    }
                }
            ],
            "subject": subject,
            "htmlbody": html_body,
        }
        if text_body:
            payload["textbody"] = text_body

        api_key = self._settings.zepto_api_token
        if not api_key.startswith("Zoho-enczapikey "):
            api_key = f"Zoho-enczapikey {api_key}"

        headers = {"Authorization": api_key, "Content-Type": "application/json"}

        try:
            response = await self._http.post(
                _ZEPTO_API_URL, json=payload, headers=headers
            )
        except Exception as e:
            log.error(
                "email_send_error",
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.status_code in (200, 201, 202):
            log.info("email_sent_success", subject=subject)
            return True
        log.error(
            "email_sent_failed",
            subject=subject,
            status_code=response.status_code,
            response=response.text[:200],
        )
        return False

    def _render(self, template_name: str, otp_code: str, full_name: Optional[str]) -> str:
        template = self._jinja.get_template(template_name)
        return template.render(
            otp_code=otp_code,
            full_name=full_name,
            app_name=self._app_name,
            ttl_minutes=self._ttl_minutes,
        )

    async def send_verification_email(
        self, email: str, full_name: Optional[str], otp_code: str
    ) -> bool:
        subject = f"Verify your email - {self._app_name}"
        html_body = self._render("verification.html", otp_code, full_name)
        text_body = (
            f"Hello{f' {full_name}' if full_name else ''},\n\n"
            f"Your verification code is: {otp_code}\n\n"
            f"This code expires in {self._ttl_minutes} minutes."
        )
        return await self._send(email, full_name, subject, html_body, text_body)

    async def send_password_reset_email(
        self, email: str, full_name: Optional[str], otp_code: str
    ) -> bool:
        subject = f"Reset your password - {self._app_name}"
        html_body = self._render("password_reset.html", otp_code, full_name)
        text_body = (
            f"Hello{f' {full_name}' if full_name else ''},\n\n"
            f"Your password reset code is: {otp_code}\n\n"
            f"This code expires in {self._ttl_minutes} minutes. "
            f"If you did not ask for a reset, you can ignore this email."
        )
        return await self._send(email, full_name, subject, html_body, text_body)
