"""Unit tests for the infrastructure layer: HTTP client, delivery providers,
code routing and the Redis connection factory."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from config import EmailSettings, RedisSettings, SmsSettings
from infrastructure.delivery import CodeDelivery, DeliveryPurpose
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from infrastructure.redis_client import connect_redis, mask_uri
from infrastructure.sms.twilio import TwilioSmsProvider
from schemas.models.verification import DeliveryChannel


# ── HttpClient ────────────────────────────────────────────────────────────────


class TestHttpClient:
    async def test_post_delegates_to_httpx(self, mocker):
        client = HttpClient()
        fake_resp = MagicMock(status_code=200)
        mocker.patch.object(client._client, "post", return_value=fake_resp)
        resp = await client.post("http://example.com")
        assert resp.status_code == 200
        await client.aclose()

    async def test_post_form_passes_data_and_auth(self, mocker):
        client = HttpClient()
        post = mocker.patch.object(client._client, "post", return_value=MagicMock(status_code=201))
        await client.post_form("http://example.com", {"a": "1"}, auth=("u", "p"))
        post.assert_called_once_with("http://example.com", data={"a": "1"}, auth=("u", "p"))
        await client.aclose()

    async def test_post_propagates_exception(self, mocker):
        client = HttpClient()
        mocker.patch.object(client._client, "post", side_effect=Exception("timeout"))
        with pytest.raises(Exception, match="timeout"):
            await client.post("http://example.com")
        await client.aclose()

    async def test_context_manager(self):
        async with HttpClient() as client:
            assert client is not None


# ── ZeptoMailProvider ─────────────────────────────────────────────────────────


class TestZeptoMailProvider:
    def _make(self, token="test-token"):
        settings = EmailSettings(
            zepto_api_token=token,
            zepto_from_email="noreply@ebanking.app",
            zepto_from_name="eBanking",
        )
        http = MagicMock()
        return ZeptoMailProvider(settings=settings, http_client=http), http

    async def test_send_verification_renders_code(self):
        provider, http = self._make()
        http.post = AsyncMock(return_value=MagicMock(status_code=200))
        assert await provider.send_verification_email("user@example.com", "Alice", "042517") is True
        payload = http.post.await_args.kwargs["json"]
        assert payload["to"][0]["email_address"]["address"] == "user@example.com"
        assert "042517" in payload["htmlbody"]
        assert "15 minutes" in payload["textbody"]

    async def test_password_reset_uses_reset_template(self):
        provider, http = self._make()
        http.post = AsyncMock(return_value=MagicMock(status_code=201))
        assert await provider.send_password_reset_email("user@example.com", None, "999000") is True
        payload = http.post.await_args.kwargs["json"]
        assert payload["subject"].startswith("Reset your password")
        assert "999000" in payload["htmlbody"]

    async def test_authorization_header_prefixed(self):
        provider, http = self._make(token="abc")
        http.post = AsyncMock(return_value=MagicMock(status_code=200))
        await provider.send_verification_email("u@e.com", None, "000000")
        assert http.post.await_args.kwargs["headers"]["Authorization"] == "Zoho-enczapikey abc"

    async def test_returns_false_when_token_empty(self):
        provider, http = self._make(token="")
        http.post = AsyncMock()
        assert await provider.send_verification_email("u@e.com", None, "000000") is False
        http.post.assert_not_awaited()

    async def test_returns_false_on_non_2xx(self):
        provider, http = self._make()
        http.post = AsyncMock(return_value=MagicMock(status_code=422, text="Unprocessable"))
        assert await provider.send_verification_email("u@e.com", None, "000000") is False

    async def test_returns_false_on_exception(self):
        provider, http = self._make()
        http.post = AsyncMock(side_effect=Exception("timeout"))
        assert await provider.send_verification_email("u@e.com", None, "000000") is False


# ── TwilioSmsProvider ─────────────────────────────────────────────────────────


class TestTwilioSmsProvider:
    def _make(self, configured=True):
        settings = SmsSettings(
            twilio_account_sid="AC123" if configured else "",
            twilio_auth_token="secret" if configured else "",
            twilio_from_number="+15550000000" if configured else "",
        )
        http = MagicMock()
        return TwilioSmsProvider(settings, http), http

    async def test_send_posts_form_with_basic_auth(self):
        provider, http = self._make()
        http.post_form = AsyncMock(return_value=MagicMock(status_code=201))
        assert await provider.send_sms("+15550102030", "your code is 123456") is True
        args, kwargs = http.post_form.await_args
        assert args[0].endswith("/Accounts/AC123/Messages.json")
        assert kwargs["data"] == {
            "To": "+15550102030",
            "From": "+15550000000",
            "Body": "your code is 123456",
        }
        assert kwargs["auth"] == ("AC123", "secret")

    async def test_unconfigured_reports_failure(self):
        provider, http = self._make(configured=False)
        http.post_form = AsyncMock()
        assert provider.configured is False
        assert await provider.send_sms("+15550102030", "x") is False
        http.post_form.assert_not_awaited()

    async def test_error_status_is_failure(self):
        provider, http = self._make()
        http.post_form = AsyncMock(return_value=MagicMock(status_code=400, text="bad number"))
        assert await provider.send_sms("+1", "x") is False

    async def test_transport_error_is_failure(self):
        provider, http = self._make()
        http.post_form = AsyncMock(side_effect=Exception("connect timeout"))
        assert await provider.send_sms("+15550102030", "x") is False


# ── CodeDelivery ──────────────────────────────────────────────────────────────


class TestCodeDelivery:
    def _make(self):
        email = MagicMock()
        email.send_verification_email = AsyncMock(return_value=True)
        email.send_password_reset_email = AsyncMock(return_value=True)
        sms = MagicMock()
        sms.send_sms = AsyncMock(return_value=True)
        return CodeDelivery(email, sms, app_name="eBanking", code_ttl_minutes=15), email, sms

    async def test_email_verification(self):
        delivery, email, sms = self._make()
        ok = await delivery.send_code("j@x.io", "123456", "Jane Doe", DeliveryChannel.EMAIL)
        assert ok is True
        email.send_verification_email.assert_awaited_once_with("j@x.io", "Jane Doe", "123456")
        sms.send_sms.assert_not_awaited()

    async def test_password_reset_email(self):
        delivery, email, _ = self._make()
        await delivery.send_code(
            "j@x.io", "123456", "Jane", DeliveryChannel.EMAIL, DeliveryPurpose.PASSWORD_RESET
        )
        email.send_password_reset_email.assert_awaited_once_with("j@x.io", "Jane", "123456")
        email.send_verification_email.assert_not_awaited()

    async def test_sms_body_greets_by_first_name(self):
        delivery, _, sms = self._make()
        await delivery.send_code("+15550102030", "012345", "Jane Doe", DeliveryChannel.SMS)
        number, body = sms.send_sms.await_args.args
        assert number == "+15550102030"
        assert body.startswith("Hi Jane, ")
        assert "012345" in body
        assert "15 minutes" in body

    async def test_sms_body_without_name(self):
        delivery, _, sms = self._make()
        await delivery.send_code("+15550102030", "012345", "  ", DeliveryChannel.SMS)
        _, body = sms.send_sms.await_args.args
        assert body.startswith("your eBanking verification code is 012345")

    async def test_provider_failure_propagates_as_false(self):
        delivery, _, sms = self._make()
        sms.send_sms = AsyncMock(return_value=False)
        assert await delivery.send_code("+1555", "1", None, DeliveryChannel.SMS) is False


# ── Redis ─────────────────────────────────────────────────────────────────────


class TestConnectRedis:
    async def test_not_configured_returns_none(self):
        assert await connect_redis(RedisSettings(redis_uri=None)) is None

    async def test_ping_failure_returns_none(self, mocker):
        client = MagicMock()
        client.ping = AsyncMock(side_effect=RedisConnectionError("refused"))
        client.aclose = AsyncMock()
        mocker.patch("infrastructure.redis_client.aioredis.from_url", return_value=client)
        assert await connect_redis(RedisSettings(redis_uri="redis://localhost:6379")) is None
        client.aclose.assert_awaited_once()

    async def test_connected_client_returned(self, mocker):
        client = MagicMock()
        client.ping = AsyncMock(return_value=True)
        mocker.patch("infrastructure.redis_client.aioredis.from_url", return_value=client)
        assert await connect_redis(RedisSettings(redis_uri="redis://localhost:6379")) is client


@pytest.mark.parametrize(
    "uri, expected",
    [
        ("redis://user:pw@cache:6379/0", "redis://cache:6379/0"),
        ("redis://cache:6379", "redis://cache:6379"),
    ],
)
def test_mask_uri(uri, expected):
    assert mask_uri(uri) == expected
