"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Security policy (OTP length/TTL, attempt cap, lockout) and rate-limit windows
live in their own sub-configs so deployments can tune them without touching
the state machines that enforce them.
"""

from __future__ import annotations

import ipaddress
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "ebanking-auth"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Only needed when several processes must share limiter state
    redis_uri: Optional[str] = None


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "ebanking"
    jwt_audience: str = "ebanking.api"
    access_token_ttl_seconds: int = 900

    # RS256 keys (preferred)
    jwt_private_key: str = ""
    jwt_public_key: str = ""

    # HS256 fallback (used when RS256 keys are absent)
    jwt_secret: str = ""

    @property
    def use_rs256(self) -> bool:
        return bool(self.jwt_private_key and self.jwt_public_key)


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@ebanking.app"
    zepto_from_name: str = "eBanking"


class SmsSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""


class SecuritySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_length: int = 6
    otp_ttl_seconds: int = 900  # 15 minutes for every code type
    otp_max_attempts: int = 5

    max_failed_logins: int = 5
    lockout_seconds: int = 7200  # 2 hours

    delivery_timeout_seconds: float = 10.0
    max_active_sessions: int = 10


class RateLimitSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Any `limits` async storage URI: async+memory://, async+redis://host:6379
    rate_limit_storage_uri: str = "async+memory://"
    rate_limit_strategy: str = "fixed-window"  # or "moving-window"

    # "N per period" strings, one per endpoint class
    rate_limit_login: str = "5 per 15 minutes"
    rate_limit_verification: str = "3 per 5 minutes"
    rate_limit_register: str = "5 per 15 minutes"
    rate_limit_password_reset: str = "3 per 15 minutes"
    rate_limit_refresh: str = "20 per minute"
    rate_limit_default: str = "100 per 15 minutes"

    # Peers (addresses or CIDR networks) whose forwarding headers are believed,
    # e.g. TRUSTED_PROXIES='["10.0.0.0/8"]'. Empty: always key on the socket peer.
    trusted_proxies: list[str] = []

    @field_validator("trusted_proxies")
    @classmethod
    def _check_networks(cls, value: list[str]) -> list[str]:
        for network in value:
            ipaddress.ip_network(network, strict=False)
        return value

    def limits_by_class(self) -> dict[str, str]:
        return {
            "login": self.rate_limit_login,
            "verification": self.rate_limit_verification,
            "register": self.rate_limit_register,
            "password_reset": self.rate_limit_password_reset,
            "refresh": self.rate_limit_refresh,
            "default": self.rate_limit_default,
        }


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_url: str = "https://ebanking.app"
    app_name: str = "eBanking"

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    jwt: Optional[JWTSettings] = None
    email: Optional[EmailSettings] = None
    sms: Optional[SmsSettings] = None
    security: Optional[SecuritySettings] = None
    rate_limit: Optional[RateLimitSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.sms is None:
            self.sms = SmsSettings()
        if self.security is None:
            self.security = SecuritySettings()
        if self.rate_limit is None:
            self.rate_limit = RateLimitSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
