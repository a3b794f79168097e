"""
Unit tests build settings objects directly or through monkeypatch.setenv();
neither a developer's .env nor their shell exports may leak into them.
"""

import pytest

_SERVICE_ENV = (
    "ENV",
    "MONGODB_URI",
    "REDIS_URI",
    "JWT_SECRET",
    "JWT_PRIVATE_KEY",
    "JWT_PUBLIC_KEY",
    "OTP_TTL_SECONDS",
    "OTP_MAX_ATTEMPTS",
    "MAX_FAILED_LOGINS",
    "LOCKOUT_SECONDS",
    "RATE_LIMIT_LOGIN",
    "RATE_LIMIT_STORAGE_URI",
    "TRUSTED_PROXIES",
)


@pytest.fixture(autouse=True)
def isolated_settings_env(monkeypatch):
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})
    for var in _SERVICE_ENV:
        monkeypatch.delenv(var, raising=False)
