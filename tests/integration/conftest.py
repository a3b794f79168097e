"""
Integration fixtures: the real routers, error handlers, request middleware,
services and rate limiter, over the in-memory repositories from
tests/conftest.py. The lifespan only assigns app.state, so no network
connection is ever made.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from limits.aio.storage import MemoryStorage
from limits.aio.strategies import FixedWindowRateLimiter

from app import build_services
from config import AppSettings, DatabaseSettings, RateLimitSettings
from errors import register_error_handlers
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from routes.verification_routes import router as verification_router
from services.rate_limiter import RateLimiter
from shared.log_context import setup_logging_middleware


@pytest.fixture
def make_client(users_repo, codes_repo, sender, clock, security_settings, jwt_settings):
    """Factory: ``make_client(**rate_limit_overrides)`` returns a started TestClient.

    Overrides use RateLimitSettings field names, e.g.
    ``make_client(rate_limit_login="100 per minute")``.
    """
    clients = []

    def _make(**rate_limit_overrides) -> TestClient:
        settings = AppSettings(
            db=DatabaseSettings(mongodb_uri="mongodb://localhost:27017/"),
            jwt=jwt_settings,
            security=security_settings,
            rate_limit=RateLimitSettings(**rate_limit_overrides),
        )
        container = build_services(settings, users_repo, codes_repo, sender, clock)
        limiter = RateLimiter(
            FixedWindowRateLimiter(MemoryStorage()),
            settings.rate_limit.limits_by_class(),
        )

        db = MagicMock()
        db.client.admin.command = AsyncMock(return_value={"ok": 1})

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            app.state.settings = settings
            app.state.db = db
            app.state.redis = None
            app.state.auth_service = container.auth_service
            app.state.token_service = container.token_service
            app.state.rate_limiter = limiter
            yield

        app = FastAPI(lifespan=lifespan)
        setup_logging_middleware(app, settings.rate_limit.trusted_proxies)
        register_error_handlers(app)
        app.include_router(health_router)
        app.include_router(auth_router)
        app.include_router(verification_router)

        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
