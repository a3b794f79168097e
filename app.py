"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.delivery import CodeDelivery, CodeSender
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from infrastructure.redis_client import connect_redis
from infrastructure.sms.twilio import TwilioSmsProvider
from repositories.indexes import ensure_indexes
from repositories.user_repository import USERS_COLLECTION, UserRepository
from repositories.verification_repository import (
    VERIFICATION_COLLECTION,
    VerificationRepository,
)
from routes.auth_routes import router as auth_router
from routes.health_routes import router as health_router
from routes.verification_routes import router as verification_router
from services.auth_service import AuthService
from services.rate_limiter import RateLimiter
from services.credential_service import CredentialService
from services.token_service import JWTSigner, TokenService
from services.verification_service import VerificationService
from shared.crypto import Argon2PasswordHasher
from shared.datetime_utils import Clock, utcnow
from shared.log_context import setup_logging_middleware
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


@dataclass
class ServiceContainer:
    auth_service: AuthService
    token_service: TokenService
    verification_service: VerificationService
    credential_service: CredentialService


def build_services(
    settings: AppSettings,
    users: UserRepository,
    codes: VerificationRepository,
    sender: CodeSender,
    clock: Clock = utcnow,
) -> ServiceContainer:
    """Wire the service layer on top of already-built repositories."""
    credentials = CredentialService(users, Argon2PasswordHasher(), settings.security, clock)
    verification = VerificationService(codes, users, sender, settings.security, clock)
    tokens = TokenService(
        users,
        JWTSigner(settings.jwt),
        settings.jwt,
        max_active_sessions=settings.security.max_active_sessions,
        clock=clock,
    )
    auth = AuthService(users, credentials, verification, tokens, clock)
    return ServiceContainer(
        auth_service=auth,
        token_service=tokens,
        verification_service=verification,
        credential_service=credentials,
    )


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(
        log_level=settings.logging.log_level,
        log_format="json" if settings.is_production else settings.logging.log_format,
        env=settings.env,
    )

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            environment=settings.env,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(settings.db.mongodb_uri, tz_aware=True)
        db = mongo_client[settings.db.db_name]
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.settings = settings

        redis_client = await connect_redis(settings.redis)
        app.state.redis = redis_client

        await ensure_indexes(db)

        ttl_minutes = settings.security.otp_ttl_seconds // 60
        http_client = HttpClient(
            timeout=settings.security.delivery_timeout_seconds,
            user_agent=f"{settings.app_name}-auth/1.0",
        )
        sender = CodeDelivery(
            ZeptoMailProvider(settings.email, http_client, settings.app_name, ttl_minutes),
            TwilioSmsProvider(settings.sms, http_client),
            app_name=settings.app_name,
            code_ttl_minutes=ttl_minutes,
        )

        services = build_services(
            settings,
            UserRepository(db[USERS_COLLECTION]),
            VerificationRepository(db[VERIFICATION_COLLECTION]),
            sender,
        )
        app.state.auth_service = services.auth_service
        app.state.token_service = services.token_service
        app.state.rate_limiter = RateLimiter.from_settings(
            settings.rate_limit,
            redis_uri=settings.redis.redis_uri if redis_client is not None else None,
        )

        log.info("app_started", env=settings.env, db_name=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await http_client.aclose()
        await mongo_client.close()
        if redis_client is not None:
            await redis_client.aclose()
        log.info("app_stopped")

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_logging_middleware(app, settings.rate_limit.trusted_proxies)

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(verification_router)

    return app
