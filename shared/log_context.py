"""
Request logging middleware for FastAPI.

Provides:
- Request ID generation for correlation (also returned as X-Request-ID)
- Context binding (request_id, method, path, hashed ip) via structlog contextvars
- request_completed log line with status and duration
"""

from __future__ import annotations

import time
import uuid
from typing import Iterable

import structlog
from fastapi import FastAPI, Request

from shared.ip_utils import get_client_ip
from shared.logging import get_logger, hash_ip

log = get_logger("ebanking.request")


def generate_request_id() -> str:
    """Generate a unique request ID for correlation."""
    return f"req_{uuid.uuid4().hex[:12]}"


def setup_logging_middleware(app: FastAPI, trusted_proxies: Iterable[str] = ()) -> None:
    """Register the request logging middleware on *app*."""
    trusted_proxies = list(trusted_proxies)

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        start = time.perf_counter()
        request_id = generate_request_id()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            ip_hash=hash_ip(get_client_ip(request, trusted_proxies)),
        )

        response = await call_next(request)

        duration_ms = int((time.perf_counter() - start) * 1000)
        status_code = response.status_code
        if status_code >= 500:
            log_fn = log.error
        elif status_code >= 400:
            log_fn = log.warning
        else:
            log_fn = log.info
        log_fn("request_completed", status_code=status_code, duration_ms=duration_ms)

        response.headers["X-Request-ID"] = request_id
        return response
