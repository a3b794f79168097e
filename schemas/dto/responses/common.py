"""
Common response DTOs shared across endpoints.

Envelope        — {success, message, data?} returned by every API route
HealthResponse  — GET /health
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Uniform success body. ``data`` is absent from the JSON when None
    (route handlers dump with exclude_none=True)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    data: Optional[T] = None


class HealthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    checks: dict[str, str]
