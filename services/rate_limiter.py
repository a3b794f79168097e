"""
Per-endpoint-class request throttling.

RateLimiter.admit(key, endpoint_class) runs before any business logic. Every
call is counted, including ones that go on to fail. Counters live in a
``limits`` async storage (in-process memory or Redis) and only age out at the
window boundary; nothing resets them early.
"""

from __future__ import annotations

from typing import Mapping, Optional

from limits import RateLimitItem, parse
from limits.aio.strategies import (
    FixedWindowRateLimiter,
    MovingWindowRateLimiter,
    RateLimiter as _LimitsStrategy,
)
from limits.storage import storage_from_string

from config import RateLimitSettings
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)

ENDPOINT_CLASSES = ("login", "verification", "register", "password_reset", "refresh", "default")

_STRATEGIES: dict[str, type[_LimitsStrategy]] = {
    "fixed-window": FixedWindowRateLimiter,
    "moving-window": MovingWindowRateLimiter,
}


class RateLimiter:
    def __init__(self, strategy: _LimitsStrategy, limits_by_class: Mapping[str, str]) -> None:
        unknown = set(limits_by_class) - set(ENDPOINT_CLASSES)
        if unknown:
            raise ValueError(f"Unknown endpoint classes: {sorted(unknown)}")
        self._strategy = strategy
        self._items: dict[str, RateLimitItem] = {
            name: parse(limit) for name, limit in limits_by_class.items()
        }

    @classmethod
    def from_settings(
        cls, settings: RateLimitSettings, redis_uri: Optional[str] = None
    ) -> "RateLimiter":
        """Build a limiter from config.

        With the default in-process storage and a Redis URI available, the
        counters move to Redis so that every worker process shares them.
        """
        storage_uri = settings.rate_limit_storage_uri
        if storage_uri.startswith("async+memory") and redis_uri:
            storage_uri = f"async+{redis_uri}"
        strategy_cls = _STRATEGIES.get(settings.rate_limit_strategy)
        if strategy_cls is None:
            raise ValueError(f"Unknown rate limit strategy: {settings.rate_limit_strategy!r}")
        storage = storage_from_string(storage_uri)
        log.info(
            "rate_limiter_configured",
            storage=storage_uri.split("@")[-1],
            strategy=settings.rate_limit_strategy,
        )
        return cls(strategy_cls(storage), settings.limits_by_class())

    def limit_for(self, endpoint_class: str) -> RateLimitItem:
        try:
            return self._items[endpoint_class]
        except KeyError:
            raise ValueError(f"No rate limit configured for {endpoint_class!r}") from None

    async def admit(self, key: str, endpoint_class: str) -> bool:
        """Count this call against *key* in *endpoint_class*; ``False`` means reject."""
        allowed = await self._strategy.hit(self.limit_for(endpoint_class), endpoint_class, key)
        if not allowed:
            log.warning("rate_limited", endpoint_class=endpoint_class, source=hash_ip(key))
        return allowed

    async def remaining(self, key: str, endpoint_class: str) -> int:
        stats = await self._strategy.get_window_stats(
            self.limit_for(endpoint_class), endpoint_class, key
        )
        return stats.remaining
