"""
Two-tier result cache for exchange data.

Tier 1 is the shared Redis store; tier 2 is an in-process map used whenever
tier 1 is missing, unreachable or erroring. Each call probes tier 1 first and
falls back for that call only, so a recovered Redis is picked up again on the
next lookup.
"""

import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

import redis.asyncio as redis

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


KEY_NAMESPACE = "exchange"


def make_cache_key(operation: str, **params: Any) -> str:
    """Derive a cache key from an operation name and its arguments.

    Arguments are encoded as sorted JSON before hashing so that distinct
    argument sets never share an encoding.
    """
    encoded = json.dumps([operation, params], sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.md5(encoded.encode("utf-8")).hexdigest()
    return f"{KEY_NAMESPACE}:{operation}:{digest}"


@dataclass(frozen=True)
class CacheEntry:
    """A cached value together with its lifetime."""

    value: Any
    stored_at: float
    ttl_seconds: int

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl_seconds

    def is_live(self, now: float) -> bool:
        return now < self.expires_at


class MemoryCache:
    """In-process TTL map backing the fallback tier.

    Expired entries are dropped lazily on lookup and swept in bulk by ``set``
    at most once every ``sweep_interval`` seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0):
        self._clock = clock
        self.sweep_interval = sweep_interval
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_live(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        now = self._clock()
        entry = CacheEntry(value=value, stored_at=now, ttl_seconds=ttl_seconds)
        with self._lock:
            if now - self._last_sweep >= self.sweep_interval:
                self._purge_locked(now)
            self._entries[key] = entry

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        with self._lock:
            return self._purge_locked(self._clock())

    def _purge_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if not entry.is_live(now)]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CacheStore:
    """Redis-first cache with an in-process fallback tier."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        *,
        redis_client: Optional[redis.Redis] = None,
        socket_timeout: float = 2.0,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.redis_url = redis_url
        self.logger = get_logger("exchange.cache")
        self.metrics = metrics
        self.fallback = MemoryCache(clock=clock)

        self._redis = redis_client
        if self._redis is None and redis_url:
            self._redis = redis.from_url(
                redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=socket_timeout,
                socket_timeout=socket_timeout,
            )
        self._tier1_healthy = self._redis is not None

    @property
    def tier1_enabled(self) -> bool:
        return self._redis is not None

    @property
    def tier1_healthy(self) -> bool:
        return self._tier1_healthy

    async def get(self, key: str) -> Optional[Any]:
        """Return the live value stored under ``key`` or None."""
        if self._redis is not None:
            try:
                payload = await self._redis.get(key)
            except Exception as exc:
                self._mark_tier1_failure("get", key, exc)
            else:
                self._mark_tier1_success()
                value = self._decode(key, payload)
                self._record_access("redis", value is not None)
                return value

        value = self.fallback.get(key)
        self._record_access("memory", value is not None)
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""
        if ttl_seconds <= 0:
            self.logger.debug("Skipping cache write with non-positive TTL", key=key, ttl=ttl_seconds)
            return

        if self._redis is not None:
            try:
                payload = json.dumps(value)
            except (TypeError, ValueError) as exc:
                self.logger.warning("Skipping cache write for unencodable value", key=key, error=str(exc))
                return
            try:
                await self._redis.set(key, payload, ex=ttl_seconds)
            except Exception as exc:
                self._mark_tier1_failure("set", key, exc)
            else:
                self._mark_tier1_success()
                self.logger.debug("Cached value", key=key, ttl=ttl_seconds, tier="redis")
                return

        self.fallback.set(key, value, ttl_seconds)
        self.logger.debug("Cached value", key=key, ttl=ttl_seconds, tier="memory")

    async def stats(self) -> Dict[str, Any]:
        """Describe the state of both tiers."""
        if not self.tier1_enabled:
            tier1 = "disabled"
        elif self._tier1_healthy:
            tier1 = "ok"
        else:
            tier1 = "degraded"
        return {
            "tier1": tier1,
            "tier2_entries": len(self.fallback),
        }

    async def ping(self) -> bool:
        """Return True when the shared tier answers a ping."""
        if self._redis is None:
            return False
        try:
            healthy = bool(await self._redis.ping())
        except Exception as exc:
            self._mark_tier1_failure("ping", None, exc)
            return False
        if healthy:
            self._mark_tier1_success()
        return healthy

    async def close(self) -> None:
        """Close the Redis connection pool."""
        if self._redis is None:
            return
        try:
            await self._redis.aclose()
        except Exception as exc:  # pragma: no cover - close is best effort
            self.logger.debug("Redis close failed", error=str(exc))

    def _decode(self, key: str, payload: Optional[str]) -> Optional[Any]:
        if payload is None:
            return None
        try:
            return json.loads(payload)
        except (TypeError, ValueError):
            self.logger.warning("Discarding malformed cache payload", key=key)
            return None

    def _mark_tier1_failure(self, operation: str, key: Optional[str], exc: Exception) -> None:
        if self._tier1_healthy:
            self.logger.warning(
                "Redis cache unavailable, using in-process cache",
                operation=operation,
                key=key,
                error=str(exc),
            )
        self._tier1_healthy = False
        if self.metrics:
            self.metrics.increment_counter("cache_tier_failures_total", operation=operation)

    def _mark_tier1_success(self) -> None:
        if not self._tier1_healthy:
            self.logger.info("Redis cache recovered")
        self._tier1_healthy = True

    def _record_access(self, tier: str, hit: bool) -> None:
        if self.metrics:
            self.metrics.increment_counter(
                "cache_requests_total",
                tier=tier,
                result="hit" if hit else "miss",
            )
