"""
Pool of venue handles keyed by venue and credential fingerprint.
"""

import asyncio
import time
from collections import OrderedDict
from typing import Dict, NamedTuple, Optional, TYPE_CHECKING

from shared.errors import UnsupportedVenueError
from shared.logging import get_logger

from .gateway import Credentials, ExchangeGateway, GatewayHandle

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class PoolKey(NamedTuple):
    venue_id: str
    fingerprint: str


class InstancePool:
    """Memoizes gateway handles.

    A key is built at most once at a time: callers arriving while a
    construction is in flight await the same future and receive the same
    handle or the same exception. Failed constructions are forgotten so the
    next caller retries. When ``max_handles`` is set the registry is bounded
    and the least recently used handle is closed on overflow.
    """

    def __init__(
        self,
        gateway: ExchangeGateway,
        *,
        max_handles: Optional[int] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.gateway = gateway
        self.max_handles = max_handles
        self.metrics = metrics
        self.logger = get_logger("exchange.pool")
        self._handles: "OrderedDict[PoolKey, GatewayHandle]" = OrderedDict()
        self._pending: Dict[PoolKey, "asyncio.Future[GatewayHandle]"] = {}
        self._closing: set = set()

    @property
    def size(self) -> int:
        return len(self._handles)

    async def acquire(self, venue_id: str, credentials: Optional[Credentials] = None) -> GatewayHandle:
        """Return the pooled handle for ``venue_id`` and ``credentials``."""
        if not self.gateway.is_supported(venue_id):
            raise UnsupportedVenueError(venue_id)

        credentials = credentials or Credentials()
        key = PoolKey(venue_id, credentials.fingerprint())

        handle = self._handles.get(key)
        if handle is not None:
            self._handles.move_to_end(key)
            return handle

        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._construct(key, credentials))
            self._pending[key] = pending
            pending.add_done_callback(lambda _: self._pending.pop(key, None))

        # One waiter giving up must not cancel the construction for the others
        return await asyncio.shield(pending)

    async def _construct(self, key: PoolKey, credentials: Credentials) -> GatewayHandle:
        start = time.perf_counter()
        try:
            handle = await self.gateway.connect(key.venue_id, credentials)
        except Exception as exc:
            self.logger.error(
                "Exchange instance construction failed",
                venue_id=key.venue_id,
                public=key.fingerprint == "public",
                error=str(exc),
            )
            self._record_construction(key.venue_id, "error", start)
            raise

        self._handles[key] = handle
        self._record_construction(key.venue_id, "ok", start)
        self._evict_overflow()
        return handle

    def _evict_overflow(self) -> None:
        if self.max_handles is None:
            return
        while len(self._handles) > self.max_handles:
            key, handle = self._handles.popitem(last=False)
            self.logger.info("Evicting exchange instance", venue_id=key.venue_id)
            task = asyncio.ensure_future(self._close_handle(handle))
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)
        self._update_size_gauge()

    async def _close_handle(self, handle: GatewayHandle) -> None:
        try:
            await handle.close()
        except Exception as exc:
            self.logger.warning("Failed to close exchange instance", venue_id=handle.venue_id, error=str(exc))

    async def close(self) -> None:
        """Close every pooled handle; called at process shutdown."""
        if self._pending:
            await asyncio.gather(*list(self._pending.values()), return_exceptions=True)
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            await self._close_handle(handle)
        if self._closing:
            await asyncio.gather(*self._closing, return_exceptions=True)
        self._update_size_gauge()
        self.logger.info("Instance pool closed", closed=len(handles))

    def _record_construction(self, venue_id: str, outcome: str, start: float) -> None:
        if not self.metrics:
            return
        self.metrics.increment_counter("venue_handle_constructions_total", venue_id=venue_id, outcome=outcome)
        self.metrics.observe_histogram(
            "venue_handle_construction_seconds",
            time.perf_counter() - start,
            venue_id=venue_id,
        )
        self._update_size_gauge()

    def _update_size_gauge(self) -> None:
        if self.metrics:
            self.metrics.set_gauge("venue_handles_active", len(self._handles))
