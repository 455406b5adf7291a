"""
Market data service: public, unauthenticated venue reads.
"""

import re
import time
from typing import Any, Dict, List, Optional

from shared.errors import InvalidArgumentError, UnsupportedOperationError
from shared.logging import get_logger

from ..caching.cache_store import CacheStore, make_cache_key
from ..venues.errors import translate_gateway_error
from ..venues.gateway import GatewayHandle
from ..venues.pool import InstancePool
from .rates import DEFAULT_REFERENCE_CURRENCIES, RateAggregator, clamp_limit


_SYMBOL_PATTERN = re.compile(r"^[A-Za-z0-9._:/-]{1,64}$")

TIMEFRAMES = ("1m", "5m", "15m", "30m", "1h", "2h", "4h", "6h", "8h", "12h", "1d", "3d", "1w", "1M")

DEFAULT_ORDER_BOOK_LIMIT = 20
DEFAULT_TRADES_LIMIT = 50
MAX_DEPTH_LIMIT = 1000


class MarketDataService:
    """Shapes venue market data and caches short-lived snapshots."""

    def __init__(
        self,
        pool: InstancePool,
        cache: CacheStore,
        rate_aggregator: RateAggregator,
        *,
        order_book_ttl: int = 5,
        trades_ttl: int = 10,
    ):
        self.pool = pool
        self.cache = cache
        self.rate_aggregator = rate_aggregator
        self.order_book_ttl = order_book_ttl
        self.trades_ttl = trades_ttl
        self.logger = get_logger("exchange.market_data")

    async def get_markets(self, venue_id: str) -> List[Dict[str, Any]]:
        """List the venue's markets."""
        handle = await self._handle(venue_id)
        return [
            {
                "symbol": symbol,
                "base": market.get("base"),
                "quote": market.get("quote"),
                "active": market.get("active"),
            }
            for symbol, market in handle.markets.items()
        ]

    async def get_currencies(self, venue_id: str) -> Dict[str, Any]:
        handle = await self._handle(venue_id)
        return handle.currencies

    async def get_ticker(self, venue_id: str, symbol: str) -> Dict[str, Any]:
        """Latest ticker snapshot for one symbol."""
        self._validate_symbol(symbol)
        handle = await self._handle(venue_id)
        self._require(handle, "fetch_ticker")

        try:
            ticker = await handle.fetch_ticker(symbol)
        except Exception as exc:
            raise translate_gateway_error(exc, venue_id, "fetch_ticker", subject=symbol) from exc
        return self._shape_ticker(venue_id, ticker, symbol)

    async def get_tickers(self, venue_id: str) -> List[Dict[str, Any]]:
        handle = await self._handle(venue_id)
        self._require(handle, "fetch_tickers")

        try:
            tickers = await handle.fetch_tickers()
        except Exception as exc:
            raise translate_gateway_error(exc, venue_id, "fetch_tickers") from exc
        return [self._shape_ticker(venue_id, ticker, symbol) for symbol, ticker in (tickers or {}).items()]

    async def get_order_book(
        self,
        venue_id: str,
        symbol: str,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Order book with each side capped at ``limit`` levels."""
        self._validate_symbol(symbol)
        limit = self._validate_limit(limit, DEFAULT_ORDER_BOOK_LIMIT, maximum=MAX_DEPTH_LIMIT)
        handle = await self._handle(venue_id)
        self._require(handle, "fetch_order_book")

        cache_key = make_cache_key("order_book", venue_id=venue_id, symbol=symbol, limit=limit)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            order_book = await handle.fetch_order_book(symbol, limit)
        except Exception as exc:
            raise translate_gateway_error(exc, venue_id, "fetch_order_book", subject=symbol) from exc

        result = {
            "exchange": venue_id,
            "symbol": order_book.get("symbol") or symbol,
            "timestamp": order_book.get("timestamp"),
            "bids": [list(level[:2]) for level in order_book.get("bids", [])[:limit]],
            "asks": [list(level[:2]) for level in order_book.get("asks", [])[:limit]],
        }
        await self.cache.set(cache_key, result, self.order_book_ttl)
        return result

    async def get_trades(
        self,
        venue_id: str,
        symbol: str,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Most recent public trades for ``symbol``."""
        self._validate_symbol(symbol)
        limit = self._validate_limit(limit, DEFAULT_TRADES_LIMIT)
        handle = await self._handle(venue_id)
        self._require(handle, "fetch_trades")

        cache_key = make_cache_key("trades", venue_id=venue_id, symbol=symbol, limit=limit)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            trades = await handle.fetch_trades(symbol, limit)
        except Exception as exc:
            raise translate_gateway_error(exc, venue_id, "fetch_trades", subject=symbol) from exc

        result = {
            "exchange": venue_id,
            "symbol": symbol,
            "trades": [
                {
                    "id": trade.get("id"),
                    "timestamp": trade.get("timestamp"),
                    "price": trade.get("price"),
                    "amount": trade.get("amount"),
                    "side": trade.get("side"),
                }
                for trade in (trades or [])[-limit:]
            ],
        }
        await self.cache.set(cache_key, result, self.trades_ttl)
        return result

    async def get_ohlcv(
        self,
        venue_id: str,
        symbol: str,
        timeframe: str = "1h",
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Candles as ``[timestamp, open, high, low, close, volume]`` rows."""
        self._validate_symbol(symbol)
        if timeframe not in TIMEFRAMES:
            raise InvalidArgumentError(
                f"timeframe must be one of {', '.join(TIMEFRAMES)}",
                {"timeframe": timeframe},
            )
        if limit is not None:
            limit = self._validate_limit(limit, limit, maximum=MAX_DEPTH_LIMIT)
        handle = await self._handle(venue_id)
        self._require(handle, "fetch_ohlcv")

        try:
            candles = await handle.fetch_ohlcv(symbol, timeframe, limit)
        except Exception as exc:
            raise translate_gateway_error(exc, venue_id, "fetch_ohlcv", subject=symbol) from exc

        return {
            "exchange": venue_id,
            "symbol": symbol,
            "timeframe": timeframe,
            "candles": [list(candle) for candle in candles or []],
        }

    async def get_top_rates(self, venue_id: str, limit: int = 10) -> Dict[str, Any]:
        """Top assets by reference-currency volume, wrapped in a response envelope."""
        limit = clamp_limit(limit)
        rates = await self.rate_aggregator.top_rates(venue_id, DEFAULT_REFERENCE_CURRENCIES, limit)
        return {
            "exchange": venue_id,
            "timestamp": int(time.time() * 1000),
            "total_pairs": len(rates),
            "rates": [rate.to_dict() for rate in rates],
        }

    async def _handle(self, venue_id: str) -> GatewayHandle:
        try:
            return await self.pool.acquire(venue_id)
        except Exception as exc:
            raise translate_gateway_error(exc, venue_id, "connect") from exc

    def _require(self, handle: GatewayHandle, operation: str) -> None:
        if not handle.capabilities.supports(operation):
            raise UnsupportedOperationError(handle.venue_id, operation)

    def _shape_ticker(self, venue_id: str, ticker: Dict[str, Any], symbol: str) -> Dict[str, Any]:
        return {
            "exchange": venue_id,
            "symbol": ticker.get("symbol") or symbol,
            "timestamp": ticker.get("timestamp"),
            "datetime": ticker.get("datetime"),
            "last": ticker.get("last"),
            "bid": ticker.get("bid"),
            "ask": ticker.get("ask"),
            "high": ticker.get("high"),
            "low": ticker.get("low"),
            "open": ticker.get("open"),
            "close": ticker.get("close"),
            "change": ticker.get("change"),
            "percentage": ticker.get("percentage"),
            "volume": ticker.get("baseVolume"),
            "quote_volume": ticker.get("quoteVolume"),
        }

    def _validate_symbol(self, symbol: str) -> None:
        if not symbol or not _SYMBOL_PATTERN.match(symbol):
            raise InvalidArgumentError(
                "symbol must match pattern [A-Za-z0-9._:/-]{1,64}",
                {"symbol": symbol},
            )

    def _validate_limit(self, limit: Optional[int], default: int, *, maximum: Optional[int] = None) -> int:
        if limit is None:
            return default
        if limit < 1 or (maximum is not None and limit > maximum):
            upper = f" and at most {maximum}" if maximum is not None else ""
            raise InvalidArgumentError(f"limit must be at least 1{upper}", {"limit": limit})
        return limit
