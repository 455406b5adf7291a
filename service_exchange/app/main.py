"""
Exchange API service for the Exchange Access Layer.
"""

import os
import platform
from typing import Dict, Optional

import ccxt
from fastapi import Query

from shared.base_service import BaseService
from shared.logging import set_venue_context

from .caching.cache_store import CacheStore
from .domain.models import CreateOrderBody, CredentialsBody, OrderBody, OrderQueryBody
from .market_data.rates import RateAggregator
from .market_data.service import MarketDataService
from .portfolio.service import PortfolioService
from .trading.service import TradingService
from .venues.catalog import ExchangeCatalogService
from .venues.gateway import ExchangeGateway
from .venues.pool import InstancePool


class ExchangeApiService(BaseService):
    """HTTP front for market data, trading and portfolio operations."""

    def __init__(
        self,
        gateway: Optional[ExchangeGateway] = None,
        cache: Optional[CacheStore] = None,
    ):
        super().__init__("exchange", 8000)

        self.cache = cache or CacheStore(
            self.config.redis_url,
            socket_timeout=self.config.redis_socket_timeout,
            metrics=self.metrics,
        )
        self.gateway = gateway or ExchangeGateway(
            timeout_ms=self.config.exchange_timeout_ms,
            enable_rate_limit=self.config.exchange_rate_limit,
        )
        self.pool = InstancePool(
            self.gateway,
            max_handles=self.config.pool_max_handles,
            metrics=self.metrics,
        )
        self.rate_aggregator = RateAggregator(
            self.pool,
            self.cache,
            ttl_seconds=self.config.top_rates_ttl,
        )
        self.market_data_service = MarketDataService(
            self.pool,
            self.cache,
            self.rate_aggregator,
            order_book_ttl=self.config.order_book_ttl,
            trades_ttl=self.config.trades_ttl,
        )
        self.trading_service = TradingService(self.pool)
        self.portfolio_service = PortfolioService(self.trading_service, self.market_data_service)
        self.catalog_service = ExchangeCatalogService(
            self.gateway,
            self.cache,
            ttl_seconds=self.config.exchange_catalog_ttl,
        )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.pool.close()
            await self.cache.close()

        self._setup_exchange_routes()
        self._setup_trading_routes()
        self._setup_portfolio_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.exchange_service = self

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report cache tier state and pool occupancy."""
        if self.cache.tier1_enabled:
            await self.cache.ping()
        stats = await self.cache.stats()
        return {
            "cache_tier1": stats["tier1"],
            "cache_tier2_entries": str(stats["tier2_entries"]),
            "pooled_handles": str(self.pool.size),
        }

    def _setup_exchange_routes(self):
        """Catalog and public market data routes."""
        prefix = self.config.api_prefix

        @self.app.get("/health/detailed")
        async def health_detailed():
            """Health details including runtime and venue catalog size."""
            dependencies = await self._check_dependencies()
            return {
                "service": self.service_name,
                "status": "ok",
                "uptime_seconds": self._get_uptime(),
                "dependencies": dependencies,
                "system": {
                    "platform": platform.platform(),
                    "python": platform.python_version(),
                    "cpus": os.cpu_count(),
                },
                "ccxt_version": getattr(ccxt, "__version__", "unknown"),
                "exchanges": len(self.catalog_service.list_exchanges()),
            }

        @self.app.get(f"{prefix}/exchanges")
        async def list_exchanges():
            """List identifiers of every supported venue."""
            exchanges = self.catalog_service.list_exchanges()
            return {"exchanges": exchanges, "count": len(exchanges)}

        @self.app.get(f"{prefix}/exchanges/summary")
        async def exchange_summaries():
            summaries = await self.catalog_service.get_exchange_summaries()
            return {"exchanges": summaries, "count": len(summaries)}

        @self.app.get(f"{prefix}/exchanges/{{exchange_id}}")
        async def exchange_info(exchange_id: str):
            set_venue_context(exchange_id)
            return await self.catalog_service.get_exchange_info(exchange_id)

        @self.app.get(f"{prefix}/exchanges/{{exchange_id}}/markets")
        async def markets(exchange_id: str):
            set_venue_context(exchange_id)
            markets = await self.market_data_service.get_markets(exchange_id)
            return {"exchange": exchange_id, "markets": markets, "count": len(markets)}

        @self.app.get(f"{prefix}/exchanges/{{exchange_id}}/currencies")
        async def currencies(exchange_id: str):
            set_venue_context(exchange_id)
            currencies = await self.market_data_service.get_currencies(exchange_id)
            return {"exchange": exchange_id, "currencies": currencies}

        @self.app.get(f"{prefix}/exchanges/{{exchange_id}}/ticker")
        async def ticker(exchange_id: str, symbol: str = Query(..., min_length=1)):
            """Latest ticker for one symbol."""
            set_venue_context(exchange_id)
            return await self.market_data_service.get_ticker(exchange_id, symbol)

        @self.app.get(f"{prefix}/exchanges/{{exchange_id}}/tickers")
        async def tickers(exchange_id: str):
            set_venue_context(exchange_id)
            tickers = await self.market_data_service.get_tickers(exchange_id)
            return {"exchange": exchange_id, "tickers": tickers, "count": len(tickers)}

        @self.app.get(f"{prefix}/exchanges/{{exchange_id}}/orderbook")
        async def order_book(
            exchange_id: str,
            symbol: str = Query(..., min_length=1),
            limit: Optional[int] = Query(None),
        ):
            set_venue_context(exchange_id)
            return await self.market_data_service.get_order_book(exchange_id, symbol, limit)

        @self.app.get(f"{prefix}/exchanges/{{exchange_id}}/trades")
        async def trades(
            exchange_id: str,
            symbol: str = Query(..., min_length=1),
            limit: Optional[int] = Query(None),
        ):
            set_venue_context(exchange_id)
            return await self.market_data_service.get_trades(exchange_id, symbol, limit)

        @self.app.get(f"{prefix}/exchanges/{{exchange_id}}/ohlcv")
        async def ohlcv(
            exchange_id: str,
            symbol: str = Query(..., min_length=1),
            timeframe: str = Query("1h"),
            limit: Optional[int] = Query(None),
        ):
            set_venue_context(exchange_id)
            return await self.market_data_service.get_ohlcv(exchange_id, symbol, timeframe, limit)

        @self.app.get(f"{prefix}/exchanges/{{exchange_id}}/rates")
        async def top_rates(exchange_id: str, limit: int = Query(10)):
            """Top assets by USD-equivalent volume; limit is clamped to 1..20."""
            set_venue_context(exchange_id)
            return await self.market_data_service.get_top_rates(exchange_id, limit)

    def _setup_trading_routes(self):
        """Authenticated trading routes; credentials travel in the body."""
        prefix = f"{self.config.api_prefix}/exchanges/{{exchange_id}}"

        @self.app.post(f"{prefix}/balance")
        async def balance(exchange_id: str, body: Optional[CredentialsBody] = None):
            body = body or CredentialsBody()
            set_venue_context(exchange_id)
            return await self.trading_service.get_balance(exchange_id, body.to_credentials())

        @self.app.post(f"{prefix}/orders")
        async def create_order(exchange_id: str, body: CreateOrderBody):
            set_venue_context(exchange_id)
            return await self.trading_service.create_order(
                exchange_id,
                body.to_credentials(),
                body.symbol,
                body.type,
                body.side,
                body.amount,
                body.price,
                body.params,
            )

        @self.app.post(f"{prefix}/orders/cancel")
        async def cancel_order(exchange_id: str, body: OrderBody):
            set_venue_context(exchange_id)
            return await self.trading_service.cancel_order(
                exchange_id, body.to_credentials(), body.order_id, body.symbol
            )

        @self.app.post(f"{prefix}/orders/history")
        async def order_history(exchange_id: str, body: Optional[OrderQueryBody] = None):
            body = body or OrderQueryBody()
            set_venue_context(exchange_id)
            orders = await self.trading_service.get_orders(
                exchange_id, body.to_credentials(), body.symbol, body.limit
            )
            return {"exchange": exchange_id, "orders": orders, "count": len(orders)}

        @self.app.post(f"{prefix}/orders/open")
        async def open_orders(exchange_id: str, body: Optional[OrderQueryBody] = None):
            body = body or OrderQueryBody()
            set_venue_context(exchange_id)
            orders = await self.trading_service.get_open_orders(exchange_id, body.to_credentials(), body.symbol)
            return {"exchange": exchange_id, "orders": orders, "count": len(orders)}

        @self.app.post(f"{prefix}/orders/{{order_id}}")
        async def get_order(exchange_id: str, order_id: str, body: Optional[OrderBody] = None):
            body = body or OrderBody()
            set_venue_context(exchange_id)
            return await self.trading_service.get_order(exchange_id, body.to_credentials(), order_id, body.symbol)

        @self.app.post(f"{prefix}/orders/{{order_id}}/status")
        async def order_status(exchange_id: str, order_id: str, body: Optional[OrderBody] = None):
            body = body or OrderBody()
            set_venue_context(exchange_id)
            status = await self.trading_service.get_order_status(
                exchange_id, body.to_credentials(), order_id, body.symbol
            )
            return {"exchange": exchange_id, "order_id": order_id, "status": status}

        @self.app.post(f"{prefix}/trades/my")
        async def my_trades(exchange_id: str, body: Optional[OrderQueryBody] = None):
            body = body or OrderQueryBody()
            set_venue_context(exchange_id)
            trades = await self.trading_service.get_my_trades(
                exchange_id, body.to_credentials(), body.symbol, body.limit
            )
            return {"exchange": exchange_id, "trades": trades, "count": len(trades)}

    def _setup_portfolio_routes(self):
        """Portfolio views built from balances and fills."""
        prefix = f"{self.config.api_prefix}/exchanges/{{exchange_id}}"

        @self.app.post(f"{prefix}/portfolio")
        async def portfolio(exchange_id: str, body: Optional[CredentialsBody] = None):
            body = body or CredentialsBody()
            set_venue_context(exchange_id)
            return await self.portfolio_service.get_portfolio(exchange_id, body.to_credentials())

        @self.app.post(f"{prefix}/positions")
        async def positions(exchange_id: str, body: Optional[CredentialsBody] = None):
            body = body or CredentialsBody()
            set_venue_context(exchange_id)
            return await self.portfolio_service.get_positions(exchange_id, body.to_credentials())

        @self.app.post(f"{prefix}/trading-history")
        async def trading_history(
            exchange_id: str,
            body: Optional[OrderQueryBody] = None,
        ):
            body = body or OrderQueryBody()
            set_venue_context(exchange_id)
            return await self.portfolio_service.get_trading_history(
                exchange_id, body.to_credentials(), body.symbol
            )

        @self.app.post(f"{prefix}/profit-loss")
        async def profit_loss(
            exchange_id: str,
            body: Optional[OrderQueryBody] = None,
        ):
            body = body or OrderQueryBody()
            set_venue_context(exchange_id)
            return await self.portfolio_service.get_profit_loss(
                exchange_id, body.to_credentials(), body.symbol
            )


def create_app(gateway: Optional[ExchangeGateway] = None, cache: Optional[CacheStore] = None):
    """Create FastAPI application."""
    service = ExchangeApiService(gateway=gateway, cache=cache)
    return service.app


if __name__ == "__main__":
    service = ExchangeApiService()
    service.run()
