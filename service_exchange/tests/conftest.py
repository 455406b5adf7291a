"""
Fixtures shared by the exchange service tests.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from service_exchange.app.caching.cache_store import CacheStore
from service_exchange.app.market_data.rates import RateAggregator
from service_exchange.app.market_data.service import MarketDataService
from service_exchange.app.portfolio.service import PortfolioService
from service_exchange.app.trading.service import TradingService
from service_exchange.app.venues.gateway import Credentials, ExchangeGateway
from service_exchange.app.venues.pool import InstancePool
from shared.test_helpers import FakeExchange


class FakeGateway(ExchangeGateway):
    """Gateway that builds :class:`FakeExchange` clients instead of ccxt ones."""

    def __init__(
        self,
        venues=("fakex", "otherx"),
        *,
        exchange_factory: Optional[Callable[[str, Dict[str, Any]], FakeExchange]] = None,
        connect_delay: float = 0.0,
    ):
        super().__init__()
        self.venues = list(venues)
        self.exchange_factory = exchange_factory or (lambda venue_id, config: FakeExchange(config, venue_id=venue_id))
        self.connect_delay = connect_delay
        self.built: List[FakeExchange] = []
        self.connect_calls = 0
        self.fail_next: List[Exception] = []
        self.describe_failures = set()

    def supported_venues(self) -> List[str]:
        return sorted(self.venues)

    def is_supported(self, venue_id: str) -> bool:
        return venue_id in self.venues

    def describe(self, venue_id: str) -> Dict[str, Any]:
        if venue_id in self.describe_failures:
            raise RuntimeError(f"cannot describe {venue_id}")
        return {
            "id": venue_id,
            "name": venue_id.title(),
            "countries": ["US"],
            "urls": {"www": f"https://{venue_id}.example"},
            "version": "v1",
            "rate_limit": 50,
            "timeout": 10000,
            "certified": False,
            "pro": True,
            "has": {"fetchTicker": True, "fetchTickers": True, "createOrder": True},
            "timeframes": {"1m": "1m", "1h": "1h"},
            "fees": {"trading": {"maker": 0.001, "taker": 0.001}},
            "required_credentials": {"apiKey": True, "secret": True},
        }

    def _build_exchange(self, venue_id: str, config: Dict[str, Any]) -> FakeExchange:
        exchange = self.exchange_factory(venue_id, config)
        if self.fail_next:
            exchange.failures["load_markets"] = self.fail_next.pop(0)
        self.built.append(exchange)
        return exchange

    async def connect(self, venue_id: str, credentials: Optional[Credentials] = None):
        self.connect_calls += 1
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        return await super().connect(venue_id, credentials)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def credentials():
    return Credentials(api_key="key-1", secret="secret-1")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def cache():
    return CacheStore()


@pytest.fixture
def pool(gateway):
    return InstancePool(gateway)


@pytest.fixture
def rate_aggregator(pool, cache):
    return RateAggregator(pool, cache)


@pytest.fixture
def market_data(pool, cache, rate_aggregator):
    return MarketDataService(pool, cache, rate_aggregator)


@pytest.fixture
def trading(pool):
    return TradingService(pool)


@pytest.fixture
def portfolio(trading, market_data):
    return PortfolioService(trading, market_data)
