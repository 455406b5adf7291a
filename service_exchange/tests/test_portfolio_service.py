"""
Unit tests for the portfolio service.
"""

import pytest

from service_exchange.app.caching.cache_store import CacheStore
from service_exchange.app.market_data.rates import RateAggregator
from service_exchange.app.market_data.service import MarketDataService
from service_exchange.app.portfolio.service import PortfolioService
from service_exchange.app.trading.service import TradingService
from service_exchange.app.venues.pool import InstancePool
from service_exchange.tests.conftest import FakeGateway
from shared.errors import AuthenticationRequiredError
from shared.test_helpers import FakeExchange, TestDataFactory


def _portfolio_for(exchange_kwargs):
    gateway = FakeGateway(
        exchange_factory=lambda venue_id, config: FakeExchange(config, venue_id=venue_id, **exchange_kwargs)
    )
    pool = InstancePool(gateway)
    cache = CacheStore()
    market_data = MarketDataService(pool, cache, RateAggregator(pool, cache))
    return PortfolioService(TradingService(pool), market_data)


class TestPortfolioService:
    """Test cases for PortfolioService."""

    @pytest.mark.asyncio
    async def test_portfolio_values_holdings(self, portfolio, credentials):
        result = await portfolio.get_portfolio("fakex", credentials)

        holdings = {holding["currency"]: holding for holding in result["currencies"]}
        assert set(holdings) == {"BTC", "USDT"}
        assert holdings["BTC"]["value_usd"] == 50.0
        assert holdings["USDT"]["value_usd"] == 1000.0
        assert result["total_value_usd"] == 1050.0
        assert result["warnings"] == []

    @pytest.mark.asyncio
    async def test_unpriced_asset_contributes_zero_with_warning(self, credentials):
        service = _portfolio_for({
            "balance": TestDataFactory.create_balance({"XYZ": 3.0, "USDC": 10.0}),
        })

        result = await service.get_portfolio("fakex", credentials)

        holdings = {holding["currency"]: holding for holding in result["currencies"]}
        assert holdings["XYZ"]["value_usd"] == 0.0
        assert result["total_value_usd"] == 10.0
        assert len(result["warnings"]) == 1
        assert result["warnings"][0]["currency"] == "XYZ"
        assert result["warnings"][0]["reason"]

    @pytest.mark.asyncio
    async def test_portfolio_requires_credentials(self, portfolio, gateway):
        with pytest.raises(AuthenticationRequiredError):
            await portfolio.get_portfolio("fakex", None)

        assert gateway.connect_calls == 0

    @pytest.mark.asyncio
    async def test_positions_are_long_spot_balances(self, portfolio, credentials):
        result = await portfolio.get_positions("fakex", credentials)

        assert {position["symbol"] for position in result["positions"]} == {"BTC", "USDT"}
        assert all(position["side"] == "long" for position in result["positions"])

    @pytest.mark.asyncio
    async def test_trading_history_summary(self, portfolio, credentials):
        result = await portfolio.get_trading_history("fakex", credentials)

        assert result["symbol"] == "ALL"
        assert result["total_trades"] == 4
        assert result["total_fees"] == pytest.approx(0.04)
        assert result["total_volume"] == pytest.approx(sum((100.0 + index) * 0.1 for index in range(4)))

    @pytest.mark.asyncio
    async def test_profit_loss_is_approximate(self, credentials):
        trades = [
            {"id": "1", "symbol": "BTC/USDT", "side": "buy", "cost": 100.0, "fee": {"cost": 1.0}},
            {"id": "2", "symbol": "BTC/USDT", "side": "sell", "cost": 150.0, "fee": {"cost": 1.0}},
        ]
        service = _portfolio_for({})
        await service.trading.pool.acquire("fakex", credentials)
        service.trading.pool.gateway.built[0].my_trades = trades

        result = await service.get_profit_loss("fakex", credentials, "BTC/USDT")

        assert result["approximate"] is True
        assert result["realized_pnl"] == pytest.approx(48.0)
        assert result["total_fees"] == pytest.approx(2.0)
        assert result["net_pnl"] == pytest.approx(46.0)
        assert result["trades"] == 2
