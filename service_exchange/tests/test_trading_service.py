"""
Unit tests for the trading service.
"""

import ccxt
import pytest

from service_exchange.app.trading.service import TradingService
from service_exchange.app.venues.gateway import Credentials
from service_exchange.app.venues.pool import InstancePool
from service_exchange.tests.conftest import FakeGateway
from shared.errors import (
    AuthenticationRequiredError,
    InvalidArgumentError,
    NotFoundError,
    UnsupportedOperationError,
)
from shared.test_helpers import FakeExchange


class TestTradingAuthentication:
    """Credential checks happen before any venue work."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "credentials",
        [None, Credentials(), Credentials(api_key="key-only"), Credentials(secret="secret-only")],
    )
    async def test_balance_requires_key_and_secret(self, trading, gateway, credentials):
        with pytest.raises(AuthenticationRequiredError) as exc_info:
            await trading.get_balance("fakex", credentials)

        assert exc_info.value.status_code == 401
        assert gateway.connect_calls == 0

    @pytest.mark.asyncio
    async def test_create_order_without_credentials_opens_no_connection(self, trading, gateway):
        with pytest.raises(AuthenticationRequiredError):
            await trading.create_order("fakex", Credentials(), "BTC/USDT", "limit", "buy", 1.0, 100.0)

        assert gateway.connect_calls == 0

    @pytest.mark.asyncio
    async def test_venue_rejecting_credentials(self, trading, gateway, credentials):
        gateway.fail_next.append(ccxt.AuthenticationError("invalid key"))

        with pytest.raises(AuthenticationRequiredError):
            await trading.get_balance("fakex", credentials)


class TestTradingService:
    """Test cases for TradingService."""

    @pytest.mark.asyncio
    async def test_get_balance(self, trading, credentials):
        balance = await trading.get_balance("fakex", credentials)

        assert balance["total"]["BTC"] == 0.5

    @pytest.mark.asyncio
    async def test_create_and_fetch_order(self, trading, credentials):
        order = await trading.create_order("fakex", credentials, "BTC/USDT", "limit", "buy", 0.1, 30000.0)

        fetched = await trading.get_order("fakex", credentials, order["id"], "BTC/USDT")
        status = await trading.get_order_status("fakex", credentials, order["id"], "BTC/USDT")

        assert fetched["side"] == "buy"
        assert status == "open"

    @pytest.mark.asyncio
    async def test_market_order_needs_no_price(self, trading, credentials):
        order = await trading.create_order("fakex", credentials, "BTC/USDT", "market", "sell", 0.1)

        assert order["price"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "order_type,side,amount,price",
        [
            ("iceberg", "buy", 1.0, 10.0),
            ("limit", "hold", 1.0, 10.0),
            ("limit", "buy", 0.0, 10.0),
            ("limit", "buy", -1.0, 10.0),
            ("limit", "buy", 1.0, None),
            ("stop-limit", "sell", 1.0, 0.0),
        ],
    )
    async def test_invalid_orders_rejected_locally(self, trading, gateway, credentials, order_type, side, amount, price):
        with pytest.raises(InvalidArgumentError):
            await trading.create_order("fakex", credentials, "BTC/USDT", order_type, side, amount, price)

        assert gateway.connect_calls == 0

    @pytest.mark.asyncio
    async def test_insufficient_funds_is_invalid_argument(self, trading, pool, gateway, credentials):
        await pool.acquire("fakex", credentials)
        gateway.built[0].failures["create_order"] = ccxt.InsufficientFunds("not enough USDT")

        with pytest.raises(InvalidArgumentError):
            await trading.create_order("fakex", credentials, "BTC/USDT", "market", "buy", 1.0)

    @pytest.mark.asyncio
    async def test_cancel_order(self, trading, credentials):
        order = await trading.create_order("fakex", credentials, "BTC/USDT", "limit", "buy", 0.1, 30000.0)

        cancelled = await trading.cancel_order("fakex", credentials, order["id"], "BTC/USDT")

        assert cancelled["status"] == "canceled"
        assert await trading.get_open_orders("fakex", credentials) == []

    @pytest.mark.asyncio
    async def test_unknown_order_is_not_found(self, trading, credentials):
        with pytest.raises(NotFoundError) as exc_info:
            await trading.get_order("fakex", credentials, "999")

        assert exc_info.value.details["subject"] == "999"

    @pytest.mark.asyncio
    async def test_get_orders_and_trades(self, trading, credentials):
        await trading.create_order("fakex", credentials, "BTC/USDT", "limit", "buy", 0.1, 30000.0)
        await trading.create_order("fakex", credentials, "ETH/USDT", "limit", "sell", 1.0, 2000.0)

        orders = await trading.get_orders("fakex", credentials, "ETH/USDT")
        trades = await trading.get_my_trades("fakex", credentials, limit=2)

        assert [order["symbol"] for order in orders] == ["ETH/USDT"]
        assert len(trades) == 2

    @pytest.mark.asyncio
    async def test_missing_capability(self, credentials):
        gateway = FakeGateway(
            exchange_factory=lambda venue_id, config: FakeExchange(config, venue_id=venue_id, has={"fetchOrders": False})
        )
        service = TradingService(InstancePool(gateway))

        with pytest.raises(UnsupportedOperationError):
            await service.get_orders("fakex", credentials)
