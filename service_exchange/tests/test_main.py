"""
Route tests for the exchange API service.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from service_exchange.app.caching.cache_store import CacheStore
from service_exchange.app.main import create_app
from service_exchange.tests.conftest import FakeGateway
from shared.errors import UnsupportedOperationError, VenueUnavailableError

API = "/api/v1/exchanges"
CREDENTIALS = {"apiKey": "key-1", "secret": "secret-1"}


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def client(fake_gateway):
    app = create_app(gateway=fake_gateway)
    return TestClient(app)


@pytest.fixture
def service(client):
    return client.app.state.exchange_service


def test_health_reports_cache_and_pool(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["dependencies"]["cache_tier1"] == "disabled"
    assert body["dependencies"]["pooled_handles"] == "0"


def test_health_pings_redis_tier(fake_gateway):
    redis_client = AsyncMock()
    redis_client.ping.side_effect = ConnectionError("redis down")
    app = create_app(gateway=fake_gateway, cache=CacheStore(redis_client=redis_client))

    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json()["dependencies"]["cache_tier1"] == "degraded"
    redis_client.ping.assert_awaited()


def test_health_detailed(client):
    response = client.get("/health/detailed")

    assert response.status_code == 200
    body = response.json()
    assert body["exchanges"] == 2
    assert "ccxt_version" in body
    assert "python" in body["system"]


def test_metrics_endpoint(client):
    client.get(f"{API}")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text


def test_list_exchanges(client):
    response = client.get(API)

    assert response.status_code == 200
    assert response.json() == {"exchanges": ["fakex", "otherx"], "count": 2}


def test_exchange_summary_route_not_shadowed(client):
    response = client.get(f"{API}/summary")

    assert response.status_code == 200
    assert response.json()["count"] == 2


def test_exchange_info(client):
    response = client.get(f"{API}/fakex")

    assert response.status_code == 200
    assert response.json()["status"] == "operational"


def test_ticker(client):
    response = client.get(f"{API}/fakex/ticker", params={"symbol": "BTC/USDT"})

    assert response.status_code == 200
    assert response.json()["symbol"] == "BTC/USDT"


def test_unsupported_venue_is_400(client):
    response = client.get(f"{API}/nowhere/ticker", params={"symbol": "BTC/USDT"}, headers={"X-Request-ID": "req-42"})

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "UNSUPPORTED_VENUE"
    assert body["request_id"] == "req-42"
    assert response.headers["X-Request-ID"] == "req-42"


def test_unknown_symbol_is_404(client):
    response = client.get(f"{API}/fakex/ticker", params={"symbol": "NOPE/USDT"})

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_invalid_symbol_is_400(client):
    response = client.get(f"{API}/fakex/ticker", params={"symbol": "BTC USDT"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"


def test_order_book_and_trades(client):
    book = client.get(f"{API}/fakex/orderbook", params={"symbol": "BTC/USDT", "limit": 5})
    trades = client.get(f"{API}/fakex/trades", params={"symbol": "BTC/USDT", "limit": 3})

    assert book.status_code == 200
    assert len(book.json()["bids"]) == 5
    assert trades.status_code == 200
    assert len(trades.json()["trades"]) == 3


def test_ohlcv_unknown_timeframe_is_400(client):
    response = client.get(f"{API}/fakex/ohlcv", params={"symbol": "BTC/USDT", "timeframe": "7m"})

    assert response.status_code == 400


def test_rates_limit_is_clamped(client):
    response = client.get(f"{API}/fakex/rates", params={"limit": 1000})

    assert response.status_code == 200
    body = response.json()
    assert body["total_pairs"] <= 20
    assert body["exchange"] == "fakex"


def test_rates_unavailable_is_503(client, service):
    service.market_data_service.get_top_rates = AsyncMock(
        side_effect=VenueUnavailableError("venue down", {"venue_id": "fakex"})
    )

    response = client.get(f"{API}/fakex/rates")

    assert response.status_code == 503
    assert response.json()["code"] == "VENUE_UNAVAILABLE"


def test_unsupported_operation_is_501(client, service):
    service.market_data_service.get_ohlcv = AsyncMock(side_effect=UnsupportedOperationError("fakex", "fetch_ohlcv"))

    response = client.get(f"{API}/fakex/ohlcv", params={"symbol": "BTC/USDT"})

    assert response.status_code == 501


def test_unexpected_error_is_500(fake_gateway):
    app = create_app(gateway=fake_gateway)
    app.state.exchange_service.market_data_service.get_markets = AsyncMock(side_effect=RuntimeError("bug"))
    client = TestClient(app, raise_server_exceptions=False)

    response = client.get(f"{API}/fakex/markets")

    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"


def test_balance_without_credentials_is_401(client, fake_gateway):
    response = client.post(f"{API}/fakex/balance")

    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_REQUIRED"
    assert fake_gateway.connect_calls == 0


def test_balance_with_credentials(client):
    response = client.post(f"{API}/fakex/balance", json=CREDENTIALS)

    assert response.status_code == 200
    assert response.json()["total"]["BTC"] == 0.5


def test_create_order_flow(client):
    created = client.post(
        f"{API}/fakex/orders",
        json={**CREDENTIALS, "symbol": "BTC/USDT", "type": "limit", "side": "buy", "amount": 0.1, "price": 30000},
    )
    order_id = created.json()["id"]

    fetched = client.post(f"{API}/fakex/orders/{order_id}", json={**CREDENTIALS, "symbol": "BTC/USDT"})
    cancelled = client.post(f"{API}/fakex/orders/cancel", json={**CREDENTIALS, "orderId": order_id})
    open_orders = client.post(f"{API}/fakex/orders/open", json=CREDENTIALS)

    assert created.status_code == 200
    assert fetched.json()["status"] == "open"
    assert cancelled.json()["status"] == "canceled"
    assert open_orders.json()["count"] == 0


def test_create_order_missing_amount_is_400(client):
    response = client.post(
        f"{API}/fakex/orders",
        json={**CREDENTIALS, "symbol": "BTC/USDT", "type": "market", "side": "buy"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ARGUMENT"


def test_limit_order_without_price_is_400(client):
    response = client.post(
        f"{API}/fakex/orders",
        json={**CREDENTIALS, "symbol": "BTC/USDT", "type": "limit", "side": "buy", "amount": 1},
    )

    assert response.status_code == 400


def test_portfolio_routes(client):
    portfolio = client.post(f"{API}/fakex/portfolio", json=CREDENTIALS)
    positions = client.post(f"{API}/fakex/positions", json=CREDENTIALS)
    history = client.post(f"{API}/fakex/trading-history", json=CREDENTIALS)
    pnl = client.post(f"{API}/fakex/profit-loss", json=CREDENTIALS)

    assert portfolio.status_code == 200
    assert portfolio.json()["total_value_usd"] == 1050.0
    assert positions.status_code == 200
    assert history.json()["total_trades"] == 4
    assert pnl.json()["approximate"] is True
