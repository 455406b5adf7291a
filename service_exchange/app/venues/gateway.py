"""
Exchange gateway backed by ccxt.

The gateway builds live venue handles (``ccxt.async_support`` clients with
their market catalog loaded) and static venue descriptors (plain ``ccxt``
classes, no network I/O). Errors raised by the venue clients are left as ccxt
exceptions; callers translate them with :mod:`.errors`.
"""

import hashlib
import json
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional

import ccxt
import ccxt.async_support as ccxt_async

from shared.logging import get_logger


PUBLIC_FINGERPRINT = "public"


@dataclass(frozen=True)
class Credentials:
    """Venue credentials presented by a caller."""

    api_key: Optional[str] = None
    secret: Optional[str] = None
    passphrase: Optional[str] = None
    sandbox: bool = False

    @classmethod
    def from_mapping(cls, payload: Optional[Mapping[str, Any]]) -> "Credentials":
        """Build credentials from a request body using either naming style."""
        if not payload:
            return cls()
        return cls(
            api_key=payload.get("api_key") or payload.get("apiKey"),
            secret=payload.get("secret"),
            passphrase=payload.get("passphrase") or payload.get("password"),
            sandbox=bool(payload.get("sandbox", False)),
        )

    @property
    def is_authenticated(self) -> bool:
        return bool(self.api_key and self.secret)

    @property
    def is_empty(self) -> bool:
        return not (self.api_key or self.secret or self.passphrase or self.sandbox)

    def fingerprint(self) -> str:
        """Stable digest identifying this credential set; never contains secrets."""
        if self.is_empty:
            return PUBLIC_FINGERPRINT
        material = {
            "api_key": self.api_key or "",
            "secret": self.secret or "",
            "passphrase": self.passphrase or "",
            "sandbox": self.sandbox,
        }
        encoded = json.dumps(material, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()

    def to_exchange_config(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {}
        if self.api_key:
            config["apiKey"] = self.api_key
        if self.secret:
            config["secret"] = self.secret
        if self.passphrase:
            config["password"] = self.passphrase
        return config


@dataclass(frozen=True)
class Capabilities:
    """Named capability flags of a venue."""

    fetch_ticker: bool = False
    fetch_tickers: bool = False
    fetch_order_book: bool = False
    fetch_trades: bool = False
    fetch_ohlcv: bool = False
    fetch_balance: bool = False
    create_order: bool = False
    cancel_order: bool = False
    fetch_order: bool = False
    fetch_orders: bool = False
    fetch_open_orders: bool = False
    fetch_my_trades: bool = False
    fetch_currencies: bool = False

    # ccxt "has" keys for each flag
    _HAS_KEYS = {
        "fetch_ticker": "fetchTicker",
        "fetch_tickers": "fetchTickers",
        "fetch_order_book": "fetchOrderBook",
        "fetch_trades": "fetchTrades",
        "fetch_ohlcv": "fetchOHLCV",
        "fetch_balance": "fetchBalance",
        "create_order": "createOrder",
        "cancel_order": "cancelOrder",
        "fetch_order": "fetchOrder",
        "fetch_orders": "fetchOrders",
        "fetch_open_orders": "fetchOpenOrders",
        "fetch_my_trades": "fetchMyTrades",
        "fetch_currencies": "fetchCurrencies",
    }

    @classmethod
    def from_has(cls, has: Optional[Mapping[str, Any]]) -> "Capabilities":
        """Read a ccxt ``has`` map; ``"emulated"`` counts as supported."""
        has = has or {}
        return cls(**{name: bool(has.get(key)) for name, key in cls._HAS_KEYS.items()})

    def supports(self, operation: str) -> bool:
        return bool(getattr(self, operation, False))

    def to_dict(self) -> Dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class GatewayHandle:
    """A connected venue client with its catalog loaded.

    Handles are shared by every caller presenting the same venue and
    credentials, so nothing here mutates the handle after construction.
    """

    def __init__(self, venue_id: str, exchange: Any, credentials: Credentials):
        self.venue_id = venue_id
        self.credentials = credentials
        self.capabilities = Capabilities.from_has(getattr(exchange, "has", None))
        self._exchange = exchange

    @property
    def authenticated(self) -> bool:
        return bool(getattr(self._exchange, "apiKey", None) and getattr(self._exchange, "secret", None))

    @property
    def symbols(self) -> List[str]:
        return list(getattr(self._exchange, "symbols", None) or self.markets.keys())

    @property
    def markets(self) -> Dict[str, Any]:
        return getattr(self._exchange, "markets", None) or {}

    @property
    def currencies(self) -> Dict[str, Any]:
        return getattr(self._exchange, "currencies", None) or {}

    async def fetch_ticker(self, symbol: str) -> Dict[str, Any]:
        return await self._exchange.fetch_ticker(symbol)

    async def fetch_tickers(self, symbols: Optional[List[str]] = None) -> Dict[str, Any]:
        return await self._exchange.fetch_tickers(symbols)

    async def fetch_order_book(self, symbol: str, limit: Optional[int] = None) -> Dict[str, Any]:
        return await self._exchange.fetch_order_book(symbol, limit)

    async def fetch_trades(self, symbol: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._exchange.fetch_trades(symbol, None, limit)

    async def fetch_ohlcv(self, symbol: str, timeframe: str, limit: Optional[int] = None) -> List[List[float]]:
        return await self._exchange.fetch_ohlcv(symbol, timeframe, None, limit)

    async def fetch_balance(self) -> Dict[str, Any]:
        return await self._exchange.fetch_balance()

    async def create_order(
        self,
        symbol: str,
        order_type: str,
        side: str,
        amount: float,
        price: Optional[float] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self._exchange.create_order(symbol, order_type, side, amount, price, params or {})

    async def cancel_order(self, order_id: str, symbol: Optional[str] = None) -> Dict[str, Any]:
        return await self._exchange.cancel_order(order_id, symbol)

    async def fetch_order(self, order_id: str, symbol: Optional[str] = None) -> Dict[str, Any]:
        return await self._exchange.fetch_order(order_id, symbol)

    async def fetch_orders(self, symbol: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._exchange.fetch_orders(symbol, None, limit)

    async def fetch_open_orders(self, symbol: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._exchange.fetch_open_orders(symbol)

    async def fetch_my_trades(self, symbol: Optional[str] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._exchange.fetch_my_trades(symbol, None, limit)

    async def close(self) -> None:
        await self._exchange.close()


class ExchangeGateway:
    """Builds venue handles and descriptors."""

    def __init__(
        self,
        *,
        timeout_ms: int = 30000,
        enable_rate_limit: bool = True,
        venue_options: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self.timeout_ms = timeout_ms
        self.enable_rate_limit = enable_rate_limit
        self.venue_options = venue_options or {}
        self.logger = get_logger("exchange.gateway")
        self._venue_ids = frozenset(ccxt_async.exchanges)

    def supported_venues(self) -> List[str]:
        """Sorted identifiers of every venue the gateway can reach."""
        return sorted(self._venue_ids)

    def is_supported(self, venue_id: str) -> bool:
        return venue_id in self._venue_ids

    def describe(self, venue_id: str) -> Dict[str, Any]:
        """Static descriptor of a venue; performs no network I/O."""
        exchange = getattr(ccxt, venue_id)()
        return {
            "id": venue_id,
            "name": getattr(exchange, "name", None) or venue_id,
            "countries": getattr(exchange, "countries", None) or [],
            "urls": getattr(exchange, "urls", None) or {},
            "version": getattr(exchange, "version", None),
            "rate_limit": getattr(exchange, "rateLimit", None) or 1000,
            "timeout": getattr(exchange, "timeout", None) or 10000,
            "certified": bool(getattr(exchange, "certified", False)),
            "pro": bool(getattr(exchange, "pro", False)),
            "has": dict(getattr(exchange, "has", None) or {}),
            "timeframes": getattr(exchange, "timeframes", None) or {},
            "fees": getattr(exchange, "fees", None) or {},
            "required_credentials": getattr(exchange, "requiredCredentials", None) or {},
        }

    def _build_exchange(self, venue_id: str, config: Dict[str, Any]) -> Any:
        return getattr(ccxt_async, venue_id)(config)

    async def connect(self, venue_id: str, credentials: Optional[Credentials] = None) -> GatewayHandle:
        """Create a handle for ``venue_id`` and load its market catalog."""
        credentials = credentials or Credentials()
        config: Dict[str, Any] = {
            "enableRateLimit": self.enable_rate_limit,
            "timeout": self.timeout_ms,
        }
        config.update(self.venue_options.get(venue_id, {}))
        config.update(credentials.to_exchange_config())

        exchange = self._build_exchange(venue_id, config)
        try:
            if credentials.sandbox:
                exchange.set_sandbox_mode(True)
            await exchange.load_markets()
        except Exception:
            await exchange.close()
            raise

        self.logger.info(
            "Created exchange instance",
            venue_id=venue_id,
            authenticated=credentials.is_authenticated,
            markets=len(getattr(exchange, "markets", None) or {}),
        )
        return GatewayHandle(venue_id, exchange, credentials)
