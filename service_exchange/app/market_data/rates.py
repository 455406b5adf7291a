"""
Top-N asset rates for a venue, priced in a reference currency.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from shared.errors import AccessLayerException, UnsupportedOperationError, VenueUnavailableError
from shared.logging import get_logger

from ..caching.cache_store import CacheStore, make_cache_key
from ..venues.errors import translate_gateway_error
from ..venues.gateway import GatewayHandle
from ..venues.pool import InstancePool


# Approximate market-cap rank
PRIORITY_ASSETS: Tuple[str, ...] = (
    "BTC", "ETH", "ADA", "SOL", "XRP", "DOT", "DOGE", "AVAX",
    "MATIC", "LTC", "LINK", "UNI", "ATOM", "FTT", "NEAR",
)

# Fiat reference first so it wins deduplication over stablecoin pairs
DEFAULT_REFERENCE_CURRENCIES: Tuple[str, ...] = ("USD", "USDT", "BUSD")

FALLBACK_QUOTE_CURRENCY = "USDT"

MIN_LIMIT = 1
MAX_LIMIT = 20
DEFAULT_TOP_RATES_TTL = 30


def clamp_limit(limit: int) -> int:
    return max(MIN_LIMIT, min(MAX_LIMIT, int(limit)))


def build_priority_symbols(reference_currencies: Sequence[str]) -> List[str]:
    """Expand the priority assets over the reference currencies, asset-major."""
    return [f"{asset}/{quote}" for asset in PRIORITY_ASSETS for quote in reference_currencies]


def base_asset(symbol: str) -> str:
    return symbol.split("/", 1)[0]


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class AggregatedRate:
    """One asset's quote in a top-rates result."""

    asset: str
    quote_symbol: str
    price_in_reference: Optional[float]
    bid: Optional[float]
    ask: Optional[float]
    change_24h: Optional[float]
    percentage_change_24h: Optional[float]
    volume_base: Optional[float]
    volume_reference: float
    high: Optional[float]
    low: Optional[float]
    timestamp: Optional[int]
    datetime: Optional[str]

    @classmethod
    def from_ticker(cls, symbol: str, ticker: Dict[str, Any]) -> "AggregatedRate":
        last = _optional_float(ticker.get("last"))
        base_volume = _optional_float(ticker.get("baseVolume"))
        quote_volume = _optional_float(ticker.get("quoteVolume"))
        if quote_volume is None and base_volume is not None and last is not None:
            quote_volume = base_volume * last

        return cls(
            asset=ticker.get("base") or base_asset(symbol),
            quote_symbol=ticker.get("symbol") or symbol,
            price_in_reference=last,
            bid=_optional_float(ticker.get("bid")),
            ask=_optional_float(ticker.get("ask")),
            change_24h=_optional_float(ticker.get("change")),
            percentage_change_24h=_optional_float(ticker.get("percentage")),
            volume_base=base_volume,
            volume_reference=quote_volume or 0.0,
            high=_optional_float(ticker.get("high")),
            low=_optional_float(ticker.get("low")),
            timestamp=ticker.get("timestamp"),
            datetime=ticker.get("datetime"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AggregatedRate":
        return cls(**payload)


class RateAggregator:
    """Answers "top N assets by traded volume" for one venue."""

    def __init__(
        self,
        pool: InstancePool,
        cache: CacheStore,
        *,
        ttl_seconds: int = DEFAULT_TOP_RATES_TTL,
    ):
        self.pool = pool
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("exchange.rates")

    async def top_rates(
        self,
        venue_id: str,
        reference_currencies: Sequence[str] = DEFAULT_REFERENCE_CURRENCIES,
        limit: int = 10,
    ) -> List[AggregatedRate]:
        limit = clamp_limit(limit)
        references = tuple(currency.upper() for currency in reference_currencies)

        try:
            handle = await self.pool.acquire(venue_id)
        except Exception as exc:
            raise self._unavailable(exc, venue_id, "acquire") from exc

        if not handle.capabilities.fetch_tickers:
            raise UnsupportedOperationError(venue_id, "fetch_tickers")

        cache_key = make_cache_key("top_rates", venue_id=venue_id, references=list(references), limit=limit)
        cached = await self.cache.get(cache_key)
        if cached is not None:
            self.logger.debug("Cache hit for top rates", venue_id=venue_id, limit=limit)
            return [AggregatedRate.from_dict(item) for item in cached]

        candidates = self._select_candidates(handle, references, limit)
        if not candidates:
            self.logger.info("No priority symbols tradable on venue", venue_id=venue_id)
            rates: List[AggregatedRate] = []
        else:
            try:
                tickers = await handle.fetch_tickers(candidates)
            except Exception as exc:
                raise self._unavailable(exc, venue_id, "fetch_tickers") from exc
            rates = self._rank(candidates, tickers or {})[:limit]

        await self.cache.set(cache_key, [rate.to_dict() for rate in rates], self.ttl_seconds)
        self.logger.info("Aggregated top rates", venue_id=venue_id, limit=limit, returned=len(rates))
        return rates

    def _select_candidates(self, handle: GatewayHandle, references: Sequence[str], limit: int) -> List[str]:
        tradable = set(handle.symbols)
        candidates = [symbol for symbol in build_priority_symbols(references) if symbol in tradable]
        if candidates:
            return candidates

        rank = {asset: position for position, asset in enumerate(PRIORITY_ASSETS)}
        suffix = f"/{FALLBACK_QUOTE_CURRENCY}"
        fallback = [
            symbol for symbol in handle.symbols
            if symbol.endswith(suffix) and base_asset(symbol) in rank
        ]
        fallback.sort(key=lambda symbol: rank[base_asset(symbol)])
        return fallback[:limit]

    def _rank(self, candidates: Sequence[str], tickers: Dict[str, Any]) -> List[AggregatedRate]:
        seen = set()
        rates: List[AggregatedRate] = []
        for symbol in candidates:
            ticker = tickers.get(symbol)
            if not ticker:
                continue
            rate = AggregatedRate.from_ticker(symbol, ticker)
            if rate.asset in seen:
                continue
            seen.add(rate.asset)
            rates.append(rate)

        # sorted() is stable, ties keep priority order
        return sorted(rates, key=lambda rate: rate.volume_reference, reverse=True)

    def _unavailable(self, exc: Exception, venue_id: str, operation: str) -> AccessLayerException:
        translated = translate_gateway_error(exc, venue_id, operation)
        if isinstance(translated, VenueUnavailableError):
            return translated
        details = dict(translated.details)
        details.setdefault("venue_id", venue_id)
        details.setdefault("operation", operation)
        details["cause"] = translated.code
        return VenueUnavailableError(f"Failed to fetch rates from {venue_id}: {translated.message}", details)
