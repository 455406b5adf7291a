"""
Catalog of supported venues and their static descriptors.
"""

import asyncio
from typing import Any, Dict, List, Optional

from shared.errors import InvalidArgumentError, UnsupportedVenueError
from shared.logging import get_logger

from ..caching.cache_store import CacheStore, make_cache_key
from .gateway import Capabilities, ExchangeGateway


VENUE_DESCRIPTIONS = {
    "binance": "World's largest cryptocurrency exchange by trading volume",
    "coinbase": "Leading US-based cryptocurrency exchange with regulatory compliance",
    "kraken": "Long-established US-based exchange known for security and reliability",
    "bybit": "Singapore-based derivatives and spot trading platform",
    "okx": "Global cryptocurrency exchange offering spot and derivatives trading",
    "kucoin": "Global cryptocurrency exchange with a wide variety of altcoins",
    "huobi": "Singapore-based global cryptocurrency exchange",
    "gateio": "Comprehensive cryptocurrency exchange with extensive altcoin selection",
    "bitfinex": "Advanced trading platform popular with professional traders",
    "mexc": "Global cryptocurrency exchange with focus on emerging tokens",
}

VENUE_FOUNDED = {
    "binance": 2017,
    "coinbase": 2012,
    "kraken": 2011,
    "bybit": 2018,
    "okx": 2017,
    "kucoin": 2017,
    "huobi": 2013,
    "gateio": 2013,
    "bitfinex": 2012,
    "mexc": 2018,
}

SUMMARY_FIELDS = ("id", "name", "countries", "urls", "has", "rate_limit", "certified", "pro")


class ExchangeCatalogService:
    """Lists venues and describes them without opening connections."""

    def __init__(self, gateway: ExchangeGateway, cache: CacheStore, *, ttl_seconds: int = 60):
        self.gateway = gateway
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.logger = get_logger("exchange.catalog")

    def list_exchanges(self) -> List[str]:
        return self.gateway.supported_venues()

    async def get_exchange_summaries(self) -> List[Dict[str, Any]]:
        """Summary record for every supported venue, sorted by name.

        Venues whose descriptor cannot be built are reported with an ``error``
        field instead of being dropped.
        """
        cache_key = make_cache_key("available_exchanges")
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return cached

        summaries = list(await asyncio.gather(
            *(self._summarize(venue_id) for venue_id in self.gateway.supported_venues())
        ))
        summaries.sort(key=lambda summary: str(summary.get("name") or summary["id"]).lower())

        await self.cache.set(cache_key, summaries, self.ttl_seconds)
        self.logger.info("Built exchange summaries", exchanges=len(summaries))
        return summaries

    async def get_exchange_info(self, venue_id: str) -> Dict[str, Any]:
        if not self.gateway.is_supported(venue_id):
            raise UnsupportedVenueError(venue_id)

        try:
            descriptor = await asyncio.to_thread(self.gateway.describe, venue_id)
        except Exception as exc:
            self.logger.error("Failed to describe exchange", venue_id=venue_id, error=str(exc))
            raise InvalidArgumentError(
                f"Failed to get details for exchange '{venue_id}'",
                {"venue_id": venue_id, "error": str(exc)},
            ) from exc

        info = dict(descriptor)
        info["capabilities"] = Capabilities.from_has(info.pop("has", None)).to_dict()
        info["description"] = describe_venue(venue_id)
        info["founded"] = founded_year(venue_id)
        info["status"] = "operational"
        return info

    async def _summarize(self, venue_id: str) -> Dict[str, Any]:
        try:
            descriptor = await asyncio.to_thread(self.gateway.describe, venue_id)
        except Exception as exc:
            self.logger.warning("Failed to describe exchange", venue_id=venue_id, error=str(exc))
            return {"id": venue_id, "name": venue_id, "error": str(exc)}
        return {field: descriptor.get(field) for field in SUMMARY_FIELDS}


def describe_venue(venue_id: str) -> str:
    return VENUE_DESCRIPTIONS.get(venue_id, f"{venue_id} cryptocurrency exchange")


def founded_year(venue_id: str) -> Optional[int]:
    return VENUE_FOUNDED.get(venue_id)
