"""
Portfolio service: valuation and summaries derived from balances and fills.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from shared.errors import AccessLayerException
from shared.logging import get_logger

from ..market_data.service import MarketDataService
from ..trading.service import TradingService
from ..venues.gateway import Credentials


UNIT_VALUED_CURRENCIES = ("USD", "USDT", "USDC")
VALUATION_QUOTE = "USDT"
HISTORY_LIMIT = 100


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _fee_cost(trade: Dict[str, Any]) -> float:
    fee = trade.get("fee") or {}
    return float(fee.get("cost") or 0)


class PortfolioService:
    """Builds portfolio views on top of the trading and market data services."""

    def __init__(self, trading: TradingService, market_data: MarketDataService):
        self.trading = trading
        self.market_data = market_data
        self.logger = get_logger("exchange.portfolio")

    async def get_portfolio(self, venue_id: str, credentials: Optional[Credentials]) -> Dict[str, Any]:
        """Value every non-zero holding in USD.

        An asset whose price cannot be resolved is valued at 0 and reported in
        ``warnings`` rather than failing the whole portfolio.
        """
        balance = await self.trading.get_balance(venue_id, credentials)
        totals = balance.get("total") or {}
        free = balance.get("free") or {}
        used = balance.get("used") or {}

        holdings: List[Dict[str, Any]] = []
        warnings: List[Dict[str, str]] = []
        total_value = 0.0

        for currency, amount in totals.items():
            if not amount or amount <= 0:
                continue

            value = 0.0
            if currency in UNIT_VALUED_CURRENCIES:
                value = float(amount)
            else:
                try:
                    ticker = await self.market_data.get_ticker(venue_id, f"{currency}/{VALUATION_QUOTE}")
                    last = ticker.get("last")
                    if last is None:
                        raise ValueError("ticker has no last price")
                    value = float(amount) * float(last)
                except (AccessLayerException, ValueError, TypeError) as exc:
                    reason = exc.message if isinstance(exc, AccessLayerException) else str(exc)
                    self.logger.warning(
                        "Could not price holding, using 0 value",
                        venue_id=venue_id,
                        currency=currency,
                        reason=reason,
                    )
                    warnings.append({"currency": currency, "reason": reason})

            holdings.append({
                "currency": currency,
                "total": amount,
                "free": free.get(currency) or 0,
                "used": used.get(currency) or 0,
                "value_usd": value,
            })
            total_value += value

        return {
            "exchange": venue_id,
            "timestamp": _utc_now(),
            "total": totals,
            "free": free,
            "used": used,
            "currencies": holdings,
            "total_value_usd": total_value,
            "warnings": warnings,
        }

    async def get_positions(self, venue_id: str, credentials: Optional[Credentials]) -> Dict[str, Any]:
        """Spot balances reported as long positions."""
        balance = await self.trading.get_balance(venue_id, credentials)
        timestamp = _utc_now()
        positions = [
            {
                "symbol": currency,
                "side": "long",
                "size": amount,
                "contracts": amount,
                "contract_size": 1,
                "unrealized_pnl": 0,
                "percentage": 0,
                "timestamp": timestamp,
            }
            for currency, amount in (balance.get("total") or {}).items()
            if amount and amount > 0
        ]
        return {"exchange": venue_id, "positions": positions, "timestamp": timestamp}

    async def get_trading_history(
        self,
        venue_id: str,
        credentials: Optional[Credentials],
        symbol: Optional[str] = None,
    ) -> Dict[str, Any]:
        trades = await self.trading.get_my_trades(venue_id, credentials, symbol, HISTORY_LIMIT)

        total_volume = sum(float(trade.get("cost") or 0) for trade in trades)
        total_fees = sum(_fee_cost(trade) for trade in trades)

        return {
            "exchange": venue_id,
            "symbol": symbol or "ALL",
            "total_trades": len(trades),
            "total_volume": total_volume,
            "total_fees": total_fees,
            "average_trade_size": total_volume / len(trades) if trades else 0,
            "trades": [
                {
                    "id": trade.get("id"),
                    "timestamp": trade.get("timestamp"),
                    "datetime": trade.get("datetime"),
                    "symbol": trade.get("symbol"),
                    "side": trade.get("side"),
                    "amount": trade.get("amount"),
                    "price": trade.get("price"),
                    "cost": trade.get("cost"),
                    "fee": trade.get("fee"),
                }
                for trade in trades
            ],
        }

    async def get_profit_loss(
        self,
        venue_id: str,
        credentials: Optional[Credentials],
        symbol: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Running cost total by side over the most recent fills.

        Sells add their cost net of fees and buys subtract their cost plus
        fees. There is no lot matching, so the figure is only indicative.
        """
        trades = await self.trading.get_my_trades(venue_id, credentials, symbol, HISTORY_LIMIT)

        realized = 0.0
        total_fees = 0.0
        for trade in trades:
            fee = _fee_cost(trade)
            cost = float(trade.get("cost") or 0)
            total_fees += fee
            if trade.get("side") == "sell":
                realized += cost - fee
            else:
                realized -= cost + fee

        return {
            "exchange": venue_id,
            "symbol": symbol or "ALL",
            "approximate": True,
            "realized_pnl": realized,
            "unrealized_pnl": 0,
            "total_fees": total_fees,
            "net_pnl": realized - total_fees,
            "trades": len(trades),
        }
