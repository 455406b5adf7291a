"""
Exchange API service package for the Exchange Access Layer.

The service fronts cryptocurrency venues reached through ccxt:
- Market data: tickers, order books, trades, candles and top rates
- Trading: balances and order management with caller-supplied credentials
- Portfolio: valuation, positions and trade summaries

Structure:
- app.main: FastAPI app and route wiring.
- app.caching: Two-tier cache (Redis with in-process fallback).
- app.venues: Gateway adapter, handle pool, error translation, catalog.
- app.market_data: Market data facade and the rate aggregator.
- app.trading: Authenticated order and balance facade.
- app.portfolio: Portfolio views over trading and market data.
- app.domain: Request body models.
"""
