"""
Market data service layer for the exchange service.
"""

from .rates import AggregatedRate, RateAggregator
from .service import MarketDataService

__all__ = ["AggregatedRate", "MarketDataService", "RateAggregator"]
