from .service import TradingService

__all__ = ["TradingService"]
