from .service import PortfolioService

__all__ = ["PortfolioService"]
