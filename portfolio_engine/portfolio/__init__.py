"""Portfolio aggregation domain package."""

from portfolio_engine.portfolio.models import AllocationAnalysis, PerformanceMetrics, RebalanceAction
from portfolio_engine.portfolio.portfolio_service import PortfolioService

__all__ = ["AllocationAnalysis", "PerformanceMetrics", "PortfolioService", "RebalanceAction"]
