"""Domain tool registry entrypoint."""

from __future__ import annotations

from dataclasses import dataclass

from mcp.server.fastmcp import FastMCP

from portfolio_engine.config.settings import Settings
from portfolio_engine.portfolio.portfolio_service import PortfolioService
from portfolio_engine.portfolio.preferences import InMemoryTargetAllocationStore, TargetAllocationStore
from portfolio_engine.providers.brokerage import BrokerageClient
from portfolio_engine.services.base import ServiceContext
from portfolio_engine.services.benchmarks import BenchmarkService
from portfolio_engine.services.market_enrichment import MarketEnrichmentClient
from portfolio_engine.tools.portfolio_tools import register_portfolio_tools


@dataclass
class ToolServices:
    portfolio: PortfolioService
    enrichment: MarketEnrichmentClient
    default_user_id: str = "default"


def build_tool_services(
    ctx: ServiceContext,
    brokerage: BrokerageClient,
    settings: Settings,
    targets: TargetAllocationStore | None = None,
) -> ToolServices:
    enrichment = MarketEnrichmentClient(ctx)
    benchmarks = (
        BenchmarkService(ctx, history_ttl_seconds=settings.cache_ttl_history_seconds)
        if settings.include_benchmarks
        else None
    )
    portfolio = PortfolioService(
        brokerage,
        enrichment,
        targets or InMemoryTargetAllocationStore(),
        benchmarks=benchmarks,
        max_concurrent_buckets=settings.max_concurrent_buckets,
        max_concurrent_enrichments=settings.max_concurrent_enrichments,
        timeout_seconds=settings.aggregation_timeout_seconds,
        reserved_bucket_name=settings.reserved_bucket_name,
        rebalance_threshold=settings.rebalance_threshold_percent,
        default_monthly_budget=settings.default_monthly_budget,
        default_country_code=settings.default_country_code,
    )
    return ToolServices(portfolio=portfolio, enrichment=enrichment, default_user_id=settings.default_user_id)


def register_all_tools(mcp: FastMCP, services: ToolServices) -> None:
    register_portfolio_tools(mcp, services)
