"""Portfolio aggregation and allocation orchestration service."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from portfolio_engine.portfolio.allocation import analyze_allocation, compute_target_investments
from portfolio_engine.portfolio.models import AllocationAnalysis, PerformanceMetrics, RebalanceAction
from portfolio_engine.portfolio.portfolio_aggregator import PortfolioAggregator
from portfolio_engine.portfolio.preferences import TargetAllocationStore
from portfolio_engine.portfolio.rebalance import plan_rebalance
from portfolio_engine.providers.brokerage import BrokerageClient
from portfolio_engine.services.benchmarks import BenchmarkService
from portfolio_engine.services.market_enrichment import MarketEnrichmentClient

LOGGER = logging.getLogger(__name__)

FETCH_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class PortfolioService:
    def __init__(
        self,
        brokerage: BrokerageClient,
        enrichment: MarketEnrichmentClient | None,
        targets: TargetAllocationStore,
        benchmarks: BenchmarkService | None = None,
        max_concurrent_buckets: int = 4,
        max_concurrent_enrichments: int = 8,
        timeout_seconds: float | None = 60.0,
        reserved_bucket_name: str = "OverallSummary",
        rebalance_threshold: float = 5.0,
        default_monthly_budget: float = 1000.0,
        default_country_code: str = "BG",
    ) -> None:
        self.targets = targets
        self.benchmarks = benchmarks
        self.rebalance_threshold = rebalance_threshold
        self.default_monthly_budget = default_monthly_budget
        self.default_country_code = default_country_code
        self.aggregator = PortfolioAggregator(
            brokerage,
            enrichment,
            max_concurrent_buckets=max_concurrent_buckets,
            max_concurrent_enrichments=max_concurrent_enrichments,
            timeout_seconds=timeout_seconds,
            reserved_bucket_name=reserved_bucket_name,
        )

    async def fetch_portfolio_data_async(
        self,
        user_id: str,
        monthly_budget: float | None = None,
        country_code: str | None = None,
        now: datetime | None = None,
    ) -> PerformanceMetrics:
        current = now or datetime.now(timezone.utc)
        fetch_date = current.strftime(FETCH_DATE_FORMAT)
        budget = self.default_monthly_budget if monthly_budget is None else monthly_budget
        country = country_code or self.default_country_code
        try:
            outcome = await self.aggregator.aggregate(user_id, current, fetch_date, self.targets.get_targets(user_id))
        except Exception:
            LOGGER.exception("portfolio aggregation failed: user=%s", user_id)
            return PerformanceMetrics.empty(fetch_date, country, warnings=["aggregation_failed"])
        if not outcome.buckets_available:
            return PerformanceMetrics.empty(fetch_date, country, warnings=["bucket_list_unavailable"])

        analysis = analyze_allocation(outcome.buckets, budget, self.rebalance_threshold)
        metrics = PerformanceMetrics(
            buckets=outcome.buckets,
            overall_summary=outcome.summary,
            allocation_analysis=analysis,
            rebalance_investment_for_target=compute_target_investments(analysis, budget),
            free_cash_available=outcome.summary.free_cash_available,
            fetch_date=fetch_date,
            country_code=country,
            status="complete" if outcome.complete else "partial",
            warnings=list(outcome.warnings),
        )
        if self.benchmarks is not None and outcome.buckets:
            try:
                metrics.benchmarks = await asyncio.to_thread(self.benchmarks.get_benchmarks, current)
            except Exception:
                LOGGER.exception("benchmark lookup failed: user=%s", user_id)
        return metrics

    def fetch_portfolio_data(
        self,
        user_id: str,
        monthly_budget: float | None = None,
        country_code: str | None = None,
    ) -> PerformanceMetrics:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.fetch_portfolio_data_async(user_id, monthly_budget, country_code))
        with ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(
                lambda: asyncio.run(self.fetch_portfolio_data_async(user_id, monthly_budget, country_code))
            )
            return future.result()

    def plan_rebalance(self, analysis: AllocationAnalysis, additional_amount: float = 0.0) -> list[RebalanceAction]:
        if additional_amount < 0:
            raise ValueError("additional_amount must be >= 0.")
        return plan_rebalance(analysis, additional_amount)

    def set_target_allocation(self, user_id: str, bucket_name: str, percent: float) -> None:
        if not bucket_name.strip():
            raise ValueError("bucket_name is required.")
        if not 0.0 <= percent <= 100.0:
            raise ValueError("percent must be between 0 and 100.")
        self.targets.set_target(user_id, bucket_name, percent)
