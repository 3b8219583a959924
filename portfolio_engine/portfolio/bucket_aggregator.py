"""Per-bucket fetch, enrichment join and totals."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping

from portfolio_engine.portfolio.metadata_cache import InstrumentMetadataCache
from portfolio_engine.portfolio.models import Bucket, DividendCashAction, Holding
from portfolio_engine.portfolio.targets import resolve_target
from portfolio_engine.providers.brokerage import BrokerageClient
from portfolio_engine.providers.models import BucketRef, InstrumentPerformance, RawBucket, RawHolding
from portfolio_engine.providers.symbols import normalize_ticker
from portfolio_engine.services.market_enrichment import MarketEnrichmentClient

LOGGER = logging.getLogger(__name__)


@dataclass
class BucketTotals:
    total_invested: float
    total_result: float
    return_percentage: float


def compute_totals(holdings: list[Holding]) -> BucketTotals:
    invested = sum(item.invested_value for item in holdings)
    result = sum(item.current_value - item.invested_value for item in holdings)
    percent = result * 100.0 / invested if invested else 0.0
    return BucketTotals(total_invested=invested, total_result=result, return_percentage=percent)


def build_holding(
    raw: RawHolding,
    metadata: InstrumentMetadataCache,
    performance: InstrumentPerformance | None,
) -> Holding:
    holding = Holding(
        ticker=raw.ticker,
        owned_quantity=raw.owned_quantity,
        invested_value=raw.invested_value,
        current_value=raw.current_value,
        current_share=raw.current_share,
        expected_share=raw.expected_share,
        issues=raw.issues,
    )
    meta = metadata.get(raw.ticker)
    if meta is not None:
        holding.full_name = meta.name
        holding.currency_code = meta.currency_code
        holding.exchange = meta.exchange
        holding.instrument_type = meta.instrument_type
        holding.added_on = meta.added_on
        holding.max_open_quantity = meta.max_open_quantity
        holding.min_trade_quantity = meta.min_trade_quantity
    if performance is not None:
        holding.market_symbol = performance.symbol
        holding.dividend_yield = performance.dividend_yield or 0.0
        holding.performance_1week = performance.performance_1week
        holding.performance_1month = performance.performance_1month
        holding.performance_3months = performance.performance_3months
        holding.performance_1year = performance.performance_1year
    return holding


def build_bucket(
    raw: RawBucket,
    metadata: InstrumentMetadataCache,
    performances: list[InstrumentPerformance | None],
    fetch_date: str | None = None,
) -> Bucket:
    """Pure join of one bucket's brokerage rows with metadata and enrichment, by position."""
    holdings = [build_holding(item, metadata, perf) for item, perf in zip(raw.holdings, performances)]
    totals = compute_totals(holdings)
    return Bucket(
        bucket_id=raw.bucket_id,
        name=raw.name,
        creation_date=raw.creation_date,
        dividend_cash_action=DividendCashAction.from_brokerage(raw.dividend_cash_action),
        holdings=holdings,
        total_invested=totals.total_invested,
        total_result=totals.total_result,
        return_percentage=totals.return_percentage,
        fetch_date=fetch_date,
    )


def apply_targets(buckets: list[Bucket], stored_targets: Mapping[str, float] | None = None) -> None:
    """Resolve target allocation for each bucket: stored, then name suffix, then equal split."""
    for bucket in buckets:
        resolved = resolve_target(bucket.name, len(buckets), stored_targets)
        bucket.target_allocation = resolved.percent
        bucket.target_source = resolved.source


class BucketAggregator:
    def __init__(
        self,
        brokerage: BrokerageClient,
        enrichment: MarketEnrichmentClient | None,
        enrichment_limit: asyncio.Semaphore | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.brokerage = brokerage
        self.enrichment = enrichment
        self._enrichment_limit = enrichment_limit or asyncio.Semaphore(8)
        # None runs blocking calls on the loop default executor.
        self._executor = executor

    @staticmethod
    def _remaining(deadline: float | None) -> float | None:
        if deadline is None:
            return None
        return max(0.0, deadline - asyncio.get_running_loop().time())

    async def _fetch_detail(self, user_id: str, ref: BucketRef, deadline: float | None) -> RawBucket | None:
        try:
            return await asyncio.wait_for(
                asyncio.get_running_loop().run_in_executor(
                    self._executor, self.brokerage.get_bucket_detail, user_id, ref.bucket_id
                ),
                timeout=self._remaining(deadline),
            )
        except asyncio.TimeoutError:
            LOGGER.warning("bucket fetch timed out: user=%s bucket=%s", user_id, ref.bucket_id)
            return None

    async def _enrich(self, ticker: str, now: datetime) -> InstrumentPerformance:
        async with self._enrichment_limit:
            try:
                return await asyncio.get_running_loop().run_in_executor(
                    self._executor, self.enrichment.get_performance, ticker, now
                )
            except Exception:
                LOGGER.exception("enrichment task failed: ticker=%s", ticker)
                return InstrumentPerformance.unavailable(normalize_ticker(ticker))

    async def _enrich_all(
        self,
        raw: RawBucket,
        now: datetime,
        deadline: float | None,
    ) -> tuple[list[InstrumentPerformance | None], int]:
        if self.enrichment is None or not raw.holdings:
            return [None] * len(raw.holdings), 0
        tasks = [asyncio.create_task(self._enrich(item.ticker, now)) for item in raw.holdings]
        _, pending = await asyncio.wait(tasks, timeout=self._remaining(deadline))
        for task in pending:
            task.cancel()
        if pending:
            LOGGER.warning("enrichment deadline reached: bucket=%s pending=%s", raw.bucket_id, len(pending))
        performances = [None if task in pending else task.result() for task in tasks]
        return performances, len(pending)

    async def aggregate(
        self,
        user_id: str,
        ref: BucketRef,
        metadata: InstrumentMetadataCache,
        now: datetime,
        fetch_date: str | None = None,
        deadline: float | None = None,
    ) -> tuple[Bucket | None, int]:
        """Fetch and enrich one bucket.

        Returns the bucket (None when its detail is unavailable) and the number
        of holdings left without enrichment because the deadline passed.
        """
        raw = await self._fetch_detail(user_id, ref, deadline)
        if raw is None:
            return None, 0
        performances, skipped = await self._enrich_all(raw, now, deadline)
        return build_bucket(raw, metadata, performances, fetch_date), skipped
