"""Concurrent fan-out over buckets and reduction into the overall summary."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping

from portfolio_engine.portfolio.bucket_aggregator import BucketAggregator, apply_targets
from portfolio_engine.portfolio.metadata_cache import InstrumentMetadataCache
from portfolio_engine.portfolio.models import Bucket, OverallSummary
from portfolio_engine.providers.brokerage import BrokerageClient
from portfolio_engine.providers.models import BucketRef
from portfolio_engine.services.market_enrichment import MarketEnrichmentClient

LOGGER = logging.getLogger(__name__)

# Extra time for cancelled tasks to unwind after the run deadline.
DEADLINE_GRACE_SECONDS = 0.5
# Workers for the three top-level brokerage calls.
TOP_LEVEL_CALLS = 3


@dataclass
class AggregationResult:
    buckets: list[Bucket] = field(default_factory=list)
    summary: OverallSummary = field(default_factory=OverallSummary)
    buckets_available: bool = True
    warnings: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.buckets_available and not self.warnings


def summarize(buckets: list[Bucket], free_cash: float, fetch_date: str | None) -> OverallSummary:
    invested = sum(bucket.total_invested for bucket in buckets)
    result = sum(bucket.total_result for bucket in buckets)
    return OverallSummary(
        total_invested=invested,
        total_result=result,
        return_percentage=result * 100.0 / invested if invested else 0.0,
        free_cash_available=free_cash,
        fetch_date=fetch_date,
    )


class PortfolioAggregator:
    def __init__(
        self,
        brokerage: BrokerageClient,
        enrichment: MarketEnrichmentClient | None,
        max_concurrent_buckets: int = 4,
        max_concurrent_enrichments: int = 8,
        timeout_seconds: float | None = 60.0,
        reserved_bucket_name: str = "OverallSummary",
    ) -> None:
        self.brokerage = brokerage
        self.enrichment = enrichment
        self.max_concurrent_buckets = max(1, max_concurrent_buckets)
        self.max_concurrent_enrichments = max(1, max_concurrent_enrichments)
        self.timeout_seconds = timeout_seconds if timeout_seconds and timeout_seconds > 0 else None
        self.reserved_bucket_name = reserved_bucket_name

    async def _call(
        self,
        executor: Executor,
        fn: Callable[..., Any],
        *args: Any,
        deadline: float | None,
        label: str,
    ) -> Any:
        loop = asyncio.get_running_loop()
        remaining = None if deadline is None else max(0.0, deadline - loop.time())
        try:
            return await asyncio.wait_for(loop.run_in_executor(executor, fn, *args), timeout=remaining)
        except asyncio.TimeoutError:
            LOGGER.warning("brokerage call timed out: op=%s", label)
        except Exception:
            LOGGER.exception("brokerage call failed: op=%s", label)
        return None

    async def aggregate(
        self,
        user_id: str,
        now: datetime,
        fetch_date: str,
        stored_targets: Mapping[str, float] | None = None,
    ) -> AggregationResult:
        """Aggregate every bucket for ``user_id`` within the configured deadline.

        Blocking calls run on an executor owned by this run. It is shut down
        without waiting, so calls still stuck at the deadline never hold up
        the caller and queued calls that never started are dropped.
        """
        executor = ThreadPoolExecutor(
            max_workers=self.max_concurrent_buckets + self.max_concurrent_enrichments + TOP_LEVEL_CALLS,
            thread_name_prefix="portfolio-run",
        )
        try:
            return await self._aggregate(executor, user_id, now, fetch_date, stored_targets)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    async def _aggregate(
        self,
        executor: Executor,
        user_id: str,
        now: datetime,
        fetch_date: str,
        stored_targets: Mapping[str, float] | None,
    ) -> AggregationResult:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds if self.timeout_seconds else None

        # Metadata, cash and the bucket list are independent; bucket work starts after all three.
        metadata_items, cash, refs = await asyncio.gather(
            self._call(executor, self.brokerage.get_instruments_metadata, user_id, deadline=deadline, label="metadata"),
            self._call(executor, self.brokerage.get_cash_balance, user_id, deadline=deadline, label="cash"),
            self._call(executor, self.brokerage.list_buckets, user_id, deadline=deadline, label="list_buckets"),
        )
        outcome = AggregationResult()
        if refs is None:
            LOGGER.warning("bucket list unavailable: user=%s", user_id)
            outcome.buckets_available = False
            outcome.summary = summarize([], cash or 0.0, fetch_date)
            return outcome
        if metadata_items is None:
            outcome.warnings.append("instrument_metadata_unavailable")
        if cash is None:
            outcome.warnings.append("cash_unavailable")
        metadata = InstrumentMetadataCache(metadata_items or [])

        buckets = await self._aggregate_buckets(
            executor, user_id, refs, metadata, now, fetch_date, deadline, outcome
        )
        included = [bucket for bucket in buckets if bucket.name != self.reserved_bucket_name]
        apply_targets(included, stored_targets)
        outcome.buckets = included
        outcome.summary = summarize(included, cash or 0.0, fetch_date)
        LOGGER.info(
            "portfolio aggregated: user=%s buckets=%s omitted=%s warnings=%s",
            user_id,
            len(included),
            len(refs) - len(buckets),
            len(outcome.warnings),
        )
        return outcome

    async def _aggregate_buckets(
        self,
        executor: Executor,
        user_id: str,
        refs: list[BucketRef],
        metadata: InstrumentMetadataCache,
        now: datetime,
        fetch_date: str,
        deadline: float | None,
        outcome: AggregationResult,
    ) -> list[Bucket]:
        if not refs:
            return []
        bucket_limit = asyncio.Semaphore(self.max_concurrent_buckets)
        worker = BucketAggregator(
            self.brokerage,
            self.enrichment,
            enrichment_limit=asyncio.Semaphore(self.max_concurrent_enrichments),
            executor=executor,
        )

        async def run_one(ref: BucketRef) -> tuple[Bucket | None, int]:
            async with bucket_limit:
                try:
                    return await worker.aggregate(user_id, ref, metadata, now, fetch_date, deadline)
                except Exception:
                    LOGGER.exception("bucket task failed: user=%s bucket=%s", user_id, ref.bucket_id)
                    return None, 0

        tasks = [asyncio.create_task(run_one(ref)) for ref in refs]
        timeout = None
        if deadline is not None:
            timeout = max(0.0, deadline - asyncio.get_running_loop().time()) + DEADLINE_GRACE_SECONDS
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            outcome.warnings.append("deadline_reached")
            LOGGER.warning("aggregation deadline reached: user=%s pending_buckets=%s", user_id, len(pending))

        buckets: list[Bucket] = []
        skipped_holdings = 0
        for ref, task in zip(refs, tasks):
            if task in pending:
                continue
            bucket, skipped = task.result()
            skipped_holdings += skipped
            if bucket is None:
                LOGGER.warning("bucket omitted: user=%s bucket=%s", user_id, ref.bucket_id)
                outcome.warnings.append(f"bucket_omitted:{ref.bucket_id}")
                continue
            buckets.append(bucket)
        if skipped_holdings and "deadline_reached" not in outcome.warnings:
            outcome.warnings.append("deadline_reached")
        return buckets
