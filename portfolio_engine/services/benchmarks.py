"""One-year benchmark index returns for portfolio comparison."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from portfolio_engine.providers.http import ProviderError
from portfolio_engine.providers.yahoo_finance import YahooFinanceClient
from portfolio_engine.services.base import ServiceContext, run_with_cache

LOGGER = logging.getLogger(__name__)


@dataclass
class Benchmark:
    name: str
    return_percentage: float
    description: str = ""
    last_updated: str | None = None
    symbol: str | None = None


@dataclass(frozen=True)
class BenchmarkIndex:
    symbol: str
    name: str
    description: str


BENCHMARK_INDEXES: tuple[BenchmarkIndex, ...] = (
    BenchmarkIndex("^GSPC", "S&P 500", "Large-cap US stocks index"),
    BenchmarkIndex("URTH", "MSCI World", "Global developed markets index"),
    BenchmarkIndex("^FTSE", "FTSE 100", "UK large-cap stocks index"),
    BenchmarkIndex("VWO", "Emerging Markets", "Emerging markets index"),
    BenchmarkIndex("AGG", "US Bonds", "US aggregate bond index"),
)

DEFAULT_RETURNS: dict[str, float] = {"S&P 500": 9.5, "MSCI World": 7.8, "FTSE 100": 5.2}


def default_benchmarks(today: datetime | None = None) -> list[Benchmark]:
    stamp = (today or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    by_name = {index.name: index for index in BENCHMARK_INDEXES}
    return [
        Benchmark(
            name=name,
            return_percentage=value,
            description=by_name[name].description,
            last_updated=stamp,
            symbol=by_name[name].symbol,
        )
        for name, value in DEFAULT_RETURNS.items()
    ]


class BenchmarkService:
    def __init__(self, ctx: ServiceContext, history_ttl_seconds: int | None = None) -> None:
        self.ctx = ctx
        self.history_ttl_seconds = history_ttl_seconds

    def get_benchmarks(self, now: datetime | None = None) -> list[Benchmark]:
        """Fetched benchmarks, or the static defaults when none could be fetched."""
        current = now or datetime.now(timezone.utc)
        fetched = run_with_cache(
            self.ctx,
            "benchmarks:one_year",
            lambda: self._fetch_all(current),
            ttl_seconds=self.history_ttl_seconds,
            should_cache=bool,
        )
        if not fetched:
            LOGGER.warning("benchmarks unavailable: using static defaults")
            return default_benchmarks(current)
        return fetched

    def _fetch_all(self, now: datetime) -> list[Benchmark]:
        yahoo = self.ctx.get_provider("yahoo")
        if not isinstance(yahoo, YahooFinanceClient):
            return []
        stamp = now.strftime("%Y-%m-%d")
        start = now - timedelta(days=365)
        out: list[Benchmark] = []
        for index in BENCHMARK_INDEXES:
            try:
                self.ctx.rate_limiter.wait("yahoo")
                closes = yahoo.get_monthly_closes(index.symbol, start=start, end=now)
            except ProviderError as error:
                LOGGER.warning("benchmark fetch failed: symbol=%s code=%s", index.symbol, error.code)
                continue
            if len(closes) < 2:
                continue
            oldest, newest = float(closes.iloc[0]), float(closes.iloc[-1])
            if oldest == 0:
                continue
            out.append(
                Benchmark(
                    name=index.name,
                    return_percentage=round((newest - oldest) / oldest * 100.0, 2),
                    description=index.description,
                    last_updated=stamp,
                    symbol=index.symbol,
                )
            )
        return out
