from datetime import datetime, timezone

import pandas as pd

from portfolio_engine.cache.ttl_cache import TTLCache
from portfolio_engine.providers.http import ProviderError
from portfolio_engine.providers.yahoo_finance import YahooFinanceClient
from portfolio_engine.services.base import ServiceContext
from portfolio_engine.services.benchmarks import BenchmarkService
from portfolio_engine.utils.rate_limit import RateLimiterRegistry

NOW = datetime(2024, 6, 30, tzinfo=timezone.utc)


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_ttl_cache_expires_entries() -> None:
    clock = _Clock()
    cache = TTLCache(default_ttl_seconds=10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2, ttl_seconds=30)

    clock.now += 10
    assert cache.get("a") is None
    assert cache.get("b") == 2
    cache.clear()
    assert len(cache) == 0


def test_rate_limiter_spaces_calls_per_provider(monkeypatch) -> None:
    slept: list[float] = []
    monkeypatch.setattr("portfolio_engine.utils.rate_limit.time.sleep", slept.append)
    monkeypatch.setattr("portfolio_engine.utils.rate_limit.time.monotonic", lambda: 50.0)
    limiter = RateLimiterRegistry(min_interval_seconds=0.5, overrides={"brokerage": 1.0})

    assert limiter.wait("yahoo") == 0.0
    assert limiter.wait("yahoo") == 0.5
    assert limiter.wait("brokerage") == 0.0
    assert limiter.wait("brokerage") == 1.0
    assert slept == [0.5, 1.0]


class _FakeYahoo(YahooFinanceClient):
    def __init__(self, series: dict[str, pd.Series]) -> None:
        super().__init__(timeout_seconds=1.0)
        self.series = series
        self.calls = 0

    def get_monthly_closes(self, symbol, start, end=None):
        self.calls += 1
        if symbol not in self.series:
            raise ProviderError("yahoo", "UPSTREAM", "no data")
        return self.series[symbol]


def _ctx(yahoo) -> ServiceContext:
    return ServiceContext(providers={"yahoo": yahoo}, cache=TTLCache(), rate_limiter=RateLimiterRegistry(0.0))


def test_benchmarks_computed_from_monthly_closes_and_cached() -> None:
    index = pd.date_range(end=NOW, periods=12, freq="MS", tz="UTC")
    closes = pd.Series([100.0] * 11 + [110.0], index=index)
    yahoo = _FakeYahoo({"^GSPC": closes})
    service = BenchmarkService(_ctx(yahoo))

    first = service.get_benchmarks(NOW)
    second = service.get_benchmarks(NOW)

    assert [(item.name, item.return_percentage) for item in first] == [("S&P 500", 10.0)]
    assert first[0].last_updated == "2024-06-30"
    assert second == first
    assert yahoo.calls == 5


def test_benchmarks_fall_back_to_static_defaults() -> None:
    benchmarks = BenchmarkService(_ctx(_FakeYahoo({}))).get_benchmarks(NOW)
    assert [(item.name, item.return_percentage) for item in benchmarks] == [
        ("S&P 500", 9.5),
        ("MSCI World", 7.8),
        ("FTSE 100", 5.2),
    ]
