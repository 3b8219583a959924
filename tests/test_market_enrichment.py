from datetime import datetime, timedelta, timezone

import pandas as pd

from portfolio_engine.cache.ttl_cache import TTLCache
from portfolio_engine.providers.http import ProviderError
from portfolio_engine.providers.yahoo_finance import YahooFinanceClient
from portfolio_engine.services.base import ServiceContext
from portfolio_engine.services.market_enrichment import (
    MarketEnrichmentClient,
    compute_trailing_returns,
    extract_dividend_yield,
)
from portfolio_engine.utils.rate_limit import RateLimiterRegistry

NOW = datetime(2024, 6, 30, tzinfo=timezone.utc)


def _daily_series(days: int, start_price: float = 100.0, step: float = 1.0) -> pd.Series:
    index = pd.date_range(end=NOW, periods=days, freq="D", tz="UTC")
    return pd.Series([start_price + step * i for i in range(days)], index=index, dtype=float)


class _FakeYahoo(YahooFinanceClient):
    def __init__(self, info=None, closes=None, fail_quote: bool = False, quotes=None) -> None:
        super().__init__(timeout_seconds=1.0)
        self.info = info
        self.closes = closes if closes is not None else pd.Series(dtype=float)
        self.fail_quote = fail_quote
        self.quotes = quotes or []
        self.quote_calls: list[str] = []
        self.search_calls = 0

    def get_quote_summary(self, symbol):
        self.quote_calls.append(symbol)
        if self.fail_quote:
            raise ProviderError("yahoo", "UPSTREAM", "boom")
        return self.info

    def get_daily_closes(self, symbol, start, end=None):
        return self.closes

    def search(self, query, limit=10):
        self.search_calls += 1
        return self.quotes


def _client(yahoo) -> MarketEnrichmentClient:
    ctx = ServiceContext(providers={"yahoo": yahoo}, cache=TTLCache(), rate_limiter=RateLimiterRegistry(0.0))
    return MarketEnrichmentClient(ctx)


def test_trailing_returns_use_last_close_on_or_before_window_start() -> None:
    closes = _daily_series(400)
    returns = compute_trailing_returns(closes, NOW)

    latest = float(closes.iloc[-1])
    week_close = float(closes.loc[closes.index <= pd.Timestamp(NOW) - pd.Timedelta(days=7)].iloc[-1])
    assert returns["performance_1week"] == (latest - week_close) / week_close * 100.0
    assert returns["performance_1year"] is not None


def test_trailing_returns_report_missing_history_as_none_not_zero() -> None:
    returns = compute_trailing_returns(_daily_series(20), NOW)

    assert returns["performance_1week"] is not None
    assert returns["performance_1month"] is None
    assert returns["performance_3months"] is None
    assert returns["performance_1year"] is None


def test_trailing_returns_empty_series() -> None:
    returns = compute_trailing_returns(pd.Series(dtype=float), NOW)
    assert set(returns.values()) == {None}


def test_dividend_yield_prefers_percent_field_and_defaults_to_zero() -> None:
    assert extract_dividend_yield({"dividendYield": 1.234}) == 1.23
    assert extract_dividend_yield({"trailingAnnualDividendYield": 0.015}) == 1.5
    assert extract_dividend_yield({}) == 0.0


def test_get_performance_normalizes_ticker_and_fills_returns() -> None:
    yahoo = _FakeYahoo(info={"dividendYield": 2.5}, closes=_daily_series(400))
    perf = _client(yahoo).get_performance("VUSAl_EQ", now=NOW)

    assert yahoo.quote_calls == ["VUSA.L"]
    assert perf.symbol == "VUSA.L"
    assert perf.dividend_yield == 2.5
    assert perf.performance_1month is not None


def test_get_performance_degrades_on_provider_error() -> None:
    perf = _client(_FakeYahoo(fail_quote=True)).get_performance("XYZ", now=NOW)

    assert perf.available is False
    assert perf.dividend_yield is None
    assert perf.performance_1week is None


def test_get_performance_keeps_yield_when_history_is_empty() -> None:
    perf = _client(_FakeYahoo(info={"dividendYield": 3.0})).get_performance("KO_US_EQ", now=NOW)

    assert perf.dividend_yield == 3.0
    assert perf.performance_1year is None


def test_get_performance_caches_complete_results_only() -> None:
    yahoo = _FakeYahoo(info={"dividendYield": 1.0}, closes=_daily_series(30))
    client = _client(yahoo)
    client.get_performance("AAPL_US_EQ", now=NOW)
    client.get_performance("AAPL_US_EQ", now=NOW)
    assert yahoo.quote_calls == ["AAPL"]

    failing = _FakeYahoo(fail_quote=True)
    failing_client = _client(failing)
    failing_client.get_performance("XYZ", now=NOW)
    failing_client.get_performance("XYZ", now=NOW)
    assert failing.quote_calls == ["XYZ", "XYZ"]


def test_get_performance_without_market_data_provider() -> None:
    perf = _client(None).get_performance("AAPL_US_EQ", now=NOW - timedelta(days=1))
    assert perf.available is False


def test_search_requires_two_characters() -> None:
    yahoo = _FakeYahoo(quotes=[{"symbol": "AAPL", "shortname": "Apple Inc."}])
    client = _client(yahoo)

    assert client.search_instruments(" a ") == []
    assert yahoo.search_calls == 0

    results = client.search_instruments("apple", limit=5)
    assert [item.symbol for item in results] == ["AAPL"]
    assert results[0].name == "Apple Inc."


def test_instrument_details_maps_quote_fields() -> None:
    yahoo = _FakeYahoo(
        info={
            "shortName": "Apple Inc.",
            "currency": "USD",
            "quoteType": "EQUITY",
            "sector": "Technology",
            "marketCap": 3.0e12,
            "currentPrice": 210.5,
            "dividendYield": 0.45,
            "trailingPE": 33.1,
            "fiftyTwoWeekHigh": 220.0,
            "fiftyTwoWeekLow": 160.0,
        }
    )
    details = _client(yahoo).get_instrument_details("AAPL_US_EQ")

    assert details is not None
    assert yahoo.quote_calls == ["AAPL"]
    assert details.name == "Apple Inc."
    assert details.sector == "Technology"
    assert details.current_price == 210.5
    assert details.dividend_yield == 0.45
    assert details.beta == 0.0


def test_instrument_details_failure_returns_none() -> None:
    assert _client(_FakeYahoo(fail_quote=True)).get_instrument_details("AAPL") is None


def test_get_performance_does_not_cache_missing_history() -> None:
    yahoo = _FakeYahoo(info={"dividendYield": 2.0})
    client = _client(yahoo)

    first = client.get_performance("KO_US_EQ", now=NOW)
    assert first.dividend_yield == 2.0
    assert first.complete is False

    yahoo.closes = _daily_series(40)
    second = client.get_performance("KO_US_EQ", now=NOW)

    assert yahoo.quote_calls == ["KO", "KO"]
    assert second.performance_1month is not None
    assert second.complete is True


def test_get_performance_cache_is_keyed_by_anchor_date() -> None:
    yahoo = _FakeYahoo(info={"dividendYield": 1.0}, closes=_daily_series(30))
    client = _client(yahoo)

    client.get_performance("AAPL_US_EQ", now=NOW)
    client.get_performance("AAPL_US_EQ", now=NOW + timedelta(hours=1))
    assert yahoo.quote_calls == ["AAPL"]

    client.get_performance("AAPL_US_EQ", now=NOW + timedelta(days=2))
    assert yahoo.quote_calls == ["AAPL", "AAPL"]
