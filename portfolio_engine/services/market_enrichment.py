"""Market-data enrichment for brokerage holdings."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import pandas as pd

from portfolio_engine.providers.http import ProviderError
from portfolio_engine.providers.models import InstrumentDetails, InstrumentPerformance, InstrumentSearchResult
from portfolio_engine.providers.symbols import normalize_ticker
from portfolio_engine.providers.yahoo_finance import YahooFinanceClient
from portfolio_engine.services.base import ServiceContext, run_with_cache

LOGGER = logging.getLogger(__name__)

# Calendar-day lookbacks, keyed by the InstrumentPerformance field they fill.
TRAILING_WINDOWS: dict[str, int] = {
    "performance_1week": 7,
    "performance_1month": 30,
    "performance_3months": 90,
    "performance_1year": 365,
}
HISTORY_BUFFER_DAYS = 7
MIN_SEARCH_QUERY_LENGTH = 2


def _as_float(value: object) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def extract_dividend_yield(summary: dict[str, Any]) -> float:
    """Dividend yield in percent, 0.0 when the provider has none."""
    value = _as_float(summary.get("dividendYield"))
    if value is None:
        trailing = _as_float(summary.get("trailingAnnualDividendYield"))
        value = trailing * 100.0 if trailing is not None else None
    return round(value, 2) if value is not None else 0.0


def compute_trailing_returns(
    closes: pd.Series,
    now: datetime,
    windows: dict[str, int] | None = None,
) -> dict[str, float | None]:
    """Percent change from the last close at or before ``now - window`` to the latest close.

    A window with no close on or before its target date is reported as None.
    """
    windows = windows or TRAILING_WINDOWS
    result: dict[str, float | None] = {name: None for name in windows}
    series = closes.dropna()
    if series.empty:
        return result
    series = series.copy()
    series.index = pd.to_datetime(series.index, utc=True)
    series = series.sort_index()
    latest = float(series.iloc[-1])
    anchor = pd.Timestamp(now).tz_convert("UTC") if pd.Timestamp(now).tzinfo else pd.Timestamp(now, tz="UTC")
    for name, days in windows.items():
        past = series.loc[series.index <= anchor - pd.Timedelta(days=days)]
        if past.empty:
            continue
        past_close = float(past.iloc[-1])
        if past_close == 0:
            continue
        result[name] = (latest - past_close) / past_close * 100.0
    return result


class MarketEnrichmentClient:
    def __init__(self, ctx: ServiceContext) -> None:
        self.ctx = ctx

    def _yahoo(self) -> YahooFinanceClient | None:
        client = self.ctx.get_provider("yahoo")
        return client if isinstance(client, YahooFinanceClient) else None

    def get_performance(self, ticker: str, now: datetime | None = None) -> InstrumentPerformance:
        """Dividend yield and trailing returns for a brokerage ticker; never raises.

        Results are cached per symbol and anchor date, and only when both the
        quote and the price history were fetched.
        """
        symbol = normalize_ticker(ticker)
        anchor = now or datetime.now(timezone.utc)
        return run_with_cache(
            self.ctx,
            f"enrichment:performance:{symbol}:{anchor.date().isoformat()}",
            lambda: self._fetch_performance(ticker, symbol, anchor),
            should_cache=lambda perf: perf.complete,
        )

    def _fetch_performance(self, ticker: str, symbol: str, now: datetime) -> InstrumentPerformance:
        yahoo = self._yahoo()
        if yahoo is None:
            return InstrumentPerformance.unavailable(symbol)
        try:
            self.ctx.rate_limiter.wait("yahoo")
            summary = yahoo.get_quote_summary(symbol)
        except ProviderError as error:
            LOGGER.info("enrichment unavailable: ticker=%s symbol=%s code=%s", ticker, symbol, error.code)
            return InstrumentPerformance.unavailable(symbol)
        if summary is None:
            LOGGER.info("enrichment unavailable: ticker=%s symbol=%s reason=no_quote", ticker, symbol)
            return InstrumentPerformance.unavailable(symbol)

        performance = InstrumentPerformance(symbol=symbol, dividend_yield=extract_dividend_yield(summary))
        start = now - timedelta(days=max(TRAILING_WINDOWS.values()) + HISTORY_BUFFER_DAYS)
        try:
            self.ctx.rate_limiter.wait("yahoo")
            closes = yahoo.get_daily_closes(symbol, start=start, end=now)
        except ProviderError as error:
            LOGGER.info("price history unavailable: ticker=%s symbol=%s code=%s", ticker, symbol, error.code)
            return performance
        if closes.empty:
            LOGGER.info("price history unavailable: ticker=%s symbol=%s reason=empty", ticker, symbol)
            return performance
        for name, value in compute_trailing_returns(closes, now).items():
            setattr(performance, name, value)
        performance.history_loaded = True
        return performance

    def search_instruments(self, query: str, limit: int = 10) -> list[InstrumentSearchResult]:
        clean = (query or "").strip()
        yahoo = self._yahoo()
        if len(clean) < MIN_SEARCH_QUERY_LENGTH or yahoo is None:
            return []
        try:
            self.ctx.rate_limiter.wait("yahoo")
            quotes = yahoo.search(clean, limit=limit)
        except ProviderError as error:
            LOGGER.warning("instrument search failed: query=%s code=%s", clean, error.code)
            return []
        out: list[InstrumentSearchResult] = []
        for quote in quotes[: max(1, limit)]:
            symbol = quote.get("symbol")
            if not isinstance(symbol, str) or not symbol:
                continue
            out.append(
                InstrumentSearchResult(
                    symbol=symbol,
                    name=str(quote.get("shortname") or quote.get("longname") or symbol),
                    exchange=str(quote.get("exchange") or ""),
                    instrument_type=str(quote.get("quoteType") or "EQUITY"),
                    score=_as_float(quote.get("score")) or 0.0,
                )
            )
        return out

    def get_instrument_details(self, symbol: str) -> InstrumentDetails | None:
        yahoo = self._yahoo()
        if yahoo is None:
            return None
        formatted = normalize_ticker(symbol)
        try:
            self.ctx.rate_limiter.wait("yahoo")
            info = yahoo.get_quote_summary(formatted)
        except ProviderError as error:
            LOGGER.warning("instrument details failed: symbol=%s code=%s", formatted, error.code)
            return None
        if info is None:
            return None
        return InstrumentDetails(
            ticker=symbol,
            name=str(info.get("shortName") or info.get("longName") or info.get("displayName") or symbol),
            currency_code=str(info.get("currency") or "USD"),
            instrument_type=str(info.get("quoteType") or "EQUITY"),
            exchange=str(info.get("exchange") or ""),
            sector=str(info.get("sector") or ""),
            industry=str(info.get("industry") or ""),
            market_cap=_as_float(info.get("marketCap")) or 0.0,
            current_price=_as_float(info.get("currentPrice") or info.get("regularMarketPrice")) or 0.0,
            dividend_yield=extract_dividend_yield(info),
            pe_ratio=_as_float(info.get("trailingPE")) or 0.0,
            beta=_as_float(info.get("beta")) or 0.0,
            fifty_two_week_high=_as_float(info.get("fiftyTwoWeekHigh")) or 0.0,
            fifty_two_week_low=_as_float(info.get("fiftyTwoWeekLow")) or 0.0,
        )
