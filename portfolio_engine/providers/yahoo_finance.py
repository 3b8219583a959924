"""Yahoo Finance adapter backed by yfinance."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pandas as pd
import yfinance as yf

from portfolio_engine.providers.http import ProviderError


class YahooFinanceClient:
    """Thin blocking wrapper; run it through ``asyncio.to_thread`` from async code."""

    def __init__(self, timeout_seconds: float = 10.0) -> None:
        self.timeout_seconds = timeout_seconds

    def get_quote_summary(self, symbol: str) -> dict[str, Any] | None:
        try:
            info = yf.Ticker(symbol).info
        except Exception as error:
            raise ProviderError("yahoo", "UPSTREAM", f"Quote lookup failed for {symbol}.") from error
        if not isinstance(info, dict) or not info:
            return None
        return info

    def get_daily_closes(self, symbol: str, start: datetime, end: datetime | None = None) -> pd.Series:
        """Daily closes indexed by UTC timestamp, oldest first; empty when no history."""
        try:
            data = yf.Ticker(symbol).history(
                start=start,
                end=end,
                interval="1d",
                auto_adjust=False,
                timeout=self.timeout_seconds,
            )
        except Exception as error:
            raise ProviderError("yahoo", "UPSTREAM", f"History lookup failed for {symbol}.") from error
        return self._closes(data, symbol)

    def get_monthly_closes(self, symbol: str, start: datetime, end: datetime | None = None) -> pd.Series:
        try:
            data = yf.Ticker(symbol).history(
                start=start,
                end=end,
                interval="1mo",
                auto_adjust=False,
                timeout=self.timeout_seconds,
            )
        except Exception as error:
            raise ProviderError("yahoo", "UPSTREAM", f"History lookup failed for {symbol}.") from error
        return self._closes(data, symbol)

    @staticmethod
    def _closes(data: pd.DataFrame | None, symbol: str) -> pd.Series:
        if data is None or data.empty or "Close" not in data:
            return pd.Series(dtype=float, name=symbol)
        closes = data["Close"].dropna().astype(float).rename(symbol)
        closes.index = pd.to_datetime(closes.index, utc=True)
        return closes.sort_index()

    def search(self, query: str, limit: int = 10) -> list[dict[str, Any]]:
        try:
            result = yf.Search(query, max_results=max(1, limit), news_count=0)
            quotes = result.quotes
        except Exception as error:
            raise ProviderError("yahoo", "UPSTREAM", "Instrument search failed.") from error
        return [item for item in (quotes or []) if isinstance(item, dict)]
