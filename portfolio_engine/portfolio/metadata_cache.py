"""Instrument metadata lookup scoped to a single aggregation run."""

from __future__ import annotations

from typing import Iterable

from portfolio_engine.providers.models import InstrumentMetadata


class InstrumentMetadataCache:
    """Populated once before bucket work starts and read-only afterwards."""

    def __init__(self, items: Iterable[InstrumentMetadata] = ()) -> None:
        self._by_ticker: dict[str, InstrumentMetadata] = {item.ticker: item for item in items}

    def get(self, ticker: str) -> InstrumentMetadata | None:
        return self._by_ticker.get(ticker)

    def __len__(self) -> int:
        return len(self._by_ticker)
