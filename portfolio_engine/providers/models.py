"""Normalized collaborator payloads shared across providers and services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

ProviderName = Literal["brokerage", "yahoo"]


@dataclass(frozen=True)
class BucketRef:
    bucket_id: str


@dataclass
class RawHolding:
    ticker: str
    owned_quantity: float
    invested_value: float
    current_value: float
    current_share: float = 0.0
    expected_share: float = 0.0
    issues: bool = False


@dataclass
class RawBucket:
    bucket_id: str
    name: str
    creation_date: str | None
    dividend_cash_action: str | None
    holdings: list[RawHolding] = field(default_factory=list)


@dataclass
class InstrumentMetadata:
    ticker: str
    name: str | None = None
    currency_code: str | None = None
    exchange: str | None = None
    instrument_type: str | None = None
    added_on: str | None = None
    max_open_quantity: float | None = None
    min_trade_quantity: float | None = None


@dataclass
class InstrumentPerformance:
    symbol: str
    dividend_yield: float | None = None
    performance_1week: float | None = None
    performance_1month: float | None = None
    performance_3months: float | None = None
    performance_1year: float | None = None
    history_loaded: bool = False

    @property
    def available(self) -> bool:
        return self.dividend_yield is not None

    @property
    def complete(self) -> bool:
        """Quote and price history both fetched."""
        return self.available and self.history_loaded

    @classmethod
    def unavailable(cls, symbol: str) -> "InstrumentPerformance":
        return cls(symbol=symbol)


@dataclass
class InstrumentSearchResult:
    symbol: str
    name: str
    exchange: str
    instrument_type: str
    score: float


@dataclass
class InstrumentDetails:
    ticker: str
    name: str
    currency_code: str
    instrument_type: str
    exchange: str = ""
    sector: str = ""
    industry: str = ""
    market_cap: float = 0.0
    current_price: float = 0.0
    dividend_yield: float = 0.0
    pe_ratio: float = 0.0
    beta: float = 0.0
    fifty_two_week_high: float = 0.0
    fifty_two_week_low: float = 0.0
