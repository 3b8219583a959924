"""Typed portfolio models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Literal

from portfolio_engine.services.benchmarks import Benchmark

RebalanceDirection = Literal["buy", "sell"]
MetricsStatus = Literal["complete", "partial", "unavailable"]
TargetSource = Literal["stored", "name", "equal_split"]


class DividendCashAction(str, Enum):
    REINVEST = "reinvest"
    CASH = "cash"
    UNSPECIFIED = "unspecified"

    @classmethod
    def from_brokerage(cls, value: str | None) -> "DividendCashAction":
        if value == "REINVEST":
            return cls.REINVEST
        if value == "TO_ACCOUNT_CASH":
            return cls.CASH
        return cls.UNSPECIFIED


@dataclass
class Holding:
    ticker: str
    owned_quantity: float
    invested_value: float
    current_value: float
    current_share: float = 0.0
    expected_share: float = 0.0
    issues: bool = False
    full_name: str | None = None
    currency_code: str | None = None
    exchange: str | None = None
    instrument_type: str | None = None
    added_on: str | None = None
    max_open_quantity: float | None = None
    min_trade_quantity: float | None = None
    market_symbol: str | None = None
    dividend_yield: float = 0.0
    performance_1week: float | None = None
    performance_1month: float | None = None
    performance_3months: float | None = None
    performance_1year: float | None = None

    @property
    def result_value(self) -> float:
        return self.current_value - self.invested_value


@dataclass
class Bucket:
    bucket_id: str
    name: str
    creation_date: str | None
    dividend_cash_action: DividendCashAction
    holdings: list[Holding] = field(default_factory=list)
    total_invested: float = 0.0
    total_result: float = 0.0
    return_percentage: float = 0.0
    target_allocation: float = 0.0
    target_source: TargetSource = "equal_split"
    fetch_date: str | None = None

    @property
    def current_value(self) -> float:
        """Mark-to-market value; the allocation basis for this bucket."""
        return sum(holding.current_value for holding in self.holdings)


@dataclass
class OverallSummary:
    total_invested: float = 0.0
    total_result: float = 0.0
    return_percentage: float = 0.0
    free_cash_available: float = 0.0
    fetch_date: str | None = None


@dataclass
class BucketAllocation:
    bucket_name: str
    current_value: float
    current_percent: float
    target_percent: float
    difference: float


@dataclass
class AllocationAnalysis:
    allocations: list[BucketAllocation] = field(default_factory=list)
    total_value: float = 0.0
    estimated_annual_dividend: float = 0.0
    rebalancing_recommended: bool = False

    @property
    def current_allocation(self) -> dict[str, dict[str, float]]:
        return {row.bucket_name: {"value": row.current_value, "percent": row.current_percent} for row in self.allocations}

    @property
    def target_allocation(self) -> dict[str, dict[str, float]]:
        return {
            row.bucket_name: {"value": self.total_value * row.target_percent / 100.0, "percent": row.target_percent}
            for row in self.allocations
        }

    @property
    def allocation_differences(self) -> dict[str, float]:
        return {row.bucket_name: row.difference for row in self.allocations}

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_allocation": self.current_allocation,
            "target_allocation": self.target_allocation,
            "allocation_differences": self.allocation_differences,
            "total_value": self.total_value,
            "estimated_annual_dividend": self.estimated_annual_dividend,
            "rebalancing_recommended": self.rebalancing_recommended,
        }


@dataclass
class TargetInvestment:
    current: float
    target: float
    difference: float
    investment: float


@dataclass
class RebalanceAction:
    bucket_name: str
    action: RebalanceDirection
    amount: float
    current_value: float
    target_value: float
    current_percent: float
    target_percent: float


@dataclass
class PerformanceMetrics:
    buckets: list[Bucket] = field(default_factory=list)
    overall_summary: OverallSummary = field(default_factory=OverallSummary)
    allocation_analysis: AllocationAnalysis = field(default_factory=AllocationAnalysis)
    rebalance_investment_for_target: dict[str, TargetInvestment] = field(default_factory=dict)
    free_cash_available: float = 0.0
    fetch_date: str | None = None
    country_code: str | None = None
    benchmarks: list[Benchmark] = field(default_factory=list)
    status: MetricsStatus = "complete"
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def empty(
        cls,
        fetch_date: str | None = None,
        country_code: str | None = None,
        status: MetricsStatus = "unavailable",
        warnings: list[str] | None = None,
    ) -> "PerformanceMetrics":
        return cls(
            overall_summary=OverallSummary(fetch_date=fetch_date),
            fetch_date=fetch_date,
            country_code=country_code,
            status=status,
            warnings=list(warnings or []),
        )

    def to_dict(self) -> dict[str, Any]:
        buckets = []
        for bucket in self.buckets:
            payload = asdict(bucket)
            payload["dividend_cash_action"] = bucket.dividend_cash_action.value
            payload["current_value"] = bucket.current_value
            for holding_payload, holding in zip(payload["holdings"], bucket.holdings):
                holding_payload["result_value"] = holding.result_value
            buckets.append(payload)
        return {
            "buckets": buckets,
            "overall_summary": asdict(self.overall_summary),
            "allocation_analysis": self.allocation_analysis.to_dict(),
            "rebalance_investment_for_target": {
                name: asdict(item) for name, item in self.rebalance_investment_for_target.items()
            },
            "free_cash_available": self.free_cash_available,
            "fetch_date": self.fetch_date,
            "country_code": self.country_code,
            "benchmarks": [asdict(item) for item in self.benchmarks],
            "status": self.status,
            "warnings": list(self.warnings),
        }
