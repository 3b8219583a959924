"""Current vs target allocation analysis and dividend projection."""

from __future__ import annotations

import logging

import pandas as pd

from portfolio_engine.portfolio.models import AllocationAnalysis, Bucket, BucketAllocation, TargetInvestment

LOGGER = logging.getLogger(__name__)


def _bucket_frame(buckets: list[Bucket]) -> pd.DataFrame:
    frame = pd.DataFrame(
        [
            {"bucket_name": bucket.name, "current_value": bucket.current_value, "target_percent": bucket.target_allocation}
            for bucket in buckets
        ],
        columns=["bucket_name", "current_value", "target_percent"],
    )
    duplicated = frame["bucket_name"].duplicated()
    if duplicated.any():
        LOGGER.warning("duplicate bucket names merged: names=%s", sorted(set(frame.loc[duplicated, "bucket_name"])))
    return frame.groupby("bucket_name", sort=False, as_index=False).agg(
        current_value=("current_value", "sum"),
        target_percent=("target_percent", "first"),
    )


def estimate_annual_dividend(buckets: list[Bucket], monthly_budget: float) -> float:
    """Dividend on today's positions plus a year of budget spread by each holding's weight."""
    holdings = pd.DataFrame(
        [(item.current_value, item.dividend_yield) for bucket in buckets for item in bucket.holdings],
        columns=["current_value", "dividend_yield"],
    )
    if holdings.empty:
        return 0.0
    total = float(holdings["current_value"].sum())
    share = holdings["current_value"] / total if total else 0.0
    rate = holdings["dividend_yield"] / 100.0
    current_income = holdings["current_value"] * rate
    projected_income = monthly_budget * 12.0 * share * rate
    return float((current_income + projected_income).sum())


def analyze_allocation(
    buckets: list[Bucket],
    monthly_budget: float = 0.0,
    rebalance_threshold: float = 5.0,
) -> AllocationAnalysis:
    if not buckets:
        return AllocationAnalysis()
    frame = _bucket_frame(buckets)
    total_value = float(frame["current_value"].sum())
    if total_value:
        frame["current_percent"] = frame["current_value"] * 100.0 / total_value
    else:
        frame["current_percent"] = 0.0
    frame["difference"] = frame["current_percent"] - frame["target_percent"]

    allocations = [
        BucketAllocation(
            bucket_name=str(row.bucket_name),
            current_value=float(row.current_value),
            current_percent=float(row.current_percent),
            target_percent=float(row.target_percent),
            difference=float(row.difference),
        )
        for row in frame.itertuples(index=False)
    ]
    return AllocationAnalysis(
        allocations=allocations,
        total_value=total_value,
        estimated_annual_dividend=estimate_annual_dividend(buckets, monthly_budget),
        rebalancing_recommended=bool((frame["difference"].abs() > rebalance_threshold).any()),
    )


def compute_target_investments(analysis: AllocationAnalysis, monthly_budget: float) -> dict[str, TargetInvestment]:
    """How much of next month's budget each bucket needs to move toward its target."""
    basis = analysis.total_value + monthly_budget
    out: dict[str, TargetInvestment] = {}
    for row in analysis.allocations:
        target = basis * row.target_percent / 100.0
        difference = target - row.current_value
        out[row.bucket_name] = TargetInvestment(
            current=row.current_value,
            target=target,
            difference=difference,
            investment=max(0.0, difference),
        )
    return out
