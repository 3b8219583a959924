"""Buy/sell suggestions that move buckets to their target allocation."""

from __future__ import annotations

from portfolio_engine.portfolio.models import AllocationAnalysis, RebalanceAction


def plan_rebalance(analysis: AllocationAnalysis, additional_amount: float = 0.0) -> list[RebalanceAction]:
    """Largest moves first; an empty list when there is nothing to allocate."""
    basis = analysis.total_value + additional_amount
    if basis <= 0 or not analysis.allocations:
        return []
    actions: list[RebalanceAction] = []
    for row in analysis.allocations:
        target_value = basis * row.target_percent / 100.0
        delta = target_value - row.current_value
        actions.append(
            RebalanceAction(
                bucket_name=row.bucket_name,
                action="buy" if delta >= 0 else "sell",
                amount=round(abs(delta), 2),
                current_value=row.current_value,
                target_value=round(target_value, 2),
                current_percent=row.current_percent,
                target_percent=row.target_percent,
            )
        )
    return sorted(actions, key=lambda item: item.amount, reverse=True)
