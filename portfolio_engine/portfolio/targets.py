"""Target allocation resolution for buckets."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Mapping

from portfolio_engine.portfolio.models import TargetSource

PERCENT_SUFFIX = re.compile(r"\((\d+(?:\.\d+)?)\s*%\)")


@dataclass(frozen=True)
class ResolvedTarget:
    percent: float
    source: TargetSource


def parse_target_percent(name: str) -> float | None:
    """``"Tech (30%)"`` -> 30.0; None when the name carries no usable percentage."""
    match = PERCENT_SUFFIX.search(name or "")
    if match is None:
        return None
    try:
        value = float(match.group(1))
    except ValueError:
        return None
    if not 0.0 <= value <= 100.0:
        return None
    return value


@dataclass(frozen=True)
class TargetContext:
    bucket_name: str
    bucket_count: int
    stored_targets: Mapping[str, float]


Strategy = Callable[[TargetContext], "ResolvedTarget | None"]


def from_stored(ctx: TargetContext) -> ResolvedTarget | None:
    value = ctx.stored_targets.get(ctx.bucket_name)
    if value is None:
        return None
    return ResolvedTarget(float(value), "stored")


def from_name(ctx: TargetContext) -> ResolvedTarget | None:
    value = parse_target_percent(ctx.bucket_name)
    return ResolvedTarget(value, "name") if value is not None else None


def equal_split(ctx: TargetContext) -> ResolvedTarget | None:
    if ctx.bucket_count <= 0:
        return ResolvedTarget(0.0, "equal_split")
    return ResolvedTarget(100.0 / ctx.bucket_count, "equal_split")


DEFAULT_STRATEGIES: tuple[Strategy, ...] = (from_stored, from_name, equal_split)


def resolve_target(
    bucket_name: str,
    bucket_count: int,
    stored_targets: Mapping[str, float] | None = None,
    strategies: tuple[Strategy, ...] = DEFAULT_STRATEGIES,
) -> ResolvedTarget:
    ctx = TargetContext(bucket_name=bucket_name, bucket_count=bucket_count, stored_targets=stored_targets or {})
    for strategy in strategies:
        resolved = strategy(ctx)
        if resolved is not None:
            return resolved
    return ResolvedTarget(0.0, "equal_split")
