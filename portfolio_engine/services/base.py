"""Shared service orchestration helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, TypeVar

from portfolio_engine.cache.ttl_cache import TTLCache
from portfolio_engine.utils.rate_limit import RateLimiterRegistry

SYMBOL_PATTERN = re.compile(r"^[A-Za-z0-9^][A-Za-z0-9._\-=^]{0,23}$")
T = TypeVar("T")


@dataclass
class ServiceContext:
    providers: dict[str, object]
    cache: TTLCache
    rate_limiter: RateLimiterRegistry
    cache_ttl_seconds: int = 300

    def get_provider(self, name: str) -> object | None:
        return self.providers.get(name)


def validate_symbol(symbol: str) -> str:
    clean = symbol.strip()
    if not clean or not SYMBOL_PATTERN.match(clean):
        raise ValueError("Symbol must be 1-24 chars: letters, digits, dot, underscore, hyphen, caret, equals.")
    return clean


def run_with_cache(
    ctx: ServiceContext,
    cache_key: str,
    call: Callable[[], T],
    ttl_seconds: int | None = None,
    should_cache: Callable[[T], bool] | None = None,
) -> T:
    cached = ctx.cache.get(cache_key)
    if cached is not None:
        return cached  # type: ignore[return-value]
    value = call()
    if value is not None and (should_cache is None or should_cache(value)):
        ctx.cache.set(cache_key, value, ttl_seconds=ttl_seconds or ctx.cache_ttl_seconds)
    return value
