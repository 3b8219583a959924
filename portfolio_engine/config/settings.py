"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_BROKERAGE_BASE_URL = "https://live.trading212.com/api/v0"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the aggregation engine and its MCP surface."""

    app_name: str = "portfolio-engine"
    app_version: str = "1.0.0"
    transport_mode: str = "auto"
    http_transport: str = "sse"
    host: str = "0.0.0.0"
    port: int = 8000
    mcp_path: str = "/mcp"
    health_path: str = "/health"
    log_level: str = "INFO"
    brokerage_base_url: str = DEFAULT_BROKERAGE_BASE_URL
    brokerage_api_key: str | None = None
    default_user_id: str = "default"
    brokerage_max_retries: int = 3
    brokerage_min_interval_seconds: float = 1.0
    yahoo_finance_enabled: bool = True
    market_min_interval_seconds: float = 0.2
    request_timeout_seconds: float = 10.0
    max_concurrent_buckets: int = 4
    max_concurrent_enrichments: int = 8
    aggregation_timeout_seconds: float = 60.0
    cache_ttl_seconds: int = 300
    cache_ttl_history_seconds: int = 900
    default_monthly_budget: float = 1000.0
    default_country_code: str = "BG"
    rebalance_threshold_percent: float = 5.0
    include_benchmarks: bool = True
    reserved_bucket_name: str = "OverallSummary"


def _as_int(value: str | None, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _as_float(value: str | None, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def get_settings() -> Settings:
    """Load runtime settings from environment variables."""
    load_dotenv()

    return Settings(
        transport_mode=os.getenv("TRANSPORT_MODE", "auto").strip().lower(),
        http_transport=os.getenv("HTTP_TRANSPORT", "sse").strip().lower(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_as_int(os.getenv("PORT"), 8000),
        mcp_path=os.getenv("MCP_PATH", "/mcp"),
        health_path=os.getenv("HEALTH_PATH", "/health"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        brokerage_base_url=os.getenv("BROKERAGE_BASE_URL", DEFAULT_BROKERAGE_BASE_URL).rstrip("/"),
        brokerage_api_key=os.getenv("BROKERAGE_API_KEY") or os.getenv("TRADING212_API_KEY"),
        default_user_id=os.getenv("DEFAULT_USER_ID", "default"),
        brokerage_max_retries=_as_int(os.getenv("BROKERAGE_MAX_RETRIES"), 3),
        brokerage_min_interval_seconds=_as_float(os.getenv("BROKERAGE_MIN_INTERVAL_SECONDS"), 1.0),
        yahoo_finance_enabled=_as_bool(os.getenv("YAHOO_FINANCE_ENABLED"), True),
        market_min_interval_seconds=_as_float(os.getenv("MARKET_MIN_INTERVAL_SECONDS"), 0.2),
        request_timeout_seconds=_as_float(os.getenv("REQUEST_TIMEOUT_SECONDS"), 10.0),
        max_concurrent_buckets=_as_int(os.getenv("MAX_CONCURRENT_BUCKETS"), 4),
        max_concurrent_enrichments=_as_int(os.getenv("MAX_CONCURRENT_ENRICHMENTS"), 8),
        aggregation_timeout_seconds=_as_float(os.getenv("AGGREGATION_TIMEOUT_SECONDS"), 60.0),
        cache_ttl_seconds=_as_int(os.getenv("CACHE_TTL_SECONDS"), 300),
        cache_ttl_history_seconds=_as_int(os.getenv("CACHE_TTL_HISTORY_SECONDS"), 900),
        default_monthly_budget=_as_float(os.getenv("DEFAULT_MONTHLY_BUDGET"), 1000.0),
        default_country_code=os.getenv("DEFAULT_COUNTRY_CODE", "BG").strip().upper(),
        rebalance_threshold_percent=_as_float(os.getenv("REBALANCE_THRESHOLD_PERCENT"), 5.0),
        include_benchmarks=_as_bool(os.getenv("INCLUDE_BENCHMARKS"), True),
        reserved_bucket_name=os.getenv("RESERVED_BUCKET_NAME", "OverallSummary"),
    )
