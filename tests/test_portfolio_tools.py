import asyncio
import json

import pytest
from mcp.server.fastmcp import FastMCP

from portfolio_engine.portfolio.portfolio_service import PortfolioService
from portfolio_engine.portfolio.preferences import InMemoryTargetAllocationStore
from portfolio_engine.providers.models import (
    BucketRef,
    InstrumentDetails,
    InstrumentPerformance,
    InstrumentSearchResult,
    RawBucket,
    RawHolding,
)
from portfolio_engine.tools.portfolio_tools import register_portfolio_tools
from portfolio_engine.tools.registry import ToolServices


class _FakeBrokerage:
    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.users: list[str] = []

    def get_cash_balance(self, user_id):
        return 25.0

    def list_buckets(self, user_id):
        self.users.append(user_id)
        if not self.available:
            return None
        return [BucketRef("1"), BucketRef("2")]

    def get_bucket_detail(self, user_id, bucket_id):
        value = 600.0 if bucket_id == "1" else 400.0
        return RawBucket(
            bucket_id=bucket_id,
            name=f"Bucket {bucket_id} (50%)",
            creation_date=None,
            dividend_cash_action="REINVEST",
            holdings=[RawHolding(ticker=f"T{bucket_id}", owned_quantity=1, invested_value=value, current_value=value)],
        )

    def get_instruments_metadata(self, user_id):
        return []


class _FakeEnrichment:
    def get_performance(self, ticker, now=None):
        return InstrumentPerformance(symbol=ticker, dividend_yield=1.0)

    def search_instruments(self, query, limit=10):
        if len(query.strip()) < 2:
            return []
        return [InstrumentSearchResult(symbol="AAPL", name="Apple Inc.", exchange="NMS", instrument_type="EQUITY", score=1.0)]

    def get_instrument_details(self, symbol):
        if symbol == "NONE":
            return None
        return InstrumentDetails(ticker=symbol, name="Apple Inc.", currency_code="USD", instrument_type="EQUITY")


def _mcp(available: bool = True) -> tuple[FastMCP, _FakeBrokerage, InMemoryTargetAllocationStore]:
    brokerage = _FakeBrokerage(available)
    enrichment = _FakeEnrichment()
    targets = InMemoryTargetAllocationStore()
    service = PortfolioService(brokerage, enrichment, targets, timeout_seconds=5.0)
    mcp = FastMCP(name="portfolio-tools-test")
    register_portfolio_tools(mcp, ToolServices(portfolio=service, enrichment=enrichment, default_user_id="me"))
    return mcp, brokerage, targets


def _call(mcp: FastMCP, name: str, arguments: dict[str, object]) -> dict:
    _, metadata = asyncio.run(mcp.call_tool(name, arguments))
    return json.loads(str(metadata.get("result") or ""))


def test_fetch_portfolio_returns_metrics_json_for_default_user() -> None:
    mcp, brokerage, _ = _mcp()
    payload = _call(mcp, "fetch_portfolio", {"monthly_budget": 0.0})

    data = payload["data"]
    assert brokerage.users == ["me"]
    assert data["status"] == "complete"
    assert data["free_cash_available"] == 25.0
    assert data["allocation_analysis"]["current_allocation"]["Bucket 1 (50%)"]["percent"] == 60.0
    assert data["buckets"][0]["holdings"][0]["result_value"] == 0.0
    assert "disclaimer" in payload


def test_plan_rebalance_tool_orders_largest_first() -> None:
    mcp, _, _ = _mcp()
    payload = _call(mcp, "plan_rebalance", {"additional_amount": 1000.0, "user_id": "bob"})

    assert [(row["bucket_name"], row["amount"]) for row in payload["data"]] == [
        ("Bucket 2 (50%)", 600.0),
        ("Bucket 1 (50%)", 400.0),
    ]
    assert payload["status"] == "complete"


def test_plan_rebalance_tool_reports_unavailable_portfolio() -> None:
    mcp, _, _ = _mcp(available=False)
    payload = _call(mcp, "plan_rebalance", {})
    assert payload["error"] is True
    assert payload["code"] == "DATA_UNAVAILABLE"


def test_plan_rebalance_tool_rejects_negative_amount() -> None:
    mcp, _, _ = _mcp()
    with pytest.raises(Exception):
        asyncio.run(mcp.call_tool("plan_rebalance", {"additional_amount": -5.0}))


def test_search_and_details_tools() -> None:
    mcp, _, _ = _mcp()

    results = _call(mcp, "search_instruments", {"query": "apple"})
    assert results["data"][0]["symbol"] == "AAPL"
    assert _call(mcp, "search_instruments", {"query": "a"})["data"] == []

    details = _call(mcp, "get_instrument_details", {"symbol": "AAPL"})
    assert details["data"]["name"] == "Apple Inc."
    missing = _call(mcp, "get_instrument_details", {"symbol": "NONE"})
    assert missing["code"] == "NOT_FOUND"


def test_set_bucket_target_allocation_tool_feeds_next_run() -> None:
    mcp, _, targets = _mcp()
    _call(mcp, "set_bucket_target_allocation", {"bucket_name": "Bucket 1 (50%)", "percent": 70.0})

    assert targets.get_targets("me") == {"Bucket 1 (50%)": 70.0}
    data = _call(mcp, "fetch_portfolio", {})["data"]
    assert data["allocation_analysis"]["target_allocation"]["Bucket 1 (50%)"]["percent"] == 70.0

    with pytest.raises(Exception):
        asyncio.run(mcp.call_tool("set_bucket_target_allocation", {"bucket_name": "X", "percent": 120.0}))
