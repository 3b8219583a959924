"""Portfolio-domain MCP tools."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.server.fastmcp import FastMCP

from portfolio_engine.runtime.response import error_response, success_response
from portfolio_engine.services.base import validate_symbol

if TYPE_CHECKING:
    from portfolio_engine.tools.registry import ToolServices


def register_portfolio_tools(mcp: FastMCP, services: ToolServices) -> None:
    def _user(user_id: str | None) -> str:
        return (user_id or "").strip() or services.default_user_id

    @mcp.tool(description="Aggregate brokerage buckets into totals, allocation analysis and dividend projection.")
    async def fetch_portfolio(
        user_id: str | None = None,
        monthly_budget: float | None = None,
        country_code: str | None = None,
    ) -> str:
        if monthly_budget is not None and monthly_budget < 0:
            raise ValueError("monthly_budget must be >= 0.")
        metrics = await services.portfolio.fetch_portfolio_data_async(_user(user_id), monthly_budget, country_code)
        return success_response(metrics)

    @mcp.tool(description="Suggest buy/sell amounts per bucket to reach target allocation with an optional extra investment.")
    async def plan_rebalance(user_id: str | None = None, additional_amount: float = 0.0) -> str:
        if additional_amount < 0:
            raise ValueError("additional_amount must be >= 0.")
        metrics = await services.portfolio.fetch_portfolio_data_async(_user(user_id))
        if metrics.status == "unavailable":
            return error_response("DATA_UNAVAILABLE", "Portfolio data is unavailable.")
        actions = services.portfolio.plan_rebalance(metrics.allocation_analysis, additional_amount)
        return success_response(actions, status=metrics.status, fetch_date=metrics.fetch_date)

    @mcp.tool(description="Search instruments by free-text query (min 2 characters).")
    def search_instruments(query: str, limit: int = 10) -> str:
        if limit < 1 or limit > 50:
            raise ValueError("limit must be between 1 and 50.")
        return success_response(services.enrichment.search_instruments(query, limit=limit))

    @mcp.tool(description="Instrument details: price, dividend yield, sector, valuation and 52-week range.")
    def get_instrument_details(symbol: str) -> str:
        details = services.enrichment.get_instrument_details(validate_symbol(symbol))
        if details is None:
            return error_response("NOT_FOUND", f"No instrument details for {symbol.strip()}.")
        return success_response(details)

    @mcp.tool(description="Store an explicit target allocation percent for a bucket.")
    def set_bucket_target_allocation(bucket_name: str, percent: float, user_id: str | None = None) -> str:
        services.portfolio.set_target_allocation(_user(user_id), bucket_name.strip(), percent)
        return success_response({"bucket_name": bucket_name.strip(), "target_allocation": percent})
