"""Application entrypoint for the portfolio engine MCP server."""

from __future__ import annotations

import asyncio
import logging
import os

from mcp.server.fastmcp import FastMCP
from starlette.responses import JSONResponse, Response

from portfolio_engine.cache.ttl_cache import TTLCache
from portfolio_engine.config.settings import get_settings
from portfolio_engine.portfolio.preferences import ApiKeyStore, StaticApiKeyStore
from portfolio_engine.providers.brokerage import BrokerageClient
from portfolio_engine.providers.yahoo_finance import YahooFinanceClient
from portfolio_engine.services.base import ServiceContext
from portfolio_engine.tools.registry import build_tool_services, register_all_tools
from portfolio_engine.utils.rate_limit import RateLimiterRegistry

LOGGER = logging.getLogger(__name__)


def resolve_transport_mode(configured_mode: str) -> str:
    if os.getenv("RENDER") and configured_mode == "stdio":
        return "http"
    if configured_mode in {"stdio", "http"}:
        return configured_mode
    if os.getenv("RENDER") or os.getenv("PORT"):
        return "http"
    return "stdio"


def resolve_http_transport(configured_transport: str) -> str:
    if configured_transport in {"sse", "streamable"}:
        return configured_transport
    return "sse"


def build_server() -> FastMCP:
    settings = get_settings()
    rate_limiter = RateLimiterRegistry(
        min_interval_seconds=settings.market_min_interval_seconds,
        overrides={"brokerage": settings.brokerage_min_interval_seconds},
    )
    api_keys: ApiKeyStore = StaticApiKeyStore(default_user_id=settings.default_user_id, default_key=settings.brokerage_api_key)
    brokerage = BrokerageClient(
        api_keys.get_api_key,
        settings.brokerage_base_url,
        timeout_seconds=settings.request_timeout_seconds,
        max_retries=settings.brokerage_max_retries,
        rate_limiter=rate_limiter,
    )
    yahoo_client = YahooFinanceClient(settings.request_timeout_seconds) if settings.yahoo_finance_enabled else None
    service_ctx = ServiceContext(
        providers={"brokerage": brokerage, "yahoo": yahoo_client},
        cache=TTLCache(default_ttl_seconds=settings.cache_ttl_seconds),
        rate_limiter=rate_limiter,
        cache_ttl_seconds=settings.cache_ttl_seconds,
    )
    mcp = FastMCP(
        name=settings.app_name,
        host=settings.host,
        port=settings.port,
        streamable_http_path=settings.mcp_path,
    )
    services = build_tool_services(service_ctx, brokerage, settings)
    register_all_tools(mcp, services)

    @mcp.custom_route(settings.health_path, methods=["GET"])
    async def health_check(_: object) -> Response:
        tools = await mcp.list_tools()
        return JSONResponse(
            {
                "status": "ok",
                "service": settings.app_name,
                "version": settings.app_version,
                "tool_count": len(tools),
                "brokerage_configured": bool(settings.brokerage_api_key),
                "market_data_enabled": yahoo_client is not None,
            }
        )

    if not settings.brokerage_api_key:
        LOGGER.warning("no brokerage API key configured: set BROKERAGE_API_KEY for user=%s", settings.default_user_id)
    if yahoo_client is None:
        LOGGER.warning("market data disabled: holdings will not be enriched")
    return mcp


async def run() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    mcp = build_server()
    resolved_mode = resolve_transport_mode(settings.transport_mode)
    resolved_http_transport = resolve_http_transport(settings.http_transport)
    LOGGER.info("starting server: mode=%s http_transport=%s", resolved_mode, resolved_http_transport)
    if resolved_mode == "stdio":
        await mcp.run_stdio_async()
    elif resolved_http_transport == "streamable":
        await mcp.run_streamable_http_async()
    else:
        await mcp.run_sse_async()


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
