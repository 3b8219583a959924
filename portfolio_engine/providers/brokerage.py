"""Brokerage account adapter (Trading 212 style pies API).

Every public call is authenticated with the calling user's own API key and
returns ``None`` when the brokerage is unreachable, rejects the request, or
answers with a payload of the wrong shape. Callers decide on the fallback.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from portfolio_engine.providers.http import ProviderError, fetch_json
from portfolio_engine.providers.models import BucketRef, InstrumentMetadata, RawBucket, RawHolding
from portfolio_engine.utils.rate_limit import RateLimiterRegistry

LOGGER = logging.getLogger(__name__)

ApiKeyLookup = Callable[[str], str | None]


def _as_float(value: object, default: float = 0.0) -> float:
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_optional_float(value: object) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_str(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


class BrokerageClient:
    def __init__(
        self,
        api_key_lookup: ApiKeyLookup,
        base_url: str,
        timeout_seconds: float = 10.0,
        max_retries: int = 3,
        rate_limiter: RateLimiterRegistry | None = None,
    ) -> None:
        self._api_key_lookup = api_key_lookup
        self.base = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self._rate_limiter = rate_limiter

    def _get(self, user_id: str, path: str) -> Any:
        api_key = self._api_key_lookup(user_id)
        if not api_key:
            raise ProviderError("brokerage", "AUTH", "No brokerage API key configured for user.")
        if self._rate_limiter is not None:
            self._rate_limiter.wait("brokerage")
        return fetch_json(
            f"{self.base}{path}",
            provider="brokerage",
            timeout_seconds=self.timeout_seconds,
            headers={"Authorization": api_key, "Accept": "application/json"},
            max_retries=self.max_retries,
        )

    def _get_or_none(self, user_id: str, path: str, operation: str) -> Any:
        try:
            return self._get(user_id, path)
        except ProviderError as error:
            LOGGER.warning(
                "brokerage unavailable: op=%s user=%s code=%s status=%s",
                operation,
                user_id,
                error.code,
                error.status,
            )
            return None

    def get_cash_balance(self, user_id: str) -> float | None:
        data = self._get_or_none(user_id, "/equity/account/cash", "get_cash_balance")
        if isinstance(data, list):
            return sum(_as_float(entry.get("cash")) for entry in data if isinstance(entry, dict))
        if isinstance(data, dict):
            return _as_float(data.get("free"))
        if data is not None:
            LOGGER.warning("malformed cash payload: user=%s type=%s", user_id, type(data).__name__)
        return None

    def list_buckets(self, user_id: str) -> list[BucketRef] | None:
        data = self._get_or_none(user_id, "/equity/pies", "list_buckets")
        if data is None:
            return None
        if not isinstance(data, list):
            LOGGER.warning("malformed bucket list: user=%s type=%s", user_id, type(data).__name__)
            return None
        refs: list[BucketRef] = []
        for item in data:
            bucket_id = item.get("id") if isinstance(item, dict) else None
            if bucket_id is None or bucket_id == "":
                LOGGER.warning("bucket without id skipped: user=%s", user_id)
                continue
            refs.append(BucketRef(bucket_id=str(bucket_id)))
        return refs

    def get_bucket_detail(self, user_id: str, bucket_id: str) -> RawBucket | None:
        data = self._get_or_none(user_id, f"/equity/pies/{bucket_id}", "get_bucket_detail")
        if data is None:
            return None
        if not isinstance(data, dict):
            LOGGER.warning("malformed bucket detail: user=%s bucket=%s", user_id, bucket_id)
            return None
        settings = data.get("settings") if isinstance(data.get("settings"), dict) else {}
        instruments = data.get("instruments") if isinstance(data.get("instruments"), list) else []
        holdings: list[RawHolding] = []
        for instrument in instruments:
            if not isinstance(instrument, dict):
                continue
            result = instrument.get("result") if isinstance(instrument.get("result"), dict) else {}
            holdings.append(
                RawHolding(
                    ticker=str(instrument.get("ticker") or ""),
                    owned_quantity=_as_float(instrument.get("ownedQuantity")),
                    invested_value=_as_float(result.get("priceAvgInvestedValue")),
                    current_value=_as_float(result.get("priceAvgValue")),
                    current_share=_as_float(instrument.get("currentShare")),
                    expected_share=_as_float(instrument.get("expectedShare")),
                    issues=bool(instrument.get("issues")),
                )
            )
        return RawBucket(
            bucket_id=bucket_id,
            name=_as_str(settings.get("name")) or "Unnamed Pie",
            creation_date=_as_str(settings.get("creationDate")),
            dividend_cash_action=_as_str(settings.get("dividendCashAction")),
            holdings=holdings,
        )

    def get_instruments_metadata(self, user_id: str) -> list[InstrumentMetadata] | None:
        data = self._get_or_none(user_id, "/equity/metadata/instruments", "get_instruments_metadata")
        if data is None:
            return None
        if not isinstance(data, list):
            LOGGER.warning("malformed instrument metadata: user=%s type=%s", user_id, type(data).__name__)
            return None
        out: list[InstrumentMetadata] = []
        for item in data:
            if not isinstance(item, dict) or not _as_str(item.get("ticker")):
                continue
            out.append(
                InstrumentMetadata(
                    ticker=item["ticker"],
                    name=_as_str(item.get("name")),
                    currency_code=_as_str(item.get("currencyCode")),
                    exchange=_as_str(item.get("exchange")),
                    instrument_type=_as_str(item.get("type")),
                    added_on=_as_str(item.get("addedOn")),
                    max_open_quantity=_as_optional_float(item.get("maxOpenQuantity")),
                    min_trade_quantity=_as_optional_float(item.get("minTradeQuantity")),
                )
            )
        return out
