"""HTTP utilities and normalized provider errors."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Literal

import requests
from requests.adapters import HTTPAdapter

from portfolio_engine.providers.models import ProviderName

ProviderErrorCode = Literal["RATE_LIMIT", "AUTH", "NOT_FOUND", "UPSTREAM", "NETWORK", "BAD_RESPONSE"]
TRANSIENT_CODES = {408, 425, 429, 500, 502, 503, 504}
LOGGER = logging.getLogger(__name__)

_SESSION = requests.Session()
_SESSION.mount("https://", HTTPAdapter(pool_connections=20, pool_maxsize=50))
_SESSION.mount("http://", HTTPAdapter(pool_connections=20, pool_maxsize=50))


@dataclass
class ProviderError(Exception):
    provider: ProviderName
    code: ProviderErrorCode
    message: str
    status: int | None = None

    def __str__(self) -> str:
        return self.message


def map_status_to_code(status: int) -> ProviderErrorCode:
    if status in {401, 403}:
        return "AUTH"
    if status == 404:
        return "NOT_FOUND"
    if status == 429:
        return "RATE_LIMIT"
    return "UPSTREAM"


def _backoff(attempt: int, base_delay_seconds: float) -> None:
    time.sleep(base_delay_seconds * (2 ** (attempt - 1)))


def fetch_json(
    url: str,
    provider: ProviderName,
    timeout_seconds: float = 10.0,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    max_retries: int = 3,
    base_delay_seconds: float = 0.25,
    session: requests.Session | None = None,
) -> Any:
    """Fetch JSON with uniform provider/network error mapping.

    Network errors and transient statuses are retried with exponential backoff;
    auth and not-found responses fail on the first attempt.
    """
    http = session or _SESSION
    attempts = max(1, max_retries)
    last_error: ProviderError | None = None
    for attempt in range(1, attempts + 1):
        try:
            response = http.get(url, timeout=timeout_seconds, headers=headers, params=params)
        except requests.RequestException as error:
            mapped = ProviderError(provider, "NETWORK", "Provider request failed due to network error.")
            last_error = mapped
            LOGGER.warning("request error: provider=%s attempt=%s/%s error=%s", provider, attempt, attempts, type(error).__name__)
            if attempt < attempts:
                _backoff(attempt, base_delay_seconds)
                continue
            raise mapped from error

        raw = response.text or ""
        parsed: Any = {}
        if raw:
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError as error:
                mapped = ProviderError(
                    provider,
                    "BAD_RESPONSE",
                    "Provider returned non-JSON content.",
                    response.status_code,
                )
                last_error = mapped
                if response.status_code in TRANSIENT_CODES and attempt < attempts:
                    _backoff(attempt, base_delay_seconds)
                    continue
                raise mapped from error

        if not response.ok:
            mapped = ProviderError(
                provider,
                map_status_to_code(response.status_code),
                f"Provider request failed with status {response.status_code}.",
                response.status_code,
            )
            last_error = mapped
            LOGGER.warning(
                "request failed: provider=%s status=%s attempt=%s/%s",
                provider,
                response.status_code,
                attempt,
                attempts,
            )
            if response.status_code in TRANSIENT_CODES and attempt < attempts:
                _backoff(attempt, base_delay_seconds)
                continue
            raise mapped

        return parsed

    if last_error:
        raise last_error
    raise ProviderError(provider, "UPSTREAM", "Provider request failed.")
