"""Small in-memory TTL cache for market-data responses."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass
class _CacheItem(Generic[T]):
    value: T
    expires_at: float


class TTLCache:
    """Thread-safe TTL cache keyed by string.

    Values are shared by every caller of the process, so only market data that
    is identical across users belongs here.
    """

    def __init__(self, default_ttl_seconds: int = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self.default_ttl_seconds = max(1, default_ttl_seconds)
        self._clock = clock
        self._data: dict[str, _CacheItem[object]] = {}
        self._lock = Lock()

    def get(self, key: str) -> object | None:
        now = self._clock()
        with self._lock:
            item = self._data.get(key)
            if not item:
                return None
            if item.expires_at <= now:
                self._data.pop(key, None)
                return None
            return item.value

    def set(self, key: str, value: object, ttl_seconds: int | None = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else max(1, ttl_seconds)
        with self._lock:
            self._data[key] = _CacheItem(value=value, expires_at=self._clock() + ttl)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
