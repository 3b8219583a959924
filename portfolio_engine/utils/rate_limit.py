"""Per-provider minimum-interval limiter."""

from __future__ import annotations

import time
from threading import Lock


class RateLimiterRegistry:
    """Spaces out calls to each provider by a minimum interval.

    Each caller reserves the next free slot under the lock and sleeps outside
    it, so a slow provider never stalls callers of a different provider.
    """

    def __init__(
        self,
        min_interval_seconds: float = 0.2,
        overrides: dict[str, float] | None = None,
    ) -> None:
        self.min_interval_seconds = max(0.0, min_interval_seconds)
        self._overrides = {name: max(0.0, value) for name, value in (overrides or {}).items()}
        self._next_slot: dict[str, float] = {}
        self._lock = Lock()

    def interval_for(self, provider: str) -> float:
        return self._overrides.get(provider, self.min_interval_seconds)

    def wait(self, provider: str) -> float:
        """Block until the provider may be called; returns the seconds slept."""
        interval = self.interval_for(provider)
        if interval <= 0:
            return 0.0
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot.get(provider, now))
            self._next_slot[provider] = slot + interval
        delay = slot - now
        if delay > 0:
            time.sleep(delay)
        return delay
