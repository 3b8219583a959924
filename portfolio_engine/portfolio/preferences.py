"""Keyed user-preference stores injected into the engine."""

from __future__ import annotations

from threading import Lock
from typing import Protocol


class ApiKeyStore(Protocol):
    def get_api_key(self, user_id: str) -> str | None: ...


class TargetAllocationStore(Protocol):
    def get_targets(self, user_id: str) -> dict[str, float]: ...

    def set_target(self, user_id: str, bucket_name: str, percent: float) -> None: ...


class StaticApiKeyStore:
    """Per-user brokerage keys with an optional key for the configured default user."""

    def __init__(self, keys: dict[str, str] | None = None, default_user_id: str = "default", default_key: str | None = None) -> None:
        self._keys = dict(keys or {})
        if default_key:
            self._keys.setdefault(default_user_id, default_key)

    def get_api_key(self, user_id: str) -> str | None:
        return self._keys.get(user_id)


class InMemoryTargetAllocationStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._targets: dict[str, dict[str, float]] = {}

    def get_targets(self, user_id: str) -> dict[str, float]:
        with self._lock:
            return dict(self._targets.get(user_id, {}))

    def set_target(self, user_id: str, bucket_name: str, percent: float) -> None:
        with self._lock:
            self._targets.setdefault(user_id, {})[bucket_name] = float(percent)
