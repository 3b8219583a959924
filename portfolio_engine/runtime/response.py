"""Response shaping helpers for MCP tools."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, is_dataclass
from typing import Any

DISCLAIMER = "Data is for informational purposes only and does not constitute financial advice."


def _convert_data(data: Any) -> Any:
    to_dict = getattr(data, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if is_dataclass(data):
        return asdict(data)
    if isinstance(data, list):
        return [_convert_data(item) for item in data]
    if isinstance(data, dict):
        return {key: _convert_data(value) for key, value in data.items()}
    return data


def success_response(data: Any, **extra: Any) -> str:
    payload: dict[str, Any] = {
        "data": _convert_data(data),
        "timestamp": int(time.time()),
        "disclaimer": DISCLAIMER,
    }
    payload.update({key: _convert_data(value) for key, value in extra.items() if value is not None})
    return json.dumps(payload, ensure_ascii=True)


def error_response(code: str, message: str) -> str:
    return json.dumps(
        {
            "error": True,
            "code": code,
            "message": message,
            "timestamp": int(time.time()),
        },
        ensure_ascii=True,
    )
