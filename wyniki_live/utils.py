"""Utility helpers shared across the store, views and services."""

from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from typing import Any, Dict

from .constants import SENSITIVE_FIELD_MARKERS


def as_int(value: Any, default: int) -> int:
    """Coerce ``value`` to ``int`` returning ``default`` when conversion fails."""
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def as_float(value: Any, default: float) -> float:
    """Convert ``value`` to ``float`` supporting numbers provided as strings."""
    try:
        normalized = value
        if not isinstance(normalized, str):
            normalized = str(normalized)
        normalized = normalized.strip().replace(",", ".")
        return float(normalized)
    except (TypeError, ValueError):
        return default


def as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on", "tak"}:
        return True
    if text in {"0", "false", "no", "off", "nie"}:
        return False
    return default


def now_ms() -> int:
    return int(time.time() * 1000)


def iso_from_ms(value: int | None) -> str | None:
    if value is None:
        return None
    moment = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    return moment.isoformat()


def shorten_for_logging(text: str, max_length: int = 256) -> str:
    if len(text) <= max_length:
        return text
    return f"{text[: max_length - 1]}…"


def _is_sensitive_key(key: Any) -> bool:
    key_text = str(key).lower()
    return any(marker in key_text for marker in SENSITIVE_FIELD_MARKERS)


def sanitize_for_logging(value: Any) -> Any:
    if isinstance(value, dict):
        sanitized: Dict[Any, Any] = {}
        for key, item in value.items():
            if _is_sensitive_key(key) and not isinstance(item, bool):
                sanitized[key] = "***"
            else:
                sanitized[key] = sanitize_for_logging(item)
        return sanitized
    if isinstance(value, list):
        return [sanitize_for_logging(item) for item in value]
    if isinstance(value, str):
        return shorten_for_logging(value, max_length=128)
    return value


def format_payload_for_logging(payload: Any, *, max_length: int = 512) -> str:
    sanitized = sanitize_for_logging(payload)
    try:
        text = json.dumps(sanitized, ensure_ascii=False, sort_keys=True)
    except TypeError:
        text = str(sanitized)
    return shorten_for_logging(text, max_length=max_length)


__all__ = [
    "as_bool",
    "as_float",
    "as_int",
    "format_payload_for_logging",
    "iso_from_ms",
    "now_ms",
    "sanitize_for_logging",
    "shorten_for_logging",
]
