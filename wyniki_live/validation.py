"""Validation of connection, binding and display drafts coming from the API."""

from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Tuple

from .constants import DEFAULT_POLL_INTERVAL_SECONDS, MANUAL_POLL_INTERVAL_SECONDS
from .entities import Provider
from .utils import as_bool, as_float

Errors = Dict[str, str]

_MISSING = object()

PROVIDERS_WITH_URL = {Provider.POLLED_API, Provider.STREAMED_FEED}


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return _MISSING


def _optional_text(value: Any) -> str | None:
    if value is None or value is _MISSING:
        return None
    text = str(value).strip()
    return text or None


def validate_connection_data(
    data: Mapping[str, Any] | None,
    *,
    partial: bool = False,
    current_provider: Provider | None = None,
    current_url: str = "",
) -> Tuple[Dict[str, Any], Errors]:
    """Normalize a connection draft; ``partial`` validates only the given fields."""
    data = data or {}
    errors: Errors = {}
    normalized: Dict[str, Any] = {}

    name = _pick(data, "name")
    if name is not _MISSING or not partial:
        text = _optional_text(name)
        if not text:
            errors["name"] = "Nazwa połączenia jest wymagana."
        else:
            normalized["name"] = text

    provider_value = _pick(data, "provider")
    provider = current_provider
    if provider_value is not _MISSING or not partial:
        provider = Provider.parse(provider_value)
        if provider is None:
            allowed = ", ".join(member.value for member in Provider)
            errors["provider"] = f"Dostawca musi być jednym z: {allowed}."
        else:
            normalized["provider"] = provider

    api_url = _pick(data, "api_url", "apiUrl")
    if api_url is not _MISSING:
        normalized["api_url"] = _optional_text(api_url) or ""

    api_key = _pick(data, "api_key", "apiKey")
    if api_key is not _MISSING:
        normalized["api_key"] = "" if api_key is None else str(api_key).strip()

    court_filter = _pick(data, "court_filter", "courtFilter")
    if court_filter is not _MISSING:
        normalized["court_filter"] = _optional_text(court_filter)

    effective_url = normalized.get("api_url", current_url)
    if provider in PROVIDERS_WITH_URL and not effective_url and "provider" not in errors:
        errors["api_url"] = "Adres API jest wymagany dla tego dostawcy."

    poll_interval = _pick(data, "poll_interval", "pollInterval")
    if poll_interval is not _MISSING:
        interval = as_float(poll_interval, 0.0)
        if not math.isfinite(interval) or interval <= 0:
            errors["poll_interval"] = "Interwał odpytywania musi być większy od zera."
        else:
            normalized["poll_interval"] = interval
    elif not partial:
        normalized["poll_interval"] = (
            MANUAL_POLL_INTERVAL_SECONDS
            if provider is Provider.MANUAL_CONSOLE
            else DEFAULT_POLL_INTERVAL_SECONDS
        )

    return normalized, errors


def validate_binding_data(
    data: Mapping[str, Any] | None,
    *,
    partial: bool = False,
) -> Tuple[Dict[str, Any], Errors]:
    data = data or {}
    errors: Errors = {}
    normalized: Dict[str, Any] = {}

    if not partial:
        component_id = _optional_text(_pick(data, "component_id", "componentId"))
        if not component_id:
            errors["component_id"] = "ID komponentu jest wymagane."
        else:
            normalized["component_id"] = component_id

    connection_id = _pick(data, "connection_id", "connectionId")
    if connection_id is not _MISSING or not partial:
        text = _optional_text(connection_id)
        if not text:
            errors["connection_id"] = "ID połączenia jest wymagane."
        else:
            normalized["connection_id"] = text

    data_path = _pick(data, "data_path", "dataPath")
    if data_path is not _MISSING or not partial:
        text = _optional_text(data_path)
        if not text:
            errors["data_path"] = "Ścieżka danych jest wymagana."
        else:
            normalized["data_path"] = text

    update_interval = _pick(data, "update_interval", "updateInterval")
    if update_interval is not _MISSING:
        if update_interval is None:
            normalized["update_interval"] = None
        else:
            interval = as_float(update_interval, 0.0)
            if not math.isfinite(interval) or interval <= 0:
                errors["update_interval"] = "Interwał odświeżania musi być większy od zera."
            else:
                normalized["update_interval"] = interval

    return normalized, errors


def validate_display_data(data: Mapping[str, Any] | None) -> Tuple[Dict[str, Any], Errors]:
    data = data or {}
    errors: Errors = {}
    normalized: Dict[str, Any] = {}

    display_id = _optional_text(_pick(data, "display_id", "displayId", "id"))
    if not display_id:
        errors["display_id"] = "ID wyświetlacza jest wymagane."
    else:
        normalized["display_id"] = display_id

    normalized["court_filter"] = _optional_text(_pick(data, "court_filter", "courtFilter"))
    is_active = _pick(data, "is_active", "isActive")
    normalized["is_active"] = True if is_active is _MISSING else as_bool(is_active, True)
    return normalized, errors


__all__ = [
    "validate_binding_data",
    "validate_connection_data",
    "validate_display_data",
]
