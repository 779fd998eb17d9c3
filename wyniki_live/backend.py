"""HTTP client for the live score backends."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from .constants import LIVE_FEED_BASE_URL, RECENT_WINDOW_SECONDS, REQUEST_TIMEOUT_SECONDS
from .entities import MatchState
from .errors import FetchFailure
from .utils import format_payload_for_logging, shorten_for_logging

logger = logging.getLogger(__name__)


def _auth_headers(credential: Optional[str]) -> Dict[str, str]:
    headers = {"Accept": "application/json"}
    if credential:
        headers["Authorization"] = f"Bearer {credential}"
    return headers


def unwrap_envelope(payload: Any) -> Any:
    """Return ``data`` from a ``{"success", "data", "error"}`` envelope.

    Payloads that are not enveloped are returned unchanged.
    """
    if isinstance(payload, dict) and "success" in payload and (
        "data" in payload or "error" in payload
    ):
        if not payload.get("success"):
            raise FetchFailure(str(payload.get("error") or "Nieznany błąd API"))
        data = payload.get("data")
        if data is None:
            raise FetchFailure("Brak danych w odpowiedzi")
        return data
    return payload


def extract_court_map(payload: Any) -> Dict[str, MatchState]:
    body = unwrap_envelope(payload)
    if isinstance(body, dict):
        for key in ("courts", "data"):
            nested = body.get(key)
            if isinstance(nested, dict):
                body = nested
                break
    if not isinstance(body, dict):
        raise FetchFailure("Odpowiedź nie zawiera mapy kortów")

    courts: Dict[str, MatchState] = {}
    for court_name, state in body.items():
        if not isinstance(state, dict):
            logger.debug("Pomijam wpis kortu %s bez obiektu danych", court_name)
            continue
        name = str(court_name).strip()
        if name:
            courts[name] = state
    return courts


class LiveFeedClient:
    def __init__(
        self,
        base_url: str = LIVE_FEED_BASE_URL,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get_json(
        self,
        url: str,
        *,
        credential: Optional[str] = None,
        params: Any = None,
    ) -> Any:
        if not url:
            raise FetchFailure("Brak adresu źródła danych")
        try:
            response = self.session.get(
                url,
                params=params,
                headers=_auth_headers(credential),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise FetchFailure(f"Nie udało się wykonać zapytania: {exc}") from exc

        status_code = getattr(response, "status_code", None)
        if status_code is None or status_code >= 400:
            body = shorten_for_logging(str(getattr(response, "text", "") or ""))
            raise FetchFailure(f"Zapytanie zakończone statusem {status_code}: {body}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchFailure(f"Nie udało się sparsować odpowiedzi: {exc}") from exc

        logger.debug("Odpowiedź %s: %s", url, format_payload_for_logging(payload))
        return payload

    def fetch_one(self, endpoint: str, credential: Optional[str] = None) -> MatchState:
        data = unwrap_envelope(self._get_json(endpoint, credential=credential))
        if not isinstance(data, dict):
            raise FetchFailure("Odpowiedź nie zawiera obiektu meczu")
        return data

    def fetch_feed(self, endpoint: str, credential: Optional[str] = None) -> Dict[str, MatchState]:
        return extract_court_map(self._get_json(endpoint, credential=credential))

    def fetch_courts(self, court_names: Iterable[str]) -> Dict[str, MatchState]:
        names: List[str] = list(court_names)
        params = [("court", name) for name in names]
        courts = extract_court_map(self._get_json(f"{self.base_url}/courts", params=params))
        wanted = set(names)
        return {name: state for name, state in courts.items() if name in wanted}

    def fetch_recent(self, window_seconds: float = RECENT_WINDOW_SECONDS) -> Dict[str, MatchState]:
        params = {"window": int(window_seconds)}
        return extract_court_map(self._get_json(f"{self.base_url}/courts/recent", params=params))

    def test_connection(self, endpoint: str, credential: Optional[str] = None) -> bool:
        try:
            self._get_json(endpoint, credential=credential)
        except FetchFailure as exc:
            logger.info("Test połączenia z %s nieudany: %s", endpoint, exc)
            return False
        return True


__all__ = ["LiveFeedClient", "extract_court_map", "unwrap_envelope"]
