"""Application wide constants and defaults."""

from __future__ import annotations

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
MANUAL_POLL_INTERVAL_SECONDS = 1.0

COURT_SYNC_INTERVAL_SECONDS = 2.0
COURT_MAX_AGE_SECONDS = 300
RECENT_WINDOW_SECONDS = 300
STALE_AFTER_MINUTES = 5

PERSIST_DEBOUNCE_SECONDS = 0.1
REQUEST_TIMEOUT_SECONDS = 5
POLL_BACKOFF_MAX_SECONDS = 0.0

LIVE_FEED_BASE_URL = "http://127.0.0.1:8787"

SIMULATED_SET_SECONDS = 30.0

MANUAL_NO_MATCH_ID = "manual_no_match"

# Payload publikowany przez konsolę ręczną, gdy żaden mecz nie jest prowadzony.
# Wszystkie pola muszą być obecne, aby ścieżki powiązań zawsze się rozwiązywały.
MANUAL_NO_MATCH_PAYLOAD = {
    "matchId": MANUAL_NO_MATCH_ID,
    "player1": {"name": "Player 1"},
    "player2": {"name": "Player 2"},
    "score": {
        "player1Sets": 0,
        "player2Sets": 0,
        "player1Games": 0,
        "player2Games": 0,
        "player1Points": "0",
        "player2Points": "0",
    },
    "sets": {},
    "matchStatus": "not_started",
    "servingPlayer": 1,
    "currentSet": 1,
    "isTiebreak": False,
}

SENSITIVE_FIELD_MARKERS = (
    "token",
    "secret",
    "password",
    "api_key",
    "apikey",
    "auth",
)

__all__ = [
    "COURT_MAX_AGE_SECONDS",
    "COURT_SYNC_INTERVAL_SECONDS",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "LIVE_FEED_BASE_URL",
    "MANUAL_NO_MATCH_ID",
    "MANUAL_NO_MATCH_PAYLOAD",
    "MANUAL_POLL_INTERVAL_SECONDS",
    "PERSIST_DEBOUNCE_SECONDS",
    "POLL_BACKOFF_MAX_SECONDS",
    "RECENT_WINDOW_SECONDS",
    "REQUEST_TIMEOUT_SECONDS",
    "SENSITIVE_FIELD_MARKERS",
    "SIMULATED_SET_SECONDS",
    "STALE_AFTER_MINUTES",
]
