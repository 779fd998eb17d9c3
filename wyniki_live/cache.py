"""In-memory storage for the latest payloads.

Two independent maps are kept, each behind its own lock:

* ``connection id -> MatchState`` written by the per-connection pollers,
* ``court name -> CourtEntry`` written by the court sync coordinator.

Writers always replace a whole entry; readers get the stored object as is and
must treat it as read-only.
"""

from __future__ import annotations

import threading
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from .entities import CourtEntry, MatchState
from .utils import now_ms


class DataCache:
    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock
        self._live_lock = threading.Lock()
        self._live: Dict[str, MatchState] = {}
        self._courts_lock = threading.Lock()
        self._courts: Dict[str, CourtEntry] = {}
        self._write_lock = threading.Lock()
        self._last_write_ms: Optional[int] = None

    def _touch(self, moment: int) -> None:
        with self._write_lock:
            if self._last_write_ms is None or moment > self._last_write_ms:
                self._last_write_ms = moment

    # --- per-connection payloads ---------------------------------------------

    def set_live(self, connection_id: str, payload: MatchState) -> None:
        with self._live_lock:
            self._live[connection_id] = payload
        self._touch(self._clock())

    def get_live(self, connection_id: str) -> Optional[MatchState]:
        with self._live_lock:
            return self._live.get(connection_id)

    def live_snapshot(self) -> Dict[str, MatchState]:
        """Shallow copy of the connection map; payloads are shared, not copied."""
        with self._live_lock:
            return dict(self._live)

    def drop_live(self, connection_id: str) -> bool:
        with self._live_lock:
            return self._live.pop(connection_id, None) is not None

    def clear_live(self) -> None:
        with self._live_lock:
            self._live.clear()

    # --- court payloads -------------------------------------------------------

    def merge_courts(self, courts: Mapping[str, MatchState]) -> List[str]:
        moment = self._clock()
        merged: List[str] = []
        with self._courts_lock:
            for court_name, payload in courts.items():
                name = str(court_name)
                self._courts[name] = CourtEntry(
                    court_name=name,
                    payload=payload,
                    last_updated_ms=moment,
                )
                merged.append(name)
        if merged:
            self._touch(moment)
        return merged

    def get_court(self, court_name: str) -> Optional[CourtEntry]:
        with self._courts_lock:
            return self._courts.get(court_name)

    def court_names(self) -> List[str]:
        with self._courts_lock:
            return sorted(self._courts)

    def retain_courts(self, keep: Iterable[str]) -> List[str]:
        """Remove every court not listed in ``keep`` and return the removed names."""
        wanted = set(keep)
        with self._courts_lock:
            removed = [name for name in self._courts if name not in wanted]
            for name in removed:
                del self._courts[name]
        return sorted(removed)

    def expire_courts(self, max_age_seconds: float) -> List[str]:
        if max_age_seconds <= 0:
            return []
        threshold = self._clock() - int(max_age_seconds * 1000)
        with self._courts_lock:
            expired = [
                name
                for name, entry in self._courts.items()
                if entry.last_updated_ms < threshold
            ]
            for name in expired:
                del self._courts[name]
        return sorted(expired)

    def clear_courts(self) -> None:
        with self._courts_lock:
            self._courts.clear()

    # --- staleness ------------------------------------------------------------

    @property
    def last_write_ms(self) -> Optional[int]:
        with self._write_lock:
            return self._last_write_ms

    def is_stale(self, max_age_minutes: float) -> bool:
        last = self.last_write_ms
        if last is None:
            return True
        return (self._clock() - last) > max_age_minutes * 60_000


__all__ = ["DataCache"]
