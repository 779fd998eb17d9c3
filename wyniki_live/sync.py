"""Court data synchronisation scoped to the courts actually on screen.

Every tick the coordinator asks which courts the active displays are showing,
fetches only those courts, merges the result into the court cache and drops
entries for courts nobody displays anymore. When no display is scoped to a
court, an unfiltered fetch of recently updated courts is merged instead and
nothing is evicted.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from .cache import DataCache
from .constants import (
    COURT_MAX_AGE_SECONDS,
    COURT_SYNC_INTERVAL_SECONDS,
    RECENT_WINDOW_SECONDS,
    STALE_AFTER_MINUTES,
)
from .entities import DisplayInstance, MatchState
from .errors import FetchFailure
from .utils import iso_from_ms

logger = logging.getLogger(__name__)

DisplaySupplier = Callable[[], Iterable[DisplayInstance]]


class CourtFetcher(Protocol):
    def fetch_courts(self, court_names: Iterable[str]) -> Dict[str, MatchState]:
        ...

    def fetch_recent(self, window_seconds: float = ...) -> Dict[str, MatchState]:
        ...


def compute_working_set(displays: Iterable[DisplayInstance]) -> List[str]:
    """De-duplicated, non-empty court filters of the active displays, in order."""
    courts: List[str] = []
    for display in displays:
        if not display.is_active or not display.court_filter:
            continue
        court = display.court_filter.strip()
        if court and court not in courts:
            courts.append(court)
    return courts


@dataclass
class SyncResult:
    working_set: List[str]
    used_fallback: bool
    merged: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    expired: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class CourtSyncCoordinator:
    def __init__(
        self,
        cache: DataCache,
        fetcher: CourtFetcher,
        displays: DisplaySupplier,
        *,
        interval: float = COURT_SYNC_INTERVAL_SECONDS,
        recent_window_seconds: float = RECENT_WINDOW_SECONDS,
        max_age_seconds: float = COURT_MAX_AGE_SECONDS,
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.displays = displays
        self.interval = float(interval)
        self.recent_window_seconds = recent_window_seconds
        self.max_age_seconds = max_age_seconds

        self._state_lock = threading.Lock()
        self._sync_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_sync: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.active_courts: List[str] = []
        self.error_count = 0
        self.ticks_total = 0

    # --- one pass -------------------------------------------------------------

    def _working_set(self) -> List[str]:
        try:
            return compute_working_set(self.displays())
        except Exception:  # noqa: BLE001
            logger.warning("Nie udało się ustalić wyświetlanych kortów", exc_info=True)
            return []

    def sync_once(self) -> SyncResult:
        with self._sync_lock:
            return self._sync_locked()

    def _sync_locked(self) -> SyncResult:
        working_set = self._working_set()
        result = SyncResult(working_set=working_set, used_fallback=not working_set)

        try:
            if working_set:
                fetched = self.fetcher.fetch_courts(working_set)
                wanted = set(working_set)
                fetched = {name: state for name, state in fetched.items() if name in wanted}
            else:
                fetched = self.fetcher.fetch_recent(self.recent_window_seconds)
        except FetchFailure as exc:
            result.error = str(exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Nieoczekiwany błąd pobierania danych kortów")
            result.error = f"{exc.__class__.__name__}: {exc}"
        else:
            result.merged = self.cache.merge_courts(fetched)

        if working_set:
            result.removed = self.cache.retain_courts(working_set)
            result.expired = self.cache.expire_courts(self.max_age_seconds)

        with self._state_lock:
            self.ticks_total += 1
            self.active_courts = list(working_set)
            if result.error is None:
                self.last_sync = datetime.now(timezone.utc)
                self.last_error = None
            else:
                self.error_count += 1
                self.last_error = result.error

        if result.error is not None:
            logger.warning("Synchronizacja kortów nieudana: %s", result.error)
        else:
            logger.debug(
                "Zsynchronizowano korty %s (tryb: %s)",
                result.merged,
                "ostatnie" if result.used_fallback else "wyświetlane",
            )
        if result.removed:
            logger.info("Usunięto dane niewyświetlanych kortów: %s", result.removed)
        if result.expired:
            logger.info("Usunięto przeterminowane dane kortów: %s", result.expired)
        return result

    # --- background loop --------------------------------------------------------

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self, interval: Optional[float] = None) -> bool:
        if self.is_running():
            logger.warning("Synchronizacja kortów już działa")
            return False
        if interval is not None:
            if not math.isfinite(interval) or interval <= 0:
                raise ValueError("interval must be a positive finite number")
            self.interval = float(interval)

        self._stop = threading.Event()
        stop = self._stop

        def runner() -> None:
            while not stop.is_set():
                tick_start = time.time()
                self.sync_once()
                elapsed = time.time() - tick_start
                stop.wait(max(0.0, self.interval - elapsed))

        self._thread = threading.Thread(target=runner, name="court-sync", daemon=True)
        self._thread.start()
        logger.info("Uruchomiono synchronizację kortów (co %.1f s)", self.interval)
        return True

    def stop(self, *, wait: bool = False) -> bool:
        if not self.is_running():
            return False
        self._stop.set()
        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(self.interval, 1.0) * 2)
        logger.info("Zatrzymano synchronizację kortów")
        return True

    def status(self, stale_after_minutes: float = STALE_AFTER_MINUTES) -> Dict[str, Any]:
        with self._state_lock:
            last_sync = self.last_sync
            payload: Dict[str, Any] = {
                "is_running": self.is_running(),
                "interval_seconds": self.interval,
                "last_sync": last_sync.isoformat() if last_sync else None,
                "last_error": self.last_error,
                "active_courts": list(self.active_courts),
                "error_count": self.error_count,
            }
        payload["stored_courts"] = self.cache.court_names()
        payload["last_write"] = iso_from_ms(self.cache.last_write_ms)
        payload["is_data_stale"] = self.cache.is_stale(stale_after_minutes)
        return payload


__all__ = ["CourtSyncCoordinator", "SyncResult", "compute_working_set"]
