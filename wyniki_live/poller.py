"""Per-connection polling threads."""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, Dict, List, Optional

from .entities import MatchState
from .errors import FetchFailure
from .providers import MatchSource
from .utils import format_payload_for_logging

logger = logging.getLogger(__name__)

SuccessCallback = Callable[[str, MatchState], bool]
FailureCallback = Callable[[str, str], bool]


class ConnectionPoller:
    """Runs ``source.fetch`` every ``interval`` seconds on a daemon thread.

    The first tick happens immediately after :meth:`start`. Ticks never
    overlap: a tick requested while another one is in flight is skipped.
    """

    def __init__(
        self,
        connection_id: str,
        source: MatchSource,
        interval: float,
        *,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
        backoff_max: float = 0.0,
    ) -> None:
        if not math.isfinite(interval) or interval <= 0:
            raise ValueError("interval must be a positive finite number")
        self.connection_id = connection_id
        self.source = source
        self.interval = float(interval)
        self.backoff_max = float(backoff_max or 0.0)
        self._on_success = on_success
        self._on_failure = on_failure
        self._stop = threading.Event()
        self._in_flight = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self.consecutive_failures = 0
        self.ticks_total = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    @property
    def is_stopped(self) -> bool:
        return self._stop.is_set()

    def start(self) -> bool:
        if self.is_running:
            return False
        if self._stop.is_set():
            raise RuntimeError("A stopped poller cannot be restarted")
        self._thread = threading.Thread(
            target=self._run,
            name=f"poller-{self.connection_id}",
            daemon=True,
        )
        self._thread.start()
        return True

    def stop(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def next_delay(self) -> float:
        if self.backoff_max <= 0 or self.consecutive_failures == 0:
            return self.interval
        delay = self.interval * (2 ** min(self.consecutive_failures, 16))
        return max(self.interval, min(delay, self.backoff_max))

    def _run(self) -> None:
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.next_delay())

    def tick(self) -> bool:
        """Fetch once and commit the outcome; returns ``False`` if skipped."""
        if not self._in_flight.acquire(blocking=False):
            logger.debug("Pomijam tick połączenia %s - poprzedni wciąż trwa", self.connection_id)
            return False
        try:
            return self._tick_locked()
        finally:
            self._in_flight.release()

    def _tick_locked(self) -> bool:
        started = time.perf_counter()
        self.ticks_total += 1
        try:
            payload = self.source.fetch()
        except FetchFailure as exc:
            error = str(exc) or exc.__class__.__name__
        except Exception as exc:  # noqa: BLE001
            logger.exception("Nieoczekiwany błąd źródła dla połączenia %s", self.connection_id)
            error = f"{exc.__class__.__name__}: {exc}"
        else:
            duration_ms = (time.perf_counter() - started) * 1000.0
            if self._stop.is_set():
                logger.debug(
                    "Odrzucam dane połączenia %s pobrane po zatrzymaniu", self.connection_id
                )
                return True
            logger.debug(
                "Dane połączenia %s pobrane w %.1f ms: %s",
                self.connection_id,
                duration_ms,
                format_payload_for_logging(payload),
            )
            if self._on_success(self.connection_id, payload):
                self.consecutive_failures = 0
            return True

        self.consecutive_failures += 1
        logger.warning(
            "Nie udało się pobrać danych połączenia %s (błąd %s z rzędu): %s",
            self.connection_id,
            self.consecutive_failures,
            error,
        )
        if not self._stop.is_set():
            self._on_failure(self.connection_id, error)
        return True


class PollingScheduler:
    """Keeps at most one running poller per connection id."""

    def __init__(
        self,
        *,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
        backoff_max: float = 0.0,
    ) -> None:
        self._on_success = on_success
        self._on_failure = on_failure
        self.backoff_max = backoff_max
        self._lock = threading.Lock()
        self._pollers: Dict[str, ConnectionPoller] = {}

    def start(self, connection_id: str, source: MatchSource, interval: float) -> bool:
        with self._lock:
            existing = self._pollers.get(connection_id)
            if existing is not None and existing.is_running:
                return False
            poller = ConnectionPoller(
                connection_id,
                source,
                interval,
                on_success=self._on_success,
                on_failure=self._on_failure,
                backoff_max=self.backoff_max,
            )
            self._pollers[connection_id] = poller
            poller.start()
        logger.info("Uruchomiono odpytywanie połączenia %s co %.1f s", connection_id, interval)
        return True

    def stop(self, connection_id: str) -> bool:
        with self._lock:
            poller = self._pollers.pop(connection_id, None)
        if poller is None:
            return False
        poller.stop()
        logger.info("Zatrzymano odpytywanie połączenia %s", connection_id)
        return True

    def stop_all(self) -> List[str]:
        with self._lock:
            pollers = list(self._pollers.values())
            self._pollers.clear()
        for poller in pollers:
            poller.stop()
        return [poller.connection_id for poller in pollers]

    def get(self, connection_id: str) -> Optional[ConnectionPoller]:
        with self._lock:
            return self._pollers.get(connection_id)

    def is_polling(self, connection_id: str) -> bool:
        poller = self.get(connection_id)
        return poller is not None and poller.is_running

    def polling_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._pollers)

    def tick(self, connection_id: str) -> bool:
        poller = self.get(connection_id)
        if poller is None:
            return False
        return poller.tick()


__all__ = ["ConnectionPoller", "PollingScheduler"]
