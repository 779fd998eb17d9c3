"""Debounced, fire-and-forget persistence of registry state."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from .constants import PERSIST_DEBOUNCE_SECONDS
from .entities import LiveDataState
from .errors import PersistenceFailure

logger = logging.getLogger(__name__)

StateSupplier = Callable[[], LiveDataState]
StateSaver = Callable[[LiveDataState], object]
ErrorHandler = Callable[[Optional[str]], None]


class PersistenceQueue:
    """Coalesces bursts of mutations into a single save.

    :meth:`mark_dirty` only raises a flag; a background thread wakes up once
    per ``debounce_seconds`` and writes the current state if the flag is set.
    """

    def __init__(
        self,
        supplier: StateSupplier,
        saver: StateSaver,
        *,
        debounce_seconds: float = PERSIST_DEBOUNCE_SECONDS,
        on_error: Optional[ErrorHandler] = None,
    ) -> None:
        self._supplier = supplier
        self._saver = saver
        self._on_error = on_error
        self.debounce_seconds = max(0.0, float(debounce_seconds))
        self._dirty = threading.Event()
        self._wake = threading.Event()
        self._stop = threading.Event()
        self._flush_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self.saves_total = 0

    @property
    def is_dirty(self) -> bool:
        return self._dirty.is_set()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="live-data-persist", daemon=True)
        self._thread.start()

    def stop(self, *, flush: bool = True) -> None:
        self._stop.set()
        self._wake.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)
        self._thread = None
        if flush:
            self.flush()

    def mark_dirty(self) -> None:
        self._dirty.set()
        self._wake.set()

    def _run(self) -> None:
        while not self._stop.is_set():
            self._wake.wait()
            if self._stop.is_set():
                break
            # okno zbierania zmian przed zapisem
            self._stop.wait(self.debounce_seconds)
            self._wake.clear()
            self.flush()

    def flush(self) -> bool:
        """Save now if there are pending changes; returns ``True`` on a write."""
        with self._flush_lock:
            if not self._dirty.is_set():
                return False
            self._dirty.clear()
            try:
                self._saver(self._supplier())
            except PersistenceFailure as exc:
                logger.error("Nie udało się zapisać stanu połączeń: %s", exc)
                self._dirty.set()
                if self._on_error is not None:
                    self._on_error(str(exc))
                return False
            except Exception as exc:  # noqa: BLE001
                logger.exception("Nieoczekiwany błąd zapisu stanu połączeń")
                self._dirty.set()
                if self._on_error is not None:
                    self._on_error(f"{exc.__class__.__name__}: {exc}")
                return False
            self.saves_total += 1
            if self._on_error is not None:
                self._on_error(None)
            return True


__all__ = ["PersistenceQueue"]
