"""Connection registry and binding store for live overlay data.

:class:`LiveDataStore` owns the connection and binding maps, the data cache
and the polling scheduler. A single instance is built at application start
and passed to the views and the court sync coordinator.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from .cache import DataCache
from .constants import MANUAL_POLL_INTERVAL_SECONDS, PERSIST_DEBOUNCE_SECONDS
from .entities import (
    ComponentBinding,
    Connection,
    CourtEntry,
    LiveDataState,
    MatchState,
    Provider,
)
from .errors import ConnectionNotFound, PersistenceFailure
from .paths import resolve_binding
from .persistence import PersistenceQueue, StateSaver
from .poller import PollingScheduler
from .providers import SourceFactory
from .utils import format_payload_for_logging
from .validation import validate_connection_data

logger = logging.getLogger(__name__)

StateLoader = Callable[[], LiveDataState]

# pola, których zmiana wymaga ponownego uruchomienia odpytywania
_SOURCE_FIELDS = ("provider", "api_url", "api_key", "court_filter", "poll_interval")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LiveDataStore:
    def __init__(
        self,
        sources: SourceFactory,
        *,
        cache: Optional[DataCache] = None,
        saver: Optional[StateSaver] = None,
        loader: Optional[StateLoader] = None,
        debounce_seconds: float = PERSIST_DEBOUNCE_SECONDS,
        backoff_max: float = 0.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.sources = sources
        self.cache = cache or DataCache()
        self._clock = clock
        self._loader = loader

        self._connections_lock = threading.RLock()
        self._connections: Dict[str, Connection] = {}
        self._bindings_lock = threading.RLock()
        self._bindings: Dict[str, ComponentBinding] = {}

        self.scheduler = PollingScheduler(
            on_success=self._commit_success,
            on_failure=self._commit_failure,
            backoff_max=backoff_max,
        )
        self.persistence: Optional[PersistenceQueue] = None
        if saver is not None:
            self.persistence = PersistenceQueue(
                self.export_state,
                saver,
                debounce_seconds=debounce_seconds,
                on_error=self._set_store_error,
            )
        self.last_error: Optional[str] = None
        self.is_loaded = False

    # --- persistence ----------------------------------------------------------

    def _set_store_error(self, message: Optional[str]) -> None:
        self.last_error = message

    def _schedule_save(self) -> None:
        if self.persistence is not None:
            self.persistence.mark_dirty()

    def export_state(self) -> LiveDataState:
        with self._connections_lock:
            connections = list(self._connections.values())
        with self._bindings_lock:
            bindings = list(self._bindings.values())
        return LiveDataState(connections=connections, bindings=bindings)

    def load(self) -> bool:
        """Replace registry contents with persisted state; polling stays stopped."""
        if self._loader is None:
            self.is_loaded = True
            return True
        try:
            state = self._loader()
        except PersistenceFailure as exc:
            logger.error("Nie udało się wczytać połączeń: %s", exc)
            self.last_error = str(exc)
            self.is_loaded = True
            return False

        self.scheduler.stop_all()
        with self._connections_lock:
            self._connections = {
                connection.id: replace(connection, is_active=False)
                for connection in state.connections
            }
            known_ids = set(self._connections)
            with self._bindings_lock:
                self._bindings = {
                    binding.component_id: binding
                    for binding in state.bindings
                    if binding.connection_id in known_ids
                }
        self.cache.clear_live()
        self.last_error = None
        self.is_loaded = True
        logger.info(
            "Wczytano %s połączeń i %s powiązań",
            len(self._connections),
            len(self._bindings),
        )
        return True

    def save_now(self) -> bool:
        if self.persistence is None:
            return False
        self.persistence.mark_dirty()
        return self.persistence.flush()

    # --- connections ----------------------------------------------------------

    def add_connection(self, draft: Mapping[str, Any]) -> str:
        normalized, errors = validate_connection_data(draft)
        if errors:
            raise ValueError(f"Invalid connection draft: {errors}")

        now = self._clock()
        connection = Connection(
            id=str(uuid.uuid4()),
            name=normalized["name"],
            provider=normalized["provider"],
            api_url=normalized.get("api_url", ""),
            api_key=normalized.get("api_key", ""),
            court_filter=normalized.get("court_filter"),
            poll_interval=normalized["poll_interval"],
            is_active=False,
            created_at=now,
            updated_at=now,
        )
        with self._connections_lock:
            self._connections[connection.id] = connection
        logger.info(
            "Dodano połączenie %s: %s",
            connection.id,
            format_payload_for_logging(connection.to_dict()),
        )
        self._schedule_save()
        return connection.id

    def create_manual_connection(self, name: str = "Manual Tennis Match") -> str:
        return self.add_connection(
            {
                "name": name,
                "provider": Provider.MANUAL_CONSOLE.value,
                "poll_interval": MANUAL_POLL_INTERVAL_SECONDS,
            }
        )

    def update_connection(self, connection_id: str, partial: Mapping[str, Any]) -> Optional[Connection]:
        with self._connections_lock:
            current = self._connections.get(connection_id)
            if current is None:
                logger.warning("Aktualizacja nieznanego połączenia %s", connection_id)
                return None
            normalized, errors = validate_connection_data(
                partial,
                partial=True,
                current_provider=current.provider,
                current_url=current.api_url,
            )
            if errors:
                raise ValueError(f"Invalid connection update: {errors}")
            updated = replace(current, **normalized, updated_at=self._clock())
            self._connections[connection_id] = updated

        restart = updated.is_active and any(
            getattr(current, name) != getattr(updated, name) for name in _SOURCE_FIELDS
        )
        if restart:
            logger.info("Zmieniono źródło połączenia %s - restart odpytywania", connection_id)
            self.scheduler.stop(connection_id)
            self._start_polling(updated)
        self._schedule_save()
        return updated

    def remove_connection(self, connection_id: str) -> bool:
        self.scheduler.stop(connection_id)
        with self._connections_lock:
            removed = self._connections.pop(connection_id, None)
            if removed is None:
                logger.warning("Usuwanie nieznanego połączenia %s", connection_id)
                return False
            self.cache.drop_live(connection_id)
            with self._bindings_lock:
                dependent = [
                    component_id
                    for component_id, binding in self._bindings.items()
                    if binding.connection_id == connection_id
                ]
                for component_id in dependent:
                    del self._bindings[component_id]
        logger.info(
            "Usunięto połączenie %s oraz %s powiązań", connection_id, len(dependent)
        )
        self._schedule_save()
        return True

    def _start_polling(self, connection: Connection) -> bool:
        source = self.sources.build(connection)
        return self.scheduler.start(connection.id, source, connection.poll_interval)

    def activate_connection(self, connection_id: str) -> Optional[Connection]:
        with self._connections_lock:
            current = self._connections.get(connection_id)
            if current is None:
                logger.warning("Aktywacja nieznanego połączenia %s", connection_id)
                return None
            updated = replace(current, is_active=True, last_error=None)
            self._connections[connection_id] = updated

        self._start_polling(updated)
        if not current.is_active:
            self._schedule_save()
        return updated

    def deactivate_connection(self, connection_id: str) -> Optional[Connection]:
        with self._connections_lock:
            current = self._connections.get(connection_id)
            if current is None:
                logger.warning("Dezaktywacja nieznanego połączenia %s", connection_id)
                return None
            updated = replace(current, is_active=False)
            self._connections[connection_id] = updated

        self.scheduler.stop(connection_id)
        if current.is_active:
            self._schedule_save()
        return updated

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        with self._connections_lock:
            return self._connections.get(connection_id)

    def require_connection(self, connection_id: str) -> Connection:
        connection = self.get_connection(connection_id)
        if connection is None:
            raise ConnectionNotFound(connection_id)
        return connection

    def list_connections(self) -> List[Connection]:
        with self._connections_lock:
            return list(self._connections.values())

    def is_active(self, connection_id: str) -> bool:
        connection = self.get_connection(connection_id)
        return connection is not None and connection.is_active

    def disconnect_all(self) -> None:
        stopped = self.scheduler.stop_all()
        with self._connections_lock:
            changed = False
            for connection_id, connection in list(self._connections.items()):
                if connection.is_active:
                    self._connections[connection_id] = replace(connection, is_active=False)
                    changed = True
        self.cache.clear_live()
        if stopped:
            logger.info("Rozłączono %s połączeń", len(stopped))
        if changed:
            self._schedule_save()

    def shutdown(self) -> None:
        self.disconnect_all()
        if self.persistence is not None:
            self.persistence.stop(flush=True)

    # --- poll results ---------------------------------------------------------

    def _commit_success(self, connection_id: str, payload: MatchState) -> bool:
        with self._connections_lock:
            current = self._connections.get(connection_id)
            if current is None or not current.is_active:
                logger.debug("Pomijam dane nieaktywnego połączenia %s", connection_id)
                return False
            self.cache.set_live(connection_id, payload)
            self._connections[connection_id] = replace(
                current, last_updated=self._clock(), last_error=None
            )
        return True

    def _commit_failure(self, connection_id: str, error: str) -> bool:
        with self._connections_lock:
            current = self._connections.get(connection_id)
            if current is None or not current.is_active:
                return False
            self._connections[connection_id] = replace(current, last_error=error)
        return True

    def refresh_connection(self, connection_id: str) -> bool:
        """Run one poll for an active connection right away."""
        if not self.is_active(connection_id):
            return False
        return self.scheduler.tick(connection_id)

    def refresh_manual_connections(self, *_args: Any) -> List[str]:
        refreshed = []
        for connection in self.list_connections():
            if connection.provider is Provider.MANUAL_CONSOLE and connection.is_active:
                if self.refresh_connection(connection.id):
                    refreshed.append(connection.id)
        return refreshed

    # --- bindings -------------------------------------------------------------

    def add_binding(
        self,
        component_id: str,
        connection_id: str,
        data_path: str,
        update_interval: Optional[float] = None,
    ) -> Optional[ComponentBinding]:
        binding = ComponentBinding(
            component_id=component_id,
            connection_id=connection_id,
            data_path=data_path,
            update_interval=update_interval,
        )
        with self._connections_lock:
            if connection_id not in self._connections:
                logger.warning(
                    "Powiązanie %s wskazuje nieznane połączenie %s", component_id, connection_id
                )
                return None
            with self._bindings_lock:
                self._bindings[component_id] = binding
        self._schedule_save()
        return binding

    def update_binding(self, component_id: str, partial: Mapping[str, Any]) -> Optional[ComponentBinding]:
        allowed = {
            key: value
            for key, value in partial.items()
            if key in {"connection_id", "data_path", "update_interval"}
        }
        with self._connections_lock:
            with self._bindings_lock:
                current = self._bindings.get(component_id)
                if current is None:
                    return None
                updated = replace(current, **allowed)
                if updated.connection_id not in self._connections:
                    logger.warning(
                        "Powiązanie %s wskazuje nieznane połączenie %s",
                        component_id,
                        updated.connection_id,
                    )
                    return None
                self._bindings[component_id] = updated
        self._schedule_save()
        return updated

    def remove_binding(self, component_id: str) -> bool:
        with self._bindings_lock:
            removed = self._bindings.pop(component_id, None)
        if removed is None:
            return False
        self._schedule_save()
        return True

    def get_binding(self, component_id: str) -> Optional[ComponentBinding]:
        with self._bindings_lock:
            return self._bindings.get(component_id)

    def list_bindings(self, connection_id: Optional[str] = None) -> List[ComponentBinding]:
        with self._bindings_lock:
            bindings = list(self._bindings.values())
        if connection_id is not None:
            bindings = [binding for binding in bindings if binding.connection_id == connection_id]
        return bindings

    # --- reads ----------------------------------------------------------------

    def get_value(self, component_id: str) -> Any:
        return resolve_binding(self.get_binding(component_id), self.cache.live_snapshot())

    def get_live_data(self, connection_id: str) -> Optional[MatchState]:
        return self.cache.get_live(connection_id)

    def get_court_data(self, court_name: str) -> Optional[CourtEntry]:
        return self.cache.get_court(court_name)

    def get_available_courts(self) -> List[str]:
        return self.cache.court_names()

    def is_stale(self, max_age_minutes: float) -> bool:
        return self.cache.is_stale(max_age_minutes)


__all__ = ["LiveDataStore"]
