"""Error taxonomy for the live data core."""

from __future__ import annotations


class LiveDataError(Exception):
    """Base class for errors raised by the live data core."""


class ConnectionNotFound(LiveDataError, LookupError):
    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Nieznane połączenie: {connection_id}")
        self.connection_id = connection_id


class FetchFailure(LiveDataError):
    """A provider could not deliver a payload (transport, status or format)."""


class PersistenceFailure(LiveDataError):
    """Saving or loading connections and bindings failed."""


__all__ = [
    "ConnectionNotFound",
    "FetchFailure",
    "LiveDataError",
    "PersistenceFailure",
]
