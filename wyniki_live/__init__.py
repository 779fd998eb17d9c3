"""Public package interface for the live overlay data service."""

from __future__ import annotations

from .app import BASE_DIR, configure_logging, create_app
from .backend import LiveFeedClient
from .cache import DataCache
from .displays import DisplayRegistry
from .entities import (
    ComponentBinding,
    Connection,
    CourtEntry,
    DisplayInstance,
    LiveDataState,
    Provider,
)
from .errors import ConnectionNotFound, FetchFailure, LiveDataError, PersistenceFailure
from .extensions import db
from .manual import ManualScoringSession
from .paths import resolve_binding, resolve_path
from .store import LiveDataStore
from .sync import CourtSyncCoordinator, compute_working_set

__all__ = [
    "BASE_DIR",
    "ComponentBinding",
    "Connection",
    "ConnectionNotFound",
    "CourtEntry",
    "CourtSyncCoordinator",
    "DataCache",
    "DisplayInstance",
    "DisplayRegistry",
    "FetchFailure",
    "LiveDataError",
    "LiveDataState",
    "LiveDataStore",
    "LiveFeedClient",
    "ManualScoringSession",
    "PersistenceFailure",
    "Provider",
    "compute_working_set",
    "configure_logging",
    "create_app",
    "db",
    "resolve_binding",
    "resolve_path",
]
