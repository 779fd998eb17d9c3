"""Application factory and setup helpers."""

from __future__ import annotations

import atexit
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

import requests
from dotenv import load_dotenv
from flask import Flask

from .backend import LiveFeedClient
from .constants import (
    COURT_MAX_AGE_SECONDS,
    COURT_SYNC_INTERVAL_SECONDS,
    LIVE_FEED_BASE_URL,
    PERSIST_DEBOUNCE_SECONDS,
    POLL_BACKOFF_MAX_SECONDS,
    RECENT_WINDOW_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
    STALE_AFTER_MINUTES,
)
from .displays import DisplayRegistry
from .extensions import init_extensions
from .manual import ManualScoringSession
from .providers import SourceFactory
from .storage import load_live_data_state, save_live_data_state, set_fallback_app
from .store import LiveDataStore
from .sync import CourtSyncCoordinator
from .utils import as_bool, as_float
from .views import bp as views_bp

BASE_DIR = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    level_name = os.environ.get("LOG_LEVEL", "INFO")
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(level)


def _apply_default_config(app: Flask) -> None:
    env = os.environ
    app.config.setdefault(
        "SQLALCHEMY_DATABASE_URI",
        env.get("DATABASE_URL", "sqlite:///live_data.db"),
    )
    app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)
    app.config.setdefault("LIVE_FEED_BASE_URL", env.get("LIVE_FEED_BASE_URL", LIVE_FEED_BASE_URL))
    app.config.setdefault(
        "LIVE_FEED_TIMEOUT_SECONDS",
        as_float(env.get("LIVE_FEED_TIMEOUT_SECONDS"), REQUEST_TIMEOUT_SECONDS),
    )
    app.config.setdefault(
        "COURT_SYNC_INTERVAL_SECONDS",
        as_float(env.get("COURT_SYNC_INTERVAL_SECONDS"), COURT_SYNC_INTERVAL_SECONDS),
    )
    app.config.setdefault("LIVE_DATA_AUTOSTART", as_bool(env.get("LIVE_DATA_AUTOSTART"), True))
    app.config.setdefault(
        "COURT_MAX_AGE_SECONDS",
        as_float(env.get("COURT_MAX_AGE_SECONDS"), COURT_MAX_AGE_SECONDS),
    )
    app.config.setdefault(
        "RECENT_WINDOW_SECONDS",
        as_float(env.get("RECENT_WINDOW_SECONDS"), RECENT_WINDOW_SECONDS),
    )
    app.config.setdefault(
        "PERSIST_DEBOUNCE_SECONDS",
        as_float(env.get("PERSIST_DEBOUNCE_SECONDS"), PERSIST_DEBOUNCE_SECONDS),
    )
    app.config.setdefault(
        "POLL_BACKOFF_MAX_SECONDS",
        as_float(env.get("POLL_BACKOFF_MAX_SECONDS"), POLL_BACKOFF_MAX_SECONDS),
    )
    app.config.setdefault(
        "STALE_AFTER_MINUTES",
        as_float(env.get("STALE_AFTER_MINUTES"), STALE_AFTER_MINUTES),
    )


def create_app(
    config: Optional[Mapping[str, Any]] = None,
    *,
    session: Optional[requests.Session] = None,
) -> Flask:
    load_dotenv()
    load_dotenv(BASE_DIR / ".env", override=False)
    configure_logging()

    app = Flask(__name__)
    if config:
        app.config.update(config)
    _apply_default_config(app)

    init_extensions(app)
    set_fallback_app(app)

    client = LiveFeedClient(
        app.config["LIVE_FEED_BASE_URL"],
        session=session,
        timeout=app.config["LIVE_FEED_TIMEOUT_SECONDS"],
    )
    manual_session = ManualScoringSession()
    store = LiveDataStore(
        SourceFactory(client, manual_session),
        saver=save_live_data_state,
        loader=load_live_data_state,
        debounce_seconds=app.config["PERSIST_DEBOUNCE_SECONDS"],
        backoff_max=app.config["POLL_BACKOFF_MAX_SECONDS"],
    )
    manual_session.subscribe(store.refresh_manual_connections)

    displays = DisplayRegistry()
    coordinator = CourtSyncCoordinator(
        store.cache,
        client,
        displays.active_instances,
        interval=app.config["COURT_SYNC_INTERVAL_SECONDS"],
        recent_window_seconds=app.config["RECENT_WINDOW_SECONDS"],
        max_age_seconds=app.config["COURT_MAX_AGE_SECONDS"],
    )

    app.extensions["live_data"] = store
    app.extensions["court_sync"] = coordinator
    app.extensions["displays"] = displays
    app.extensions["manual_scoring"] = manual_session
    app.extensions["live_feed_client"] = client

    app.register_blueprint(views_bp)

    if app.config["LIVE_DATA_AUTOSTART"]:
        store.load()
        store.persistence.start()
        coordinator.start()

        def _teardown() -> None:
            coordinator.stop()
            store.shutdown()

        atexit.register(_teardown)

    return app


__all__ = ["BASE_DIR", "configure_logging", "create_app"]
