"""Persistence helpers for connections and component bindings."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List

from flask import Flask, current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from .entities import ComponentBinding, Connection, LiveDataState
from .errors import PersistenceFailure
from .extensions import db
from .models import BindingRecord, ConnectionRecord

logger = logging.getLogger(__name__)

_fallback_app: Flask | None = None


def set_fallback_app(app: Flask) -> None:
    global _fallback_app
    _fallback_app = app


def _get_app() -> Flask:
    if has_app_context():
        return current_app
    if _fallback_app is None:
        raise RuntimeError("Application not initialised")
    return _fallback_app


def load_live_data_state() -> LiveDataState:
    """Read connections and bindings; connections always come back inactive."""
    app = _get_app()
    with app.app_context():
        try:
            db.create_all()
            connection_records = ConnectionRecord.query.order_by(ConnectionRecord.created_at.asc()).all()
            binding_records = BindingRecord.query.order_by(BindingRecord.id.asc()).all()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceFailure(f"Nie udało się wczytać połączeń: {exc}") from exc

        connections: List[Connection] = []
        for record in connection_records:
            connection = record.to_entity()
            if connection is None:
                logger.warning(
                    "Pominięto połączenie %s - nieznany dostawca %s", record.id, record.provider
                )
                continue
            # odpytywanie nigdy nie startuje automatycznie po wczytaniu
            connections.append(_inactive(connection))

        known_ids = {connection.id for connection in connections}
        bindings: List[ComponentBinding] = []
        for record in binding_records:
            if record.connection_id not in known_ids:
                logger.warning(
                    "Pominięto powiązanie %s - brak połączenia %s",
                    record.component_id,
                    record.connection_id,
                )
                continue
            bindings.append(record.to_entity())

        return LiveDataState(connections=connections, bindings=bindings)


def _inactive(connection: Connection) -> Connection:
    if not connection.is_active:
        return connection
    return replace(connection, is_active=False)


def save_live_data_state(state: LiveDataState) -> LiveDataState:
    app = _get_app()
    with app.app_context():
        try:
            db.create_all()
            BindingRecord.query.delete()
            ConnectionRecord.query.delete()
            for connection in state.connections:
                db.session.add(ConnectionRecord.from_entity(connection))
            for binding in state.bindings:
                db.session.add(BindingRecord.from_entity(binding))
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceFailure(f"Nie udało się zapisać połączeń: {exc}") from exc

    logger.debug(
        "Zapisano %s połączeń i %s powiązań", len(state.connections), len(state.bindings)
    )
    return state


__all__ = ["load_live_data_state", "save_live_data_state", "set_fallback_app"]
