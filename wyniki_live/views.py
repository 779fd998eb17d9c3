"""JSON API for connections, bindings, courts, displays and manual scoring."""

from __future__ import annotations

import logging
import math

from flask import Blueprint, current_app, jsonify, request

from .auth import requires_config_auth
from .backend import LiveFeedClient
from .displays import DisplayRegistry
from .entities import Provider
from .errors import ConnectionNotFound
from .manual import ManualScoringSession
from .store import LiveDataStore
from .sync import CourtSyncCoordinator
from .utils import as_float, as_int
from .validation import (
    validate_binding_data,
    validate_connection_data,
    validate_display_data,
)

logger = logging.getLogger(__name__)

bp = Blueprint("live", __name__, url_prefix="/api")


def _store() -> LiveDataStore:
    return current_app.extensions["live_data"]


def _coordinator() -> CourtSyncCoordinator:
    return current_app.extensions["court_sync"]


def _displays() -> DisplayRegistry:
    return current_app.extensions["displays"]


def _manual() -> ManualScoringSession:
    return current_app.extensions["manual_scoring"]


def _client() -> LiveFeedClient:
    return current_app.extensions["live_feed_client"]


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _not_found(message: str):
    return jsonify({"error": message}), 404


@bp.app_errorhandler(ConnectionNotFound)
def connection_not_found(exc: ConnectionNotFound):
    return _not_found(str(exc))


# --- connections -------------------------------------------------------------


@bp.route("/connections", methods=["GET"])
def connections_list():
    return jsonify([connection.to_dict() for connection in _store().list_connections()])


@bp.route("/connections", methods=["POST"])
@requires_config_auth
def connections_create():
    payload, errors = validate_connection_data(_json_body())
    if errors:
        return jsonify({"errors": errors}), 400

    store = _store()
    connection_id = store.add_connection(payload)
    return jsonify(store.require_connection(connection_id).to_dict()), 201


@bp.route("/connections/manual", methods=["POST"])
@requires_config_auth
def connections_create_manual():
    name = str(_json_body().get("name") or "").strip() or "Manual Tennis Match"
    store = _store()
    connection_id = store.create_manual_connection(name)
    return jsonify(store.require_connection(connection_id).to_dict()), 201


@bp.route("/connections/<connection_id>", methods=["GET"])
def connection_detail(connection_id: str):
    return jsonify(_store().require_connection(connection_id).to_dict())


@bp.route("/connections/<connection_id>", methods=["PUT"])
@requires_config_auth
def connection_update(connection_id: str):
    store = _store()
    current = store.require_connection(connection_id)
    payload, errors = validate_connection_data(
        _json_body(),
        partial=True,
        current_provider=current.provider,
        current_url=current.api_url,
    )
    if errors:
        return jsonify({"errors": errors}), 400

    updated = store.update_connection(connection_id, payload)
    if updated is None:
        raise ConnectionNotFound(connection_id)
    return jsonify(updated.to_dict())


@bp.route("/connections/<connection_id>", methods=["DELETE"])
@requires_config_auth
def connection_delete(connection_id: str):
    if not _store().remove_connection(connection_id):
        raise ConnectionNotFound(connection_id)
    return ("", 204)


@bp.route("/connections/<connection_id>/activate", methods=["POST"])
def connection_activate(connection_id: str):
    connection = _store().activate_connection(connection_id)
    if connection is None:
        raise ConnectionNotFound(connection_id)
    return jsonify(connection.to_dict())


@bp.route("/connections/<connection_id>/deactivate", methods=["POST"])
def connection_deactivate(connection_id: str):
    connection = _store().deactivate_connection(connection_id)
    if connection is None:
        raise ConnectionNotFound(connection_id)
    return jsonify(connection.to_dict())


@bp.route("/connections/<connection_id>/test", methods=["POST"])
def connection_test(connection_id: str):
    connection = _store().require_connection(connection_id)
    if connection.provider not in (Provider.POLLED_API, Provider.STREAMED_FEED):
        return jsonify({"ok": True})
    ok = _client().test_connection(connection.api_url, connection.api_key)
    return jsonify({"ok": ok})


@bp.route("/connections/<connection_id>/data", methods=["GET"])
def connection_data(connection_id: str):
    store = _store()
    connection = store.require_connection(connection_id)
    return jsonify(
        {
            "connection_id": connection.id,
            "is_active": connection.is_active,
            "last_updated": connection.to_dict()["last_updated"],
            "last_error": connection.last_error,
            "data": store.get_live_data(connection_id),
        }
    )


# --- bindings ----------------------------------------------------------------


@bp.route("/bindings", methods=["GET"])
def bindings_list():
    connection_id = request.args.get("connection_id") or None
    bindings = _store().list_bindings(connection_id)
    return jsonify([binding.to_dict() for binding in bindings])


@bp.route("/bindings", methods=["POST"])
def bindings_create():
    payload, errors = validate_binding_data(_json_body())
    if errors:
        return jsonify({"errors": errors}), 400

    binding = _store().add_binding(**payload)
    if binding is None:
        return (
            jsonify({"errors": {"connection_id": "Połączenie o podanym ID nie istnieje."}}),
            400,
        )
    return jsonify(binding.to_dict()), 201


@bp.route("/bindings/<component_id>", methods=["GET"])
def binding_detail(component_id: str):
    binding = _store().get_binding(component_id)
    if binding is None:
        return _not_found(f"Brak powiązania dla komponentu {component_id}")
    return jsonify(binding.to_dict())


@bp.route("/bindings/<component_id>", methods=["PUT"])
def binding_update(component_id: str):
    store = _store()
    if store.get_binding(component_id) is None:
        return _not_found(f"Brak powiązania dla komponentu {component_id}")

    payload, errors = validate_binding_data(_json_body(), partial=True)
    if errors:
        return jsonify({"errors": errors}), 400

    binding = store.update_binding(component_id, payload)
    if binding is None:
        return (
            jsonify({"errors": {"connection_id": "Połączenie o podanym ID nie istnieje."}}),
            400,
        )
    return jsonify(binding.to_dict())


@bp.route("/bindings/<component_id>", methods=["DELETE"])
def binding_delete(component_id: str):
    if not _store().remove_binding(component_id):
        return _not_found(f"Brak powiązania dla komponentu {component_id}")
    return ("", 204)


@bp.route("/bindings/<component_id>/value", methods=["GET"])
def binding_value(component_id: str):
    store = _store()
    value = store.get_value(component_id)
    return jsonify(
        {
            "component_id": component_id,
            "bound": store.get_binding(component_id) is not None,
            "value": value,
        }
    )


# --- courts and sync -----------------------------------------------------------


@bp.route("/courts", methods=["GET"])
def courts_list():
    return jsonify({"courts": _store().get_available_courts()})


@bp.route("/courts/<path:court_name>", methods=["GET"])
def court_detail(court_name: str):
    entry = _store().get_court_data(court_name)
    if entry is None:
        return _not_found(f"Brak danych dla kortu {court_name}")
    return jsonify(entry.to_dict())


@bp.route("/sync/status", methods=["GET"])
def sync_status():
    return jsonify(_coordinator().status(current_app.config["STALE_AFTER_MINUTES"]))


@bp.route("/sync/trigger", methods=["POST"])
def sync_trigger():
    result = _coordinator().sync_once()
    return jsonify(
        {
            "ok": result.ok,
            "working_set": result.working_set,
            "used_fallback": result.used_fallback,
            "merged": result.merged,
            "removed": result.removed,
            "expired": result.expired,
            "error": result.error,
        }
    )


@bp.route("/sync/start", methods=["POST"])
def sync_start():
    interval = _json_body().get("interval_seconds")
    parsed = as_float(interval, 0.0) if interval is not None else None
    if parsed is not None and (not math.isfinite(parsed) or parsed <= 0):
        return jsonify({"errors": {"interval_seconds": "Interwał musi być większy od zera."}}), 400
    started = _coordinator().start(parsed)
    return jsonify({"started": started, "is_running": _coordinator().is_running()})


@bp.route("/sync/stop", methods=["POST"])
def sync_stop():
    stopped = _coordinator().stop()
    return jsonify({"stopped": stopped, "is_running": _coordinator().is_running()})


@bp.route("/stale", methods=["GET"])
def stale():
    minutes = as_float(
        request.args.get("max_age_minutes"),
        current_app.config["STALE_AFTER_MINUTES"],
    )
    return jsonify({"max_age_minutes": minutes, "is_stale": _store().is_stale(minutes)})


# --- displays -------------------------------------------------------------------


@bp.route("/displays", methods=["GET"])
def displays_list():
    return jsonify([display.to_dict() for display in _displays().instances()])


@bp.route("/displays", methods=["POST"])
def displays_register():
    payload, errors = validate_display_data(_json_body())
    if errors:
        return jsonify({"errors": errors}), 400
    display = _displays().register(**payload)
    return jsonify(display.to_dict()), 201


@bp.route("/displays/<display_id>", methods=["PUT"])
def display_update(display_id: str):
    body = _json_body()
    changes = {}
    if "court_filter" in body or "courtFilter" in body:
        changes["court_filter"] = body.get("court_filter", body.get("courtFilter"))
    if "is_active" in body or "isActive" in body:
        changes["is_active"] = bool(body.get("is_active", body.get("isActive")))
    display = _displays().update(display_id, **changes)
    if display is None:
        return _not_found(f"Nieznany wyświetlacz {display_id}")
    return jsonify(display.to_dict())


@bp.route("/displays/<display_id>", methods=["DELETE"])
def display_delete(display_id: str):
    if not _displays().unregister(display_id):
        return _not_found(f"Nieznany wyświetlacz {display_id}")
    return ("", 204)


# --- manual scoring ---------------------------------------------------------------


@bp.route("/manual/match", methods=["GET"])
def manual_match():
    return jsonify({"match": _manual().current_state()})


@bp.route("/manual/match", methods=["POST"])
def manual_match_start():
    body = _json_body()
    player1 = str(body.get("player1") or "").strip()
    player2 = str(body.get("player2") or "").strip()
    errors = {}
    if not player1:
        errors["player1"] = "Nazwisko pierwszego zawodnika jest wymagane."
    if not player2:
        errors["player2"] = "Nazwisko drugiego zawodnika jest wymagane."
    best_of = as_int(body.get("best_of", 3), 0)
    if best_of < 1 or best_of % 2 == 0:
        errors["best_of"] = "Liczba setów musi być dodatnia i nieparzysta."
    if errors:
        return jsonify({"errors": errors}), 400

    state = _manual().start_match(
        player1,
        player2,
        best_of=best_of,
        tournament=body.get("tournament"),
        round=body.get("round"),
    )
    return jsonify({"match": state}), 201


@bp.route("/manual/match", methods=["DELETE"])
def manual_match_end():
    _manual().end_match()
    return ("", 204)


@bp.route("/manual/point", methods=["POST"])
def manual_point():
    player = as_int(_json_body().get("player"), 0)
    if player not in (1, 2):
        return jsonify({"errors": {"player": "Zawodnik musi być równy 1 lub 2."}}), 400
    state = _manual().award_point(player)
    if state is None:
        return _not_found("Brak aktywnego meczu ręcznego")
    return jsonify({"match": state})


@bp.route("/manual/undo", methods=["POST"])
def manual_undo():
    state = _manual().undo_point()
    if state is None:
        return _not_found("Brak aktywnego meczu ręcznego")
    return jsonify({"match": state})


@bp.route("/manual/serve", methods=["POST"])
def manual_serve():
    state = _manual().switch_server()
    if state is None:
        return _not_found("Brak aktywnego meczu ręcznego")
    return jsonify({"match": state})


__all__ = ["bp"]
