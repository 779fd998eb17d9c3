from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from wyniki_live.entities import ComponentBinding, Connection, LiveDataState, Provider
from wyniki_live.errors import PersistenceFailure
from wyniki_live.extensions import db
from wyniki_live.models import BindingRecord, ConnectionRecord
from wyniki_live.storage import load_live_data_state, save_live_data_state


def sample_state() -> LiveDataState:
    created = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    connections = [
        Connection(
            id="conn-api",
            name="Wyniki API",
            provider=Provider.POLLED_API,
            api_url="https://scores.test/match/1",
            api_key="secret",
            poll_interval=2.5,
            is_active=True,
            created_at=created,
            updated_at=created,
        ),
        Connection(
            id="conn-feed",
            name="Feed",
            provider=Provider.STREAMED_FEED,
            api_url="https://feed.test/stream",
            court_filter="Court 3",
            poll_interval=5.0,
            created_at=created,
        ),
    ]
    bindings = [
        ComponentBinding("p1-name", "conn-api", "player1.name"),
        ComponentBinding("sets", "conn-feed", "score.player1Sets", update_interval=1.0),
    ]
    return LiveDataState(connections=connections, bindings=bindings)


def test_save_then_load_preserves_connections_and_bindings(app):
    with app.app_context():
        save_live_data_state(sample_state())
        loaded = load_live_data_state()

    by_id = {connection.id: connection for connection in loaded.connections}
    assert set(by_id) == {"conn-api", "conn-feed"}
    assert by_id["conn-api"].provider is Provider.POLLED_API
    assert by_id["conn-api"].poll_interval == 2.5
    assert by_id["conn-api"].api_key == "secret"
    assert by_id["conn-api"].created_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert by_id["conn-feed"].provider is Provider.STREAMED_FEED
    assert by_id["conn-feed"].court_filter == "Court 3"
    assert {(b.component_id, b.connection_id, b.data_path) for b in loaded.bindings} == {
        ("p1-name", "conn-api", "player1.name"),
        ("sets", "conn-feed", "score.player1Sets"),
    }


def test_loaded_connections_are_never_active(app):
    with app.app_context():
        save_live_data_state(sample_state())
        loaded = load_live_data_state()

    assert all(not connection.is_active for connection in loaded.connections)


def test_save_replaces_previous_rows(app):
    state = sample_state()
    with app.app_context():
        save_live_data_state(state)
        state.connections = state.connections[:1]
        state.bindings = state.bindings[:1]
        save_live_data_state(state)

        assert ConnectionRecord.query.count() == 1
        assert BindingRecord.query.count() == 1


def test_load_skips_unknown_providers_and_orphaned_bindings(app):
    with app.app_context():
        db.session.add(
            ConnectionRecord(id="legacy", name="Legacy", provider="telnet", poll_interval=5.0)
        )
        db.session.add(
            ConnectionRecord(id="sim", name="Sim", provider="mock", poll_interval=1.0)
        )
        db.session.add(BindingRecord(component_id="a", connection_id="legacy", data_path="x"))
        db.session.add(BindingRecord(component_id="b", connection_id="sim", data_path="y"))
        db.session.commit()

        loaded = load_live_data_state()

    assert [connection.id for connection in loaded.connections] == ["sim"]
    assert loaded.connections[0].provider is Provider.SIMULATED
    assert [binding.component_id for binding in loaded.bindings] == ["b"]


def test_database_errors_become_persistence_failures(app, monkeypatch):
    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    with app.app_context():
        monkeypatch.setattr(db.session, "commit", broken_commit)
        with pytest.raises(PersistenceFailure):
            save_live_data_state(sample_state())


def test_store_round_trip_through_database(app, store):
    connection_id = store.add_connection(
        {"name": "Kort 1", "provider": "polled_api", "api_url": "https://scores.test/1"}
    )
    store.add_binding("score", connection_id, "score.player1Games")
    assert store.save_now() is True

    store.remove_connection(connection_id)
    assert store.load() is True

    connection = store.get_connection(connection_id)
    assert connection.name == "Kort 1"
    assert connection.poll_interval == 5.0
    assert store.get_binding("score").data_path == "score.player1Games"
