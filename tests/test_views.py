import pytest

from conftest import DummyResponse


def wait_idle(store, connection_id):
    poller = store.scheduler.get(connection_id)
    assert poller._in_flight.acquire(timeout=5)
    poller._in_flight.release()


def create_connection(client, auth_headers, **overrides):
    payload = {"name": "Symulacja", "provider": "simulated", "poll_interval": 60}
    payload.update(overrides)
    response = client.post("/api/connections", json=payload, headers=auth_headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def test_connection_mutations_require_auth(client):
    response = client.post("/api/connections", json={"name": "x", "provider": "simulated"})
    assert response.status_code == 401
    assert "Basic" in response.headers["WWW-Authenticate"]


def test_connection_mutations_reject_wrong_credentials(client, auth_headers):
    response = client.post(
        "/api/connections",
        json={"name": "x", "provider": "simulated"},
        headers={"Authorization": "Basic d3Jvbmc6Y3JlZHM="},
    )
    assert response.status_code == 401


def test_create_and_list_connections_hides_api_key(client, auth_headers):
    created = create_connection(
        client,
        auth_headers,
        name="API",
        provider="polled_api",
        apiUrl="https://scores.test/1",
        apiKey="top-secret",
    )

    assert created["provider"] == "polled_api"
    assert created["has_api_key"] is True
    assert "api_key" not in created
    assert created["is_active"] is False

    listed = client.get("/api/connections").get_json()
    assert [item["id"] for item in listed] == [created["id"]]
    assert "top-secret" not in client.get("/api/connections").get_data(as_text=True)


def test_create_connection_validation_errors(client, auth_headers):
    response = client.post(
        "/api/connections",
        json={"name": "", "provider": "polled_api", "poll_interval": -1},
        headers=auth_headers,
    )

    assert response.status_code == 400
    errors = response.get_json()["errors"]
    assert set(errors) == {"name", "api_url", "poll_interval"}


@pytest.mark.parametrize("interval", ["nan", "NaN", "inf", "-inf", 0])
def test_create_connection_rejects_non_finite_poll_interval(client, auth_headers, store, interval):
    response = client.post(
        "/api/connections",
        json={"name": "Symulacja", "provider": "simulated", "poll_interval": interval},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert set(response.get_json()["errors"]) == {"poll_interval"}
    assert store.list_connections() == []


def test_update_rejects_non_finite_intervals(client, auth_headers):
    created = create_connection(client, auth_headers)
    response = client.put(
        f"/api/connections/{created['id']}",
        json={"pollInterval": "nan"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert client.get(f"/api/connections/{created['id']}").get_json()["poll_interval"] == 60.0

    response = client.post(
        "/api/bindings",
        json={
            "component_id": "c1",
            "connection_id": created["id"],
            "data_path": "score",
            "update_interval": "inf",
        },
    )
    assert response.status_code == 400
    assert set(response.get_json()["errors"]) == {"update_interval"}


def test_update_and_delete_connection(client, auth_headers, store):
    created = create_connection(client, auth_headers)

    response = client.put(
        f"/api/connections/{created['id']}",
        json={"name": "Nowa nazwa", "pollInterval": 3},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.get_json()["name"] == "Nowa nazwa"
    assert response.get_json()["poll_interval"] == 3.0

    response = client.put(
        f"/api/connections/{created['id']}",
        json={"provider": "streamed_feed"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert "api_url" in response.get_json()["errors"]

    assert client.delete(f"/api/connections/{created['id']}", headers=auth_headers).status_code == 204
    assert client.get(f"/api/connections/{created['id']}").status_code == 404
    assert store.list_connections() == []


@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/api/connections/missing"),
        ("post", "/api/connections/missing/activate"),
        ("post", "/api/connections/missing/deactivate"),
        ("post", "/api/connections/missing/test"),
        ("get", "/api/connections/missing/data"),
    ],
)
def test_unknown_connection_returns_404(client, method, path):
    response = getattr(client, method)(path)
    assert response.status_code == 404
    assert "missing" in response.get_json()["error"]


def test_unknown_connection_mutations_return_404(client, auth_headers):
    assert client.put("/api/connections/missing", json={}, headers=auth_headers).status_code == 404
    assert client.delete("/api/connections/missing", headers=auth_headers).status_code == 404


def test_activate_polls_and_exposes_data(client, auth_headers, store):
    created = create_connection(client, auth_headers)

    response = client.post(f"/api/connections/{created['id']}/activate")
    assert response.status_code == 200
    assert response.get_json()["is_active"] is True
    wait_idle(store, created["id"])

    data = client.get(f"/api/connections/{created['id']}/data").get_json()
    assert data["is_active"] is True
    assert data["data"]["matchId"] == "simulated_match_001"
    assert data["last_updated"] is not None

    response = client.post(f"/api/connections/{created['id']}/deactivate")
    assert response.get_json()["is_active"] is False
    assert store.scheduler.polling_ids() == []


def test_test_endpoint_checks_remote_sources(client, auth_headers, dummy_session):
    dummy_session.responses["https://scores.test/ok"] = DummyResponse({"status": "ok"})
    ok = create_connection(
        client, auth_headers, provider="polled_api", api_url="https://scores.test/ok"
    )
    down = create_connection(
        client, auth_headers, provider="polled_api", api_url="https://scores.test/down"
    )
    simulated = create_connection(client, auth_headers)

    assert client.post(f"/api/connections/{ok['id']}/test").get_json() == {"ok": True}
    assert client.post(f"/api/connections/{down['id']}/test").get_json() == {"ok": False}
    assert client.post(f"/api/connections/{simulated['id']}/test").get_json() == {"ok": True}


def test_bindings_crud_and_value_resolution(client, auth_headers, store):
    created = create_connection(client, auth_headers)
    connection_id = created["id"]

    response = client.post(
        "/api/bindings",
        json={"componentId": "p1", "connectionId": connection_id, "dataPath": "player1.name"},
    )
    assert response.status_code == 201
    assert response.get_json()["data_path"] == "player1.name"

    value = client.get("/api/bindings/p1/value").get_json()
    assert value == {"component_id": "p1", "bound": True, "value": None}

    client.post(f"/api/connections/{connection_id}/activate")
    wait_idle(store, connection_id)
    assert client.get("/api/bindings/p1/value").get_json()["value"] == "Novak Djokovic"

    response = client.put("/api/bindings/p1", json={"data_path": "player2.country"})
    assert response.status_code == 200
    assert client.get("/api/bindings/p1/value").get_json()["value"] == "ESP"

    listed = client.get(f"/api/bindings?connection_id={connection_id}").get_json()
    assert [binding["component_id"] for binding in listed] == ["p1"]

    assert client.delete("/api/bindings/p1").status_code == 204
    assert client.get("/api/bindings/p1").status_code == 404
    assert client.get("/api/bindings/p1/value").get_json() == {
        "component_id": "p1",
        "bound": False,
        "value": None,
    }


def test_binding_validation(client, auth_headers):
    response = client.post("/api/bindings", json={"component_id": "x"})
    assert response.status_code == 400
    assert set(response.get_json()["errors"]) == {"connection_id", "data_path"}

    response = client.post(
        "/api/bindings",
        json={"component_id": "x", "connection_id": "missing", "data_path": "a"},
    )
    assert response.status_code == 400

    assert client.put("/api/bindings/unknown", json={"data_path": "a"}).status_code == 404
    assert client.delete("/api/bindings/unknown").status_code == 404


def test_deleting_connection_cascades_bindings_via_api(client, auth_headers):
    created = create_connection(client, auth_headers)
    client.post(
        "/api/bindings",
        json={"component_id": "c1", "connection_id": created["id"], "data_path": "score"},
    )

    client.delete(f"/api/connections/{created['id']}", headers=auth_headers)

    assert client.get("/api/bindings").get_json() == []


def test_sync_trigger_scopes_fetch_to_displayed_courts(client, dummy_session):
    dummy_session.responses["http://feed.test/courts"] = DummyResponse(
        {"courts": {"Court 1": {"matchId": "c1"}, "Court 2": {"matchId": "c2"}}}
    )

    response = client.post("/api/displays", json={"displayId": "overlay-1", "courtFilter": "Court 1"})
    assert response.status_code == 201

    result = client.post("/api/sync/trigger").get_json()
    assert result["ok"] is True
    assert result["used_fallback"] is False
    assert result["working_set"] == ["Court 1"]

    assert client.get("/api/courts").get_json() == {"courts": ["Court 1"]}
    court = client.get("/api/courts/Court%201").get_json()
    assert court["data"] == {"matchId": "c1"}
    assert client.get("/api/courts/Court%202").status_code == 404

    request = dummy_session.requests[-1]
    assert request["params"] == [("court", "Court 1")]


def test_sync_trigger_without_scoped_displays_uses_recent_fetch(client, dummy_session):
    dummy_session.responses["http://feed.test/courts/recent"] = DummyResponse(
        {"Court 4": {"matchId": "c4"}}
    )

    result = client.post("/api/sync/trigger").get_json()

    assert result["used_fallback"] is True
    assert result["merged"] == ["Court 4"]
    assert dummy_session.requests[-1]["url"] == "http://feed.test/courts/recent"


def test_sync_status_reports_errors(client):
    result = client.post("/api/sync/trigger").get_json()
    assert result["ok"] is False

    status = client.get("/api/sync/status").get_json()
    assert status["error_count"] == 1
    assert status["is_running"] is False
    assert status["is_data_stale"] is True


def test_sync_start_and_stop(client):
    assert client.post("/api/sync/start", json={"interval_seconds": 0}).status_code == 400
    assert client.post("/api/sync/start", json={"interval_seconds": "nan"}).status_code == 400

    started = client.post("/api/sync/start", json={"interval_seconds": 30}).get_json()
    assert started == {"started": True, "is_running": True}
    assert client.get("/api/sync/status").get_json()["interval_seconds"] == 30.0

    stopped = client.post("/api/sync/stop").get_json()
    assert stopped == {"stopped": True, "is_running": False}


def test_stale_endpoint(client, auth_headers, store):
    assert client.get("/api/stale").get_json()["is_stale"] is True

    created = create_connection(client, auth_headers)
    client.post(f"/api/connections/{created['id']}/activate")
    wait_idle(store, created["id"])

    response = client.get("/api/stale?max_age_minutes=5").get_json()
    assert response == {"max_age_minutes": 5.0, "is_stale": False}


def test_display_registry_endpoints(client):
    assert client.post("/api/displays", json={}).status_code == 400

    client.post("/api/displays", json={"display_id": "d1", "court_filter": "Court 1"})
    response = client.put("/api/displays/d1", json={"isActive": False})
    assert response.get_json() == {"display_id": "d1", "is_active": False, "court_filter": "Court 1"}

    assert client.put("/api/displays/missing", json={}).status_code == 404
    assert client.delete("/api/displays/d1").status_code == 204
    assert client.get("/api/displays").get_json() == []


def test_manual_scoring_feeds_manual_connection(client, auth_headers, store):
    response = client.post("/api/connections/manual", json={"name": "Kort 2"}, headers=auth_headers)
    assert response.status_code == 201
    connection_id = response.get_json()["id"]
    assert response.get_json()["provider"] == "manual_console"

    client.post(f"/api/connections/{connection_id}/activate")
    wait_idle(store, connection_id)
    data = client.get(f"/api/connections/{connection_id}/data").get_json()["data"]
    assert data["matchId"] == "manual_no_match"

    response = client.post("/api/manual/match", json={"player1": "Świątek", "player2": "Gauff"})
    assert response.status_code == 201

    client.post("/api/manual/point", json={"player": 1})
    wait_idle(store, connection_id)
    store.refresh_connection(connection_id)
    data = client.get(f"/api/connections/{connection_id}/data").get_json()["data"]
    assert data["player1"]["name"] == "Świątek"
    assert data["score"]["player1Points"] == "15"

    assert client.post("/api/manual/undo").get_json()["match"]["score"]["player1Points"] == "0"
    assert client.post("/api/manual/serve").get_json()["match"]["servingPlayer"] == 2
    assert client.delete("/api/manual/match").status_code == 204
    assert client.get("/api/manual/match").get_json() == {"match": None}


def test_manual_scoring_validation(client):
    assert client.post("/api/manual/point", json={"player": 1}).status_code == 404
    assert client.post("/api/manual/match", json={"player1": "A"}).status_code == 400
    assert (
        client.post("/api/manual/match", json={"player1": "A", "player2": "B", "best_of": 4}).status_code
        == 400
    )
    client.post("/api/manual/match", json={"player1": "A", "player2": "B"})
    assert client.post("/api/manual/point", json={"player": 3}).status_code == 400
