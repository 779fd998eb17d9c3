import base64
import copy
import threading

import pytest

from wyniki_live import create_app, db
from wyniki_live.errors import FetchFailure
from wyniki_live.providers import MatchSource


class DummyResponse:
    def __init__(self, payload, status_code: int = 200, json_error: Exception | None = None):
        self._payload = payload
        self.status_code = status_code
        self._json_error = json_error
        self.text = "" if payload is None else str(payload)

    def json(self):
        if self._json_error:
            raise self._json_error
        return copy.deepcopy(self._payload)


class DummySession:
    """Stand-in for ``requests.Session`` answering GET requests by URL."""

    def __init__(self, responses: dict[str, DummyResponse] | None = None):
        self.responses: dict[str, DummyResponse | Exception] = dict(responses or {})
        self.requests: list[dict[str, object]] = []

    def get(self, url: str, params=None, headers=None, timeout=None):
        self.requests.append(
            {
                "method": "GET",
                "url": url,
                "params": copy.deepcopy(params),
                "headers": dict(headers or {}),
                "timeout": timeout,
            }
        )
        response = self.responses.get(url)
        if response is None:
            return DummyResponse({"error": "not found"}, status_code=404)
        if isinstance(response, Exception):
            raise response
        return response


class ScriptedSource(MatchSource):
    """Source returning queued payloads; an exception in the queue is raised."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0
        self.called = threading.Event()

    def fetch(self):
        self.calls += 1
        self.called.set()
        if not self.results:
            raise FetchFailure("no more results")
        result = self.results[0] if len(self.results) == 1 else self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class StaticSourceFactory:
    """Hands out pre-built sources per connection id and records each build."""

    def __init__(self):
        self.sources: dict[str, MatchSource] = {}
        self.default: MatchSource | None = None
        self.builds: list[str] = []

    def build(self, connection):
        self.builds.append(connection.id)
        source = self.sources.get(connection.id, self.default)
        if source is None:
            source = ScriptedSource({"matchId": connection.id})
        return source


class ManualClock:
    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.value = start_ms

    def __call__(self) -> int:
        return self.value

    def advance(self, *, seconds: float = 0, minutes: float = 0) -> None:
        self.value += int(seconds * 1000) + int(minutes * 60_000)


@pytest.fixture
def dummy_session():
    return DummySession()


@pytest.fixture
def app(tmp_path, dummy_session):
    database_path = tmp_path / "live_data.sqlite"
    application = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret-key",
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{database_path}",
            "LIVE_DATA_AUTOSTART": False,
            "LIVE_FEED_BASE_URL": "http://feed.test",
            "PERSIST_DEBOUNCE_SECONDS": 0.0,
        },
        session=dummy_session,
    )

    yield application

    application.extensions["court_sync"].stop(wait=True)
    application.extensions["live_data"].scheduler.stop_all()
    with application.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def store(app):
    return app.extensions["live_data"]


@pytest.fixture
def auth_headers(monkeypatch):
    username = "test-user"
    password = "test-pass"
    monkeypatch.setenv("CONFIG_AUTH_USERNAME", username)
    monkeypatch.setenv("CONFIG_AUTH_PASSWORD", password)
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


@pytest.fixture
def manual_clock():
    return ManualClock()
