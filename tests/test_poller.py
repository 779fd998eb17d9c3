import threading
import time

import pytest

from conftest import ScriptedSource
from wyniki_live.errors import FetchFailure
from wyniki_live.poller import ConnectionPoller, PollingScheduler
from wyniki_live.providers import MatchSource


class BlockingSource(MatchSource):
    def __init__(self, payload):
        self.payload = payload
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def fetch(self):
        self.calls += 1
        self.entered.set()
        assert self.release.wait(5)
        return self.payload


class Recorder:
    def __init__(self, accept: bool = True):
        self.accept = accept
        self.successes: list[tuple[str, dict]] = []
        self.failures: list[tuple[str, str]] = []
        self.committed = threading.Event()

    def on_success(self, connection_id, payload):
        self.successes.append((connection_id, payload))
        self.committed.set()
        return self.accept

    def on_failure(self, connection_id, error):
        self.failures.append((connection_id, error))
        return True


def wait_idle(poller):
    # the background tick holds the in-flight lock until it has committed
    assert poller._in_flight.acquire(timeout=5)
    poller._in_flight.release()


def make_poller(source, recorder, interval=60.0, **kwargs):
    return ConnectionPoller(
        "conn",
        source,
        interval,
        on_success=recorder.on_success,
        on_failure=recorder.on_failure,
        **kwargs,
    )


def test_start_runs_first_tick_immediately():
    source = ScriptedSource({"v": 1})
    recorder = Recorder()
    poller = make_poller(source, recorder)

    assert poller.start() is True
    assert recorder.committed.wait(5)
    assert poller.start() is False
    wait_idle(poller)

    poller.stop()
    poller.join(5)
    assert source.calls == 1
    assert recorder.successes == [("conn", {"v": 1})]


def test_stopped_poller_cannot_restart():
    poller = make_poller(ScriptedSource({}), Recorder())
    poller.stop()
    poller.stop()
    with pytest.raises(RuntimeError):
        poller.start()


@pytest.mark.parametrize("interval", [0, -1, float("nan"), float("inf")])
def test_interval_must_be_positive_and_finite(interval):
    with pytest.raises(ValueError):
        make_poller(ScriptedSource({}), Recorder(), interval=interval)


def test_failure_is_reported_and_counted():
    source = ScriptedSource(FetchFailure("timeout"))
    recorder = Recorder()
    poller = make_poller(source, recorder)

    assert poller.tick() is True
    assert poller.tick() is True

    assert recorder.failures == [("conn", "timeout"), ("conn", "timeout")]
    assert recorder.successes == []
    assert poller.consecutive_failures == 2


def test_unexpected_exception_is_reported_as_failure():
    source = ScriptedSource(KeyError("score"))
    recorder = Recorder()
    poller = make_poller(source, recorder)

    poller.tick()

    assert recorder.failures[0][1].startswith("KeyError")


def test_success_resets_failure_counter():
    source = ScriptedSource(FetchFailure("boom"), {"v": 2})
    recorder = Recorder()
    poller = make_poller(source, recorder)

    poller.tick()
    assert poller.consecutive_failures == 1
    poller.tick()
    assert poller.consecutive_failures == 0


def test_overlapping_tick_is_skipped():
    source = BlockingSource({"v": 1})
    recorder = Recorder()
    poller = make_poller(source, recorder)

    worker = threading.Thread(target=poller.tick)
    worker.start()
    assert source.entered.wait(5)

    assert poller.tick() is False

    source.release.set()
    worker.join(5)
    assert source.calls == 1
    assert len(recorder.successes) == 1


def test_result_fetched_after_stop_is_not_committed():
    source = BlockingSource({"v": 1})
    recorder = Recorder()
    poller = make_poller(source, recorder)

    poller.start()
    assert source.entered.wait(5)
    poller.stop()
    source.release.set()
    poller.join(5)

    assert recorder.successes == []


def test_backoff_disabled_keeps_fixed_cadence():
    source = ScriptedSource(FetchFailure("down"))
    poller = make_poller(source, Recorder(), interval=2.0)

    for _ in range(3):
        poller.tick()

    assert poller.next_delay() == 2.0


def test_backoff_grows_and_is_capped():
    source = ScriptedSource(FetchFailure("down"))
    poller = make_poller(source, Recorder(), interval=2.0, backoff_max=10.0)

    assert poller.next_delay() == 2.0
    poller.tick()
    assert poller.next_delay() == 4.0
    poller.tick()
    assert poller.next_delay() == 8.0
    poller.tick()
    assert poller.next_delay() == 10.0


def test_scheduler_keeps_single_poller_per_connection():
    recorder = Recorder()
    scheduler = PollingScheduler(on_success=recorder.on_success, on_failure=recorder.on_failure)
    source = ScriptedSource({"v": 1})

    assert scheduler.start("conn", source, 60.0) is True
    assert recorder.committed.wait(5)
    wait_idle(scheduler.get("conn"))
    assert scheduler.start("conn", ScriptedSource({"v": 2}), 60.0) is False
    assert scheduler.polling_ids() == ["conn"]

    for _ in range(3):
        assert scheduler.tick("conn") is True

    assert source.calls == 4
    assert scheduler.stop("conn") is True
    assert scheduler.stop("conn") is False
    assert scheduler.tick("conn") is False
    assert scheduler.is_polling("conn") is False


def test_scheduler_stop_all_returns_stopped_ids():
    recorder = Recorder()
    scheduler = PollingScheduler(on_success=recorder.on_success, on_failure=recorder.on_failure)
    scheduler.start("a", ScriptedSource({}), 60.0)
    scheduler.start("b", ScriptedSource({}), 60.0)

    assert sorted(scheduler.stop_all()) == ["a", "b"]
    assert scheduler.polling_ids() == []


def test_concurrent_starts_leave_exactly_one_poller(monkeypatch):
    recorder = Recorder()
    scheduler = PollingScheduler(on_success=recorder.on_success, on_failure=recorder.on_failure)
    original_start = ConnectionPoller.start

    def slow_start(self):
        time.sleep(0.05)
        return original_start(self)

    monkeypatch.setattr(ConnectionPoller, "start", slow_start)

    sources = [ScriptedSource({"v": index}) for index in range(4)]
    barrier = threading.Barrier(len(sources))
    results = []

    def activate(source):
        barrier.wait()
        results.append(scheduler.start("conn", source, 60.0))

    threads = [threading.Thread(target=activate, args=(source,)) for source in sources]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(5)

    assert sorted(results) == [False, False, False, True]
    winner = scheduler.get("conn")
    assert winner.source.called.wait(5)
    assert [source for source in sources if source.calls] == [winner.source]

    scheduler.stop("conn")
    winner.join(5)
    assert winner.is_running is False
    assert scheduler.polling_ids() == []
