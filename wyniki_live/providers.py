"""Match data sources, one implementation per connection provider."""

from __future__ import annotations

import copy
import time
from typing import Callable, Dict, Optional

from .backend import LiveFeedClient
from .constants import MANUAL_NO_MATCH_PAYLOAD, SIMULATED_SET_SECONDS
from .entities import Connection, MatchState, Provider
from .errors import FetchFailure
from .manual import ManualScoringSession

POINT_SEQUENCE = ("0", "15", "30", "40")

# zwycięzcy kolejnych setów w symulowanym meczu
SIMULATED_SET_WINNERS = (1, 2, 1)


class MatchSource:
    """Common fetch contract shared by every provider."""

    provider: Provider

    def fetch(self) -> MatchState:
        raise NotImplementedError


class SimulatedSource(MatchSource):
    """Synthetic best-of-three match driven purely by elapsed time."""

    provider = Provider.SIMULATED

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        set_seconds: float = SIMULATED_SET_SECONDS,
    ) -> None:
        self._clock = clock
        self._set_seconds = set_seconds
        self._started_at: Optional[float] = None

    def fetch(self) -> MatchState:
        now = self._clock()
        if self._started_at is None:
            self._started_at = now
        return simulated_match_state(now - self._started_at, set_seconds=self._set_seconds)


def simulated_match_state(elapsed: float, *, set_seconds: float = SIMULATED_SET_SECONDS) -> MatchState:
    elapsed = max(0.0, elapsed)
    set_index = min(int(elapsed // set_seconds), len(SIMULATED_SET_WINNERS))
    sets_won = [0, 0]
    sets: Dict[str, Dict[str, int]] = {}

    for number, winner in enumerate(SIMULATED_SET_WINNERS[:set_index], start=1):
        sets[f"set{number}"] = {
            "player1": 6 if winner == 1 else 4,
            "player2": 6 if winner == 2 else 4,
        }
        sets_won[winner - 1] += 1

    completed = max(sets_won) >= 2
    if completed:
        current_set = set_index
        games = (0, 0)
        points = ("0", "0")
    else:
        current_set = set_index + 1
        in_set = elapsed - set_index * set_seconds
        # co sekundę jeden punkt, cztery punkty na gem
        rallies = int(in_set)
        game_count = min(rallies // 4, 10)
        games = ((game_count + 1) // 2, game_count // 2)
        points = (
            POINT_SEQUENCE[rallies % 4],
            POINT_SEQUENCE[(rallies // 2) % 4],
        )
        sets[f"set{current_set}"] = {"player1": games[0], "player2": games[1]}

    return {
        "matchId": "simulated_match_001",
        "player1": {"name": "Novak Djokovic", "country": "SRB", "seed": 1},
        "player2": {"name": "Rafael Nadal", "country": "ESP", "seed": 2},
        "score": {
            "player1Sets": sets_won[0],
            "player2Sets": sets_won[1],
            "player1Games": games[0],
            "player2Games": games[1],
            "player1Points": points[0],
            "player2Points": points[1],
        },
        "sets": sets,
        "matchStatus": "completed" if completed else "in_progress",
        "servingPlayer": 1 if (sum(games) % 2 == 0) else 2,
        "currentSet": current_set,
        "isTiebreak": False,
        "tournament": "Simulated Open",
        "round": "Final",
    }


class ManualConsoleSource(MatchSource):
    provider = Provider.MANUAL_CONSOLE

    def __init__(self, session: ManualScoringSession) -> None:
        self._session = session

    def fetch(self) -> MatchState:
        state = self._session.current_state()
        if state is None:
            return copy.deepcopy(MANUAL_NO_MATCH_PAYLOAD)
        return state


class PolledApiSource(MatchSource):
    provider = Provider.POLLED_API

    def __init__(self, client: LiveFeedClient, endpoint: str, credential: str = "") -> None:
        self._client = client
        self._endpoint = endpoint
        self._credential = credential

    def fetch(self) -> MatchState:
        return self._client.fetch_one(self._endpoint, self._credential)


class StreamedFeedSource(MatchSource):
    """Multi-court feed; narrowed to one court when ``court_filter`` is set."""

    provider = Provider.STREAMED_FEED

    def __init__(
        self,
        client: LiveFeedClient,
        endpoint: str,
        credential: str = "",
        court_filter: Optional[str] = None,
    ) -> None:
        self._client = client
        self._endpoint = endpoint
        self._credential = credential
        self._court_filter = (court_filter or "").strip() or None

    def fetch(self) -> MatchState:
        courts = self._client.fetch_feed(self._endpoint, self._credential)
        if self._court_filter is None:
            return courts
        state = courts.get(self._court_filter)
        if state is None:
            raise FetchFailure(f"Brak danych dla kortu {self._court_filter}")
        return state


class SourceFactory:
    """Builds the source matching a connection's provider."""

    def __init__(
        self,
        client: LiveFeedClient,
        manual_session: ManualScoringSession,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.manual_session = manual_session
        self._clock = clock

    def build(self, connection: Connection) -> MatchSource:
        provider = connection.provider
        if provider is Provider.SIMULATED:
            return SimulatedSource(clock=self._clock)
        if provider is Provider.MANUAL_CONSOLE:
            return ManualConsoleSource(self.manual_session)
        if provider is Provider.POLLED_API:
            return PolledApiSource(self.client, connection.api_url, connection.api_key)
        if provider is Provider.STREAMED_FEED:
            return StreamedFeedSource(
                self.client,
                connection.api_url,
                connection.api_key,
                connection.court_filter,
            )
        raise ValueError(f"Unsupported provider: {provider!r}")


__all__ = [
    "ManualConsoleSource",
    "MatchSource",
    "PolledApiSource",
    "SimulatedSource",
    "SourceFactory",
    "StreamedFeedSource",
    "simulated_match_state",
]
