"""Manual scoring console for matches that have no automated feed."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Tuple

from .entities import MatchState

logger = logging.getLogger(__name__)

POINT_LABELS = ("0", "15", "30", "40")
GAMES_PER_SET = 6
TIEBREAK_POINTS = 7

ChangeListener = Callable[[Optional[MatchState]], None]


@dataclass(frozen=True)
class ManualMatch:
    match_id: str
    player1: str
    player2: str
    best_of: int = 3
    tournament: Optional[str] = None
    round: Optional[str] = None
    points: Tuple[int, int] = (0, 0)
    games: Tuple[int, int] = (0, 0)
    sets_won: Tuple[int, int] = (0, 0)
    completed_sets: Tuple[Tuple[int, int], ...] = ()
    serving: int = 1
    tiebreak_first_server: Optional[int] = None
    finished: bool = False
    history: Tuple["ManualMatch", ...] = field(default=(), repr=False)

    @property
    def sets_to_win(self) -> int:
        return self.best_of // 2 + 1

    @property
    def current_set(self) -> int:
        return len(self.completed_sets) + 1

    @property
    def is_tiebreak(self) -> bool:
        return self.games == (GAMES_PER_SET, GAMES_PER_SET)


def _bump(pair: Tuple[int, int], index: int) -> Tuple[int, int]:
    values = list(pair)
    values[index] += 1
    return values[0], values[1]


def _other(player: int) -> int:
    return 2 if player == 1 else 1


def _point_labels(points: Tuple[int, int]) -> Tuple[str, str]:
    first, second = points
    if first >= 3 and second >= 3:
        if first == second:
            return "40", "40"
        return ("AD", "40") if first > second else ("40", "AD")
    return POINT_LABELS[min(first, 3)], POINT_LABELS[min(second, 3)]


def _game_won(points: Tuple[int, int], target: int) -> Optional[int]:
    first, second = points
    if first >= target and first - second >= 2:
        return 1
    if second >= target and second - first >= 2:
        return 2
    return None


def _set_won(games: Tuple[int, int]) -> Optional[int]:
    first, second = games
    if first == GAMES_PER_SET + 1 or (first >= GAMES_PER_SET and first - second >= 2):
        return 1
    if second == GAMES_PER_SET + 1 or (second >= GAMES_PER_SET and second - first >= 2):
        return 2
    return None


def score_point(match: ManualMatch, player: int) -> ManualMatch:
    """Return the match state after ``player`` (1 or 2) wins a point."""
    if match.finished:
        return match

    index = player - 1
    tiebreak = match.is_tiebreak
    points = _bump(match.points, index)
    serving = match.serving
    first_server = match.tiebreak_first_server

    if tiebreak:
        if first_server is None:
            first_server = serving
        if sum(points) % 2 == 1:
            serving = _other(serving)

    winner = _game_won(points, TIEBREAK_POINTS if tiebreak else 4)
    if winner is None:
        return replace(match, points=points, serving=serving, tiebreak_first_server=first_server)

    games = _bump(match.games, winner - 1)
    if tiebreak:
        serving = _other(first_server or serving)
        first_server = None
    else:
        serving = _other(serving)

    set_winner = _set_won(games)
    if set_winner is None:
        return replace(
            match,
            points=(0, 0),
            games=games,
            serving=serving,
            tiebreak_first_server=first_server,
        )

    sets_won = _bump(match.sets_won, set_winner - 1)
    return replace(
        match,
        points=(0, 0),
        games=(0, 0),
        sets_won=sets_won,
        completed_sets=match.completed_sets + (games,),
        serving=serving,
        tiebreak_first_server=None,
        finished=max(sets_won) >= match.sets_to_win,
    )


def render_match(match: ManualMatch) -> MatchState:
    """Render ``match`` in the payload shape used by live score providers."""
    labels = _point_labels(match.points) if not match.is_tiebreak else ("0", "0")
    sets: Dict[str, Dict[str, int]] = {}
    for number, (first, second) in enumerate(match.completed_sets, start=1):
        sets[f"set{number}"] = {"player1": first, "player2": second}
    if not match.finished:
        sets[f"set{match.current_set}"] = {
            "player1": match.games[0],
            "player2": match.games[1],
        }

    return {
        "matchId": match.match_id,
        "player1": {"name": match.player1},
        "player2": {"name": match.player2},
        "score": {
            "player1Sets": match.sets_won[0],
            "player2Sets": match.sets_won[1],
            "player1Games": match.games[0],
            "player2Games": match.games[1],
            "player1Points": labels[0],
            "player2Points": labels[1],
        },
        "sets": sets,
        "matchStatus": "completed" if match.finished else "in_progress",
        "servingPlayer": match.serving,
        "currentSet": min(match.current_set, match.best_of),
        "isTiebreak": match.is_tiebreak,
        "tiebreakScore": (
            {"player1": match.points[0], "player2": match.points[1]}
            if match.is_tiebreak
            else None
        ),
        "tournament": match.tournament,
        "round": match.round,
    }


class ManualScoringSession:
    """Holds at most one manually scored match and notifies listeners on change."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._match: Optional[ManualMatch] = None
        self._listeners: List[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _publish(self, match: Optional[ManualMatch]) -> None:
        with self._lock:
            self._match = match
        self._notify(match)

    def _notify(self, match: Optional[ManualMatch]) -> None:
        state = render_match(match) if match is not None else None
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:  # noqa: BLE001
                logger.exception("Błąd podczas powiadamiania o zmianie meczu ręcznego")

    def _transition(self, step: Callable[[ManualMatch], ManualMatch]) -> Optional[MatchState]:
        """Apply ``step`` to the current match and store the result in one locked section.

        Listeners are called after the lock is released and only when ``step``
        returned a different match.
        """
        with self._lock:
            match = self._match
            if match is None:
                return None
            updated = step(match)
            self._match = updated
        if updated is not match:
            self._notify(updated)
        return render_match(updated)

    @property
    def match(self) -> Optional[ManualMatch]:
        with self._lock:
            return self._match

    def current_state(self) -> Optional[MatchState]:
        match = self.match
        return render_match(match) if match is not None else None

    def start_match(
        self,
        player1: str,
        player2: str,
        *,
        best_of: int = 3,
        tournament: Optional[str] = None,
        round: Optional[str] = None,
        serving: int = 1,
    ) -> MatchState:
        if best_of < 1 or best_of % 2 == 0:
            raise ValueError("best_of must be a positive odd number")
        if serving not in (1, 2):
            raise ValueError("serving must be 1 or 2")
        match = ManualMatch(
            match_id=f"manual_{uuid.uuid4().hex[:12]}",
            player1=player1.strip() or "Player 1",
            player2=player2.strip() or "Player 2",
            best_of=best_of,
            tournament=tournament,
            round=round,
            serving=serving,
        )
        logger.info("Rozpoczęto mecz ręczny %s: %s vs %s", match.match_id, match.player1, match.player2)
        self._publish(match)
        return render_match(match)

    def award_point(self, player: int) -> Optional[MatchState]:
        if player not in (1, 2):
            raise ValueError("player must be 1 or 2")

        def step(match: ManualMatch) -> ManualMatch:
            updated = score_point(match, player)
            if updated is match:
                return match
            return replace(updated, history=match.history + (replace(match, history=()),))

        return self._transition(step)

    def undo_point(self) -> Optional[MatchState]:
        def step(match: ManualMatch) -> ManualMatch:
            if not match.history:
                return match
            return replace(match.history[-1], history=match.history[:-1])

        return self._transition(step)

    def switch_server(self) -> Optional[MatchState]:
        return self._transition(lambda match: replace(match, serving=_other(match.serving)))

    def end_match(self) -> None:
        match = self.match
        if match is None:
            return
        logger.info("Zakończono mecz ręczny %s", match.match_id)
        self._publish(None)


__all__ = [
    "ManualMatch",
    "ManualScoringSession",
    "render_match",
    "score_point",
]
