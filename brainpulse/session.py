"""Session orchestration.

A session walks one mode's games in registry order::

    IDLE -> AWAITING_CONDITION -> IN_GAME(0) -> TRANSITION -> IN_GAME(1) ... -> FINALIZING -> IDLE

Finalizing computes the composite score, applies one difficulty update per
game result, persists the session and hands the results to score submission.
Exiting a game aborts the whole session: nothing is saved and the difficulty
profile is not touched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from enum import Enum

from .adaptive import DifficultyController, utc_now_iso
from .api import ScoreSubmitter
from .clock import Clock
from .cognitive_core import (
    Aborted,
    Completed,
    ConditionReport,
    GameMode,
    GameOutcome,
    GameResult,
    SessionData,
)
from .game_engine import GameEngine, GameSnapshot, play
from .persistence import SessionStore
from .registry import GameRegistry, MiniGameDefinition, mode_config
from .scoring import calculate_composite_score, generate_session_id

logger = logging.getLogger("brainpulse.session")


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_CONDITION = "awaiting_condition"
    IN_GAME = "in_game"
    TRANSITION = "transition"
    FINALIZING = "finalizing"


class SessionStateError(RuntimeError):
    pass


class SessionOrchestrator:
    def __init__(
        self,
        *,
        registry: GameRegistry,
        controller: DifficultyController,
        store: SessionStore | None = None,
        submitter: ScoreSubmitter | None = None,
        device_id: str = "",
        now: Callable[[], str] = utc_now_iso,
        id_factory: Callable[[], str] = generate_session_id,
    ) -> None:
        self._registry = registry
        self._controller = controller
        self._store = store
        self._submitter = submitter
        self._device_id = device_id
        self._now = now
        self._id_factory = id_factory

        self._state = SessionState.IDLE
        self._mode: GameMode | None = None
        self._games: list[MiniGameDefinition] = []
        self._index = 0
        self._results: list[GameResult] = []
        self._session_id = ""
        self._started_at = ""
        self._condition: ConditionReport | None = None
        self._last_session: SessionData | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def mode(self) -> GameMode | None:
        return self._mode

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def game_index(self) -> int:
        return self._index

    @property
    def game_count(self) -> int:
        return len(self._games)

    @property
    def games(self) -> tuple[MiniGameDefinition, ...]:
        return tuple(self._games)

    @property
    def results(self) -> tuple[GameResult, ...]:
        return tuple(self._results)

    @property
    def last_session(self) -> SessionData | None:
        return self._last_session

    @property
    def current_game(self) -> MiniGameDefinition | None:
        if self._state not in (SessionState.IN_GAME, SessionState.TRANSITION):
            return None
        return self._games[self._index]

    @property
    def next_game(self) -> MiniGameDefinition | None:
        if self._state is not SessionState.TRANSITION or self._index + 1 >= len(self._games):
            return None
        return self._games[self._index + 1]

    # --- transitions -------------------------------------------------------------

    def begin(self, mode: GameMode | str) -> None:
        self._require(SessionState.IDLE)
        m = GameMode(mode)
        cfg = mode_config(m)
        if not cfg.enabled:
            raise ValueError(f"mode is not available: {m.value}")
        self._mode = m
        self._set_state(SessionState.AWAITING_CONDITION)

    def submit_condition(self, report: ConditionReport) -> None:
        self._require(SessionState.AWAITING_CONDITION)
        assert self._mode is not None
        games = self._registry.select_session_games(self._mode)
        if not games:
            raise ValueError(f"no games registered for mode: {self._mode.value}")

        self._games = games
        self._index = 0
        self._results = []
        self._condition = report
        self._session_id = self._id_factory()
        self._started_at = self._now()
        logger.info(
            "session %s started: mode=%s games=%s",
            self._session_id,
            self._mode.value,
            ",".join(g.id for g in games),
        )
        self._set_state(SessionState.IN_GAME)

    def current_difficulty(self) -> int:
        game = self.current_game
        if game is None:
            raise SessionStateError(f"no current game in state {self._state.value}")
        return self._controller.difficulty_for_game(game.id)

    def create_engine(self, clock: Clock, seed: int) -> GameEngine:
        self._require(SessionState.IN_GAME)
        game = self._games[self._index]
        return game.build_engine(clock=clock, seed=seed, difficulty=self.current_difficulty())

    def record_outcome(self, outcome: GameOutcome) -> SessionState:
        self._require(SessionState.IN_GAME)
        game = self._games[self._index]

        if isinstance(outcome, Aborted):
            self.abort()
            return self._state

        if not isinstance(outcome, Completed):
            raise TypeError(f"unexpected outcome: {outcome!r}")
        if outcome.result.game_id != game.id:
            raise SessionStateError(f"result for {outcome.result.game_id} while playing {game.id}")

        self._results.append(outcome.result)
        logger.info("session %s: %s scored %d", self._session_id, game.id, outcome.result.score)
        if self._index + 1 < len(self._games):
            self._set_state(SessionState.TRANSITION)
        else:
            self._set_state(SessionState.FINALIZING)
        return self._state

    def advance(self) -> MiniGameDefinition:
        self._require(SessionState.TRANSITION)
        self._index += 1
        self._set_state(SessionState.IN_GAME)
        return self._games[self._index]

    def abort(self) -> None:
        """Discard the in-progress session. Nothing is persisted."""

        if self._state in (SessionState.IDLE, SessionState.FINALIZING):
            raise SessionStateError(f"cannot abort in state {self._state.value}")
        if self._session_id:
            logger.info("session %s discarded after %d game(s)", self._session_id, len(self._results))
        self._reset()

    def finalize(self) -> SessionData:
        self._require(SessionState.FINALIZING)
        assert self._mode is not None and self._condition is not None

        results = tuple(self._results)
        for result in results:
            self._controller.update(result)

        session = SessionData(
            id=self._session_id,
            started_at=self._started_at,
            ended_at=self._now(),
            mode=self._mode,
            game_results=results,
            composite_score=calculate_composite_score(results),
            condition_before=self._condition,
        )
        if self._store is not None:
            self._store.save_session(session)
        if self._submitter is not None and self._device_id:
            self._submitter.submit_results(results, self._device_id, self._mode)

        logger.info("session %s finalized: composite=%d", session.id, session.composite_score)
        self._last_session = session
        self._reset()
        return session

    # --- internals ---------------------------------------------------------------

    def _require(self, state: SessionState) -> None:
        if self._state is not state:
            raise SessionStateError(f"expected state {state.value}, got {self._state.value}")

    def _set_state(self, state: SessionState) -> None:
        logger.debug("session state %s -> %s", self._state.value, state.value)
        self._state = state

    def _reset(self) -> None:
        self._state = SessionState.IDLE
        self._mode = None
        self._games = []
        self._index = 0
        self._results = []
        self._session_id = ""
        self._started_at = ""
        self._condition = None


def run_session(
    orchestrator: SessionOrchestrator,
    mode: GameMode | str,
    report: ConditionReport,
    *,
    clock: Clock,
    tick: Callable[[], None],
    respond: Callable[[GameSnapshot], object | None],
    seeds: Iterator[int],
) -> SessionData | None:
    """Play a whole session without a UI. Returns None if a game was exited."""

    orchestrator.begin(mode)
    orchestrator.submit_condition(report)
    while True:
        engine = orchestrator.create_engine(clock, next(seeds))
        state = orchestrator.record_outcome(play(engine, respond, tick=tick))
        if state is SessionState.IDLE:
            return None
        if state is SessionState.FINALIZING:
            return orchestrator.finalize()
        orchestrator.advance()
