from __future__ import annotations

import itertools
from dataclasses import dataclass, field

import httpx
import pytest

from brainpulse.adaptive import DifficultyController, calculate_new_difficulty
from brainpulse.api import ScoreSubmitter
from brainpulse.cognitive_core import (
    Completed,
    ConditionReport,
    GameMode,
    GameResult,
    SeededRng,
    SessionData,
)
from brainpulse.game_engine import GameSnapshot
from brainpulse.n_back import NBackGenerator, NBackPayload
from brainpulse.persistence import InMemoryProfileStore
from brainpulse.registry import build_default_registry
from brainpulse.scoring import calculate_composite_score, calculate_game_score
from brainpulse.session import SessionOrchestrator, SessionState, SessionStateError, run_session


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += dt


@dataclass
class RecordingStore:
    saved: list[SessionData] = field(default_factory=list)

    def save_session(self, session: SessionData) -> None:
        self.saved.append(session)


REPORT = ConditionReport(sleep_quality=4, energy_level=3, stress_level=2)


def _orchestrator(
    profiles: InMemoryProfileStore,
    store: RecordingStore,
    submitter: ScoreSubmitter | None = None,
) -> SessionOrchestrator:
    return SessionOrchestrator(
        registry=build_default_registry(),
        controller=DifficultyController(profiles),
        store=store,
        submitter=submitter,
        device_id="bp_device",
        now=lambda: "2026-04-01T09:00:00.000000Z",
        id_factory=lambda: "bp_test_000001",
    )


def _result(game_id: str, correct: int = 18, total: int = 20) -> GameResult:
    r = GameResult(
        game_id=game_id,
        score=0,
        duration_ms=45_000,
        accuracy=correct / total,
        difficulty=2,
        correct_count=correct,
        total_count=total,
    )
    return GameResult(
        game_id=r.game_id,
        score=calculate_game_score(r),
        duration_ms=r.duration_ms,
        accuracy=r.accuracy,
        difficulty=r.difficulty,
        correct_count=r.correct_count,
        total_count=r.total_count,
    )


def test_development_session_plays_n_back_to_report() -> None:
    seed = 31
    clock = FakeClock()
    profiles = InMemoryProfileStore()
    store = RecordingStore()
    orch = _orchestrator(profiles, store)
    trials = NBackGenerator(SeededRng(seed)).generate(2)

    def respond(snap: GameSnapshot) -> object | None:
        assert isinstance(snap.payload, NBackPayload)
        return trials[snap.payload.index].is_match

    session = run_session(
        orch,
        GameMode.DEVELOPMENT,
        REPORT,
        clock=clock,
        tick=lambda: clock.advance(0.1),
        respond=respond,
        seeds=iter([seed]),
    )

    assert session is not None
    assert orch.state is SessionState.IDLE
    assert session.id == "bp_test_000001"
    assert session.mode is GameMode.DEVELOPMENT
    assert session.condition_before == REPORT
    assert [r.game_id for r in session.game_results] == ["n-back"]

    result = session.game_results[0]
    assert result.accuracy == 1.0
    assert session.composite_score == calculate_game_score(result)
    assert store.saved == [session]
    assert profiles.get().level_for("n-back") == calculate_new_difficulty(2, result)


def test_activation_session_without_answers_lowers_every_level() -> None:
    clock = FakeClock()
    profiles = InMemoryProfileStore()
    store = RecordingStore()
    orch = _orchestrator(profiles, store)

    session = run_session(
        orch,
        GameMode.ACTIVATION,
        REPORT,
        clock=clock,
        tick=lambda: clock.advance(0.25),
        respond=lambda snap: None,
        seeds=itertools.count(1),
    )

    assert session is not None
    ids = [r.game_id for r in session.game_results]
    assert ids == ["speed-match", "color-stroop", "sequence-memory", "quick-math"]
    assert all(r.correct_count == 0 for r in session.game_results)
    assert all(r.total_count > 0 for r in session.game_results)
    assert session.composite_score == calculate_composite_score(session.game_results)
    assert profiles.get().game_levels == {gid: 1 for gid in ids}
    assert profiles.writes == 4
    assert len(store.saved) == 1


def test_exit_discards_session_and_profile() -> None:
    clock = FakeClock()
    profiles = InMemoryProfileStore()
    store = RecordingStore()
    orch = _orchestrator(profiles, store)

    orch.begin(GameMode.ACTIVATION)
    orch.submit_condition(REPORT)
    assert orch.record_outcome(Completed(_result("speed-match"))) is SessionState.TRANSITION
    orch.advance()

    engine = orch.create_engine(clock, 5)
    engine.start()
    clock.advance(1.0)
    engine.exit()
    outcome = engine.outcome
    assert outcome is not None

    assert orch.record_outcome(outcome) is SessionState.IDLE
    assert orch.results == ()
    assert store.saved == []
    assert profiles.writes == 0
    assert orch.last_session is None


def test_transitions_walk_the_game_list() -> None:
    profiles = InMemoryProfileStore()
    store = RecordingStore()
    orch = _orchestrator(profiles, store)

    orch.begin("activation")
    assert orch.state is SessionState.AWAITING_CONDITION
    assert orch.current_game is None
    orch.submit_condition(REPORT)
    assert orch.game_count == 4

    for i, gid in enumerate(["speed-match", "color-stroop", "sequence-memory", "quick-math"]):
        assert orch.state is SessionState.IN_GAME
        game = orch.current_game
        assert game is not None and game.id == gid
        assert orch.current_difficulty() == 2
        state = orch.record_outcome(Completed(_result(gid)))
        if i < 3:
            assert state is SessionState.TRANSITION
            assert orch.next_game is not None
            orch.advance()
        else:
            assert state is SessionState.FINALIZING

    session = orch.finalize()
    assert len(session.game_results) == 4
    assert session.composite_score == calculate_composite_score(session.game_results)
    assert orch.last_session is session
    assert orch.state is SessionState.IDLE


def test_illegal_transitions_raise() -> None:
    orch = _orchestrator(InMemoryProfileStore(), RecordingStore())

    with pytest.raises(SessionStateError):
        orch.advance()
    with pytest.raises(SessionStateError):
        orch.finalize()
    with pytest.raises(SessionStateError):
        orch.abort()
    with pytest.raises(ValueError):
        orch.begin(GameMode.REST)

    orch.begin(GameMode.DEVELOPMENT)
    with pytest.raises(SessionStateError):
        orch.begin(GameMode.DEVELOPMENT)

    orch.submit_condition(REPORT)
    with pytest.raises(SessionStateError):
        orch.record_outcome(Completed(_result("quick-math")))


def test_submission_failure_does_not_block_finalize() -> None:
    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    submitter = ScoreSubmitter("http://api.test", client=httpx.Client(transport=httpx.MockTransport(unreachable)))
    store = RecordingStore()
    orch = _orchestrator(InMemoryProfileStore(), store, submitter)

    orch.begin(GameMode.DEVELOPMENT)
    orch.submit_condition(REPORT)
    orch.record_outcome(Completed(_result("n-back")))
    session = orch.finalize()

    assert store.saved == [session]


def test_results_are_submitted_after_save() -> None:
    posted: list[httpx.Request] = []

    def ok(request: httpx.Request) -> httpx.Response:
        posted.append(request)
        return httpx.Response(200)

    submitter = ScoreSubmitter("http://api.test", client=httpx.Client(transport=httpx.MockTransport(ok)))
    orch = _orchestrator(InMemoryProfileStore(), RecordingStore(), submitter)

    orch.begin(GameMode.DEVELOPMENT)
    orch.submit_condition(REPORT)
    orch.record_outcome(Completed(_result("n-back")))
    orch.finalize()

    assert len(posted) == 1
    assert b'"device_id":"bp_device"' in posted[0].content.replace(b" ", b"")


def test_malformed_api_url_does_not_block_finalize() -> None:
    def never(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request should be built for a malformed url")

    submitter = ScoreSubmitter("http://[::1", client=httpx.Client(transport=httpx.MockTransport(never)))
    store = RecordingStore()
    orch = _orchestrator(InMemoryProfileStore(), store, submitter)

    orch.begin(GameMode.DEVELOPMENT)
    orch.submit_condition(REPORT)
    orch.record_outcome(Completed(_result("n-back")))
    session = orch.finalize()

    assert store.saved == [session]
    assert orch.state is SessionState.IDLE
    orch.begin(GameMode.DEVELOPMENT)
    assert orch.state is SessionState.AWAITING_CONDITION
