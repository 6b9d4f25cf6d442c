from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from typing import Protocol

from .clock import Clock, ms_to_seconds, seconds_to_ms
from .cognitive_core import (
    Aborted,
    Completed,
    GameOutcome,
    GameResult,
    TrialPhase,
    clamp_difficulty,
    mean,
)
from .scoring import accuracy_of, calculate_game_score


@dataclass(frozen=True, slots=True)
class GameSnapshot:
    """View model for the UI (pure data)."""

    game_id: str
    title: str
    phase: TrialPhase
    prompt: str
    difficulty: int
    time_remaining_s: float | None
    correct: int
    total: int
    accepting_input: bool
    payload: object | None = None


class GameEngine(Protocol):
    """What the rendering layer drives.

    The engine resolves exactly once: either to ``Completed(result)`` when the
    game ends on its own, or to ``Aborted`` when the player exits.
    """

    game_id: str

    @property
    def outcome(self) -> GameOutcome | None: ...
    def start(self) -> None: ...
    def update(self) -> None: ...
    def submit(self, response: object) -> bool: ...
    def exit(self) -> None: ...
    def snapshot(self) -> GameSnapshot: ...


class TrialGameHarness:
    """Reusable game lifecycle: ready -> timed trials -> single resolution.

    - Time is entirely via the injected Clock; trial phases advance on
      deadlines that are processed in order by ``update``.
    - Deadlines chain from the previous deadline rather than from ``now`` so a
      late ``update`` never stretches the game.
    - The outcome is written once. Anything after that (late answers, a second
      exit, timers) is ignored.
    """

    game_id = ""
    title = ""
    accepting_phases: frozenset[TrialPhase] = frozenset({TrialPhase.RESPONSE})

    def __init__(self, *, clock: Clock, difficulty: int, time_limit_s: float) -> None:
        if time_limit_s <= 0:
            raise ValueError("time_limit_s must be > 0")

        self._clock = clock
        self._difficulty = clamp_difficulty(difficulty)
        self._time_limit_s = float(time_limit_s)

        self._phase = TrialPhase.READY
        self._phase_started_at_s: float | None = None
        self._deadline_s: float | None = None

        self._started_at_s: float | None = None
        self._ends_at_s: float | None = None
        self._finished_at_s: float | None = None

        self._correct = 0
        self._total = 0
        self._reaction_times_ms: list[float] = []
        self._outcome: GameOutcome | None = None

    @property
    def difficulty(self) -> int:
        return self._difficulty

    @property
    def phase(self) -> TrialPhase:
        return self._phase

    @property
    def outcome(self) -> GameOutcome | None:
        return self._outcome

    @property
    def correct_count(self) -> int:
        return self._correct

    @property
    def total_count(self) -> int:
        return self._total

    def start(self) -> None:
        if self._phase is not TrialPhase.READY or self._outcome is not None:
            return
        now = self._clock.now()
        self._started_at_s = now
        self._ends_at_s = now + self._time_limit_s
        self._on_start(now)

    def time_remaining_s(self) -> float | None:
        if self._ends_at_s is None or self._outcome is not None:
            return None
        return max(0.0, self._ends_at_s - self._clock.now())

    def update(self) -> None:
        if self._outcome is not None or self._ends_at_s is None:
            return
        now = self._clock.now()
        horizon = min(now, self._ends_at_s)
        while self._outcome is None and self._deadline_s is not None and horizon >= self._deadline_s:
            at_s = self._deadline_s
            self._deadline_s = None
            self._on_deadline(at_s)
        if self._outcome is None and now >= self._ends_at_s:
            self._complete(at_s=self._ends_at_s)

    def submit(self, response: object) -> bool:
        """Submit a response for the current trial. Returns True if accepted."""

        self.update()
        if not self._accepting_input():
            return False
        return self._on_response(response, self._clock.now())

    def exit(self) -> None:
        """Player-initiated exit. Counters are discarded, nothing is scored."""

        if self._outcome is not None:
            return
        self._outcome = Aborted(game_id=self.game_id)
        self._phase = TrialPhase.FINISHED
        self._deadline_s = None
        self._correct = 0
        self._total = 0
        self._reaction_times_ms.clear()

    def snapshot(self) -> GameSnapshot:
        accepting = self._accepting_input()
        return GameSnapshot(
            game_id=self.game_id,
            title=self.title,
            phase=self._phase,
            prompt=self._prompt(),
            difficulty=self._difficulty,
            time_remaining_s=self.time_remaining_s(),
            correct=self._correct,
            total=self._total,
            accepting_input=accepting,
            payload=None if self._phase in (TrialPhase.READY, TrialPhase.FINISHED) else self._payload(),
        )

    def build_result(self) -> GameResult:
        """Summarise the counters into a scored GameResult."""

        if self._started_at_s is None:
            duration_ms = 0
        else:
            end_s = self._finished_at_s if self._finished_at_s is not None else self._clock.now()
            duration_ms = seconds_to_ms(end_s - self._started_at_s)

        rt = mean(self._reaction_times_ms)
        provisional = GameResult(
            game_id=self.game_id,
            score=0,
            duration_ms=duration_ms,
            accuracy=accuracy_of(self._correct, self._total),
            difficulty=self._difficulty,
            correct_count=self._correct,
            total_count=self._total,
            reaction_time_ms=None if rt is None else float(round(rt)),
            raw_metrics=self._raw_metrics(),
        )
        return replace(provisional, score=calculate_game_score(provisional))

    # --- helpers for subclasses -------------------------------------------------

    def _accepting_input(self) -> bool:
        return self._outcome is None and self._phase in self.accepting_phases

    def _enter(self, phase: TrialPhase, *, at_s: float, duration_ms: float | None = None) -> None:
        self._phase = phase
        self._phase_started_at_s = at_s
        self._deadline_s = None if duration_ms is None else at_s + ms_to_seconds(duration_ms)

    def _phase_elapsed_ms(self) -> float:
        if self._phase_started_at_s is None:
            return 0.0
        return max(0.0, (self._clock.now() - self._phase_started_at_s) * 1000.0)

    def _record(self, *, is_correct: bool, reaction_time_ms: float | None = None) -> None:
        self._total += 1
        if is_correct:
            self._correct += 1
        if reaction_time_ms is not None:
            self._reaction_times_ms.append(max(0.0, float(reaction_time_ms)))

    def _complete(self, *, at_s: float) -> None:
        if self._outcome is not None:
            return
        self._finished_at_s = at_s
        self._phase = TrialPhase.FINISHED
        self._deadline_s = None
        self._outcome = Completed(result=self.build_result())

    # --- hooks ------------------------------------------------------------------

    def _on_start(self, at_s: float) -> None:
        raise NotImplementedError

    def _on_deadline(self, at_s: float) -> None:
        raise NotImplementedError

    def _on_response(self, response: object, now_s: float) -> bool:
        raise NotImplementedError

    def _prompt(self) -> str:
        if self._phase is TrialPhase.READY:
            return f"{self.title}: press Enter to start."
        if self._phase is TrialPhase.FINISHED:
            return "Finished."
        return ""

    def _payload(self) -> object | None:
        return None

    def _raw_metrics(self) -> dict[str, float] | None:
        return None


def iter_snapshots(engine: GameEngine) -> Iterator[GameSnapshot]:
    """Drive an engine, yielding one snapshot per step until it resolves."""

    engine.start()
    while True:
        engine.update()
        if engine.outcome is not None:
            return
        yield engine.snapshot()


def play(
    engine: GameEngine,
    respond: Callable[[GameSnapshot], object | None],
    *,
    tick: Callable[[], None],
) -> GameOutcome:
    """Run a game to its single resolution.

    ``respond`` sees each snapshot and returns a response (or None to wait);
    ``tick`` advances time between steps (a FakeClock in headless runs).
    """

    for snap in iter_snapshots(engine):
        if snap.accepting_input:
            response = respond(snap)
            if response is not None:
                engine.submit(response)
        tick()
    outcome = engine.outcome
    assert outcome is not None
    return outcome
