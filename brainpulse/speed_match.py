from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .clock import Clock
from .cognitive_core import (
    RandomSource,
    SeededRng,
    TrialPhase,
    chance,
    clamp_difficulty,
    pick,
)
from .game_engine import TrialGameHarness

GAME_ID = "speed-match"
TIME_LIMIT_S = 45.0
ROUND_POOL_SIZE = 60
RESPONSE_GRACE_MS = 1500


class Shape(StrEnum):
    CIRCLE = "circle"
    SQUARE = "square"
    TRIANGLE = "triangle"
    STAR = "star"
    DIAMOND = "diamond"
    HEXAGON = "hexagon"
    CROSS = "cross"
    HEART = "heart"
    PENTAGON = "pentagon"
    OCTAGON = "octagon"
    ARROW = "arrow"
    MOON = "moon"


ALL_SHAPES: tuple[Shape, ...] = tuple(Shape)

SHAPE_COLORS: tuple[str, ...] = ("#6C5CE7", "#00CEC9", "#00B894", "#0984E3", "#FDCB6E", "#E17055")


@dataclass(frozen=True, slots=True)
class SpeedMatchConfig:
    display_time_ms: int
    num_shapes: int
    match_ratio: float


DIFFICULTY_CONFIG: dict[int, SpeedMatchConfig] = {
    1: SpeedMatchConfig(display_time_ms=2000, num_shapes=4, match_ratio=0.50),
    2: SpeedMatchConfig(display_time_ms=1500, num_shapes=5, match_ratio=0.45),
    3: SpeedMatchConfig(display_time_ms=1200, num_shapes=7, match_ratio=0.40),
    4: SpeedMatchConfig(display_time_ms=800, num_shapes=9, match_ratio=0.35),
    5: SpeedMatchConfig(display_time_ms=500, num_shapes=12, match_ratio=0.30),
}


@dataclass(frozen=True, slots=True)
class SpeedMatchTrial:
    shape: Shape
    color: str
    is_match: bool  # shape equals the previous trial's shape
    is_first: bool  # shown only to memorise, never scored


@dataclass(frozen=True, slots=True)
class SpeedMatchPayload:
    index: int
    shape: Shape
    color: str
    is_first: bool


def config_for(difficulty: int) -> SpeedMatchConfig:
    return DIFFICULTY_CONFIG[clamp_difficulty(difficulty)]


class SpeedMatchGenerator:
    """Shape stream where each trial is compared to the one before it."""

    def __init__(self, rng: RandomSource) -> None:
        self._rng = rng

    def generate(self, difficulty: int, count: int) -> list[SpeedMatchTrial]:
        if count <= 0:
            return []
        cfg = config_for(difficulty)
        pool = ALL_SHAPES[: cfg.num_shapes]

        trials = [
            SpeedMatchTrial(
                shape=pick(self._rng, pool),
                color=pick(self._rng, SHAPE_COLORS),
                is_match=False,
                is_first=True,
            )
        ]
        for _ in range(1, count):
            prev = trials[-1].shape
            should_match = chance(self._rng, cfg.match_ratio)
            if should_match:
                shape = prev
            else:
                shape = pick(self._rng, tuple(s for s in pool if s != prev))
            trials.append(
                SpeedMatchTrial(
                    shape=shape,
                    color=pick(self._rng, SHAPE_COLORS),
                    is_match=should_match,
                    is_first=False,
                )
            )
        return trials


class SpeedMatchGame(TrialGameHarness):
    """Same/different judgement against the previous shape.

    Responses are booleans: True means "same as the last one".
    """

    game_id = GAME_ID
    title = "Speed Match"

    def __init__(
        self,
        *,
        clock: Clock,
        rng: RandomSource,
        difficulty: int,
        pool_size: int = ROUND_POOL_SIZE,
        time_limit_s: float = TIME_LIMIT_S,
    ) -> None:
        super().__init__(clock=clock, difficulty=difficulty, time_limit_s=time_limit_s)
        if pool_size < 2:
            raise ValueError("pool_size must be >= 2")
        self._config = config_for(self._difficulty)
        self._trials = SpeedMatchGenerator(rng).generate(self._difficulty, pool_size)
        self._index = 0

    @property
    def current_trial(self) -> SpeedMatchTrial | None:
        if self._phase in (TrialPhase.READY, TrialPhase.FINISHED):
            return None
        return self._trials[self._index]

    def _on_start(self, at_s: float) -> None:
        self._present(0, at_s)

    def _present(self, index: int, at_s: float) -> None:
        self._index = index
        if self._trials[index].is_first:
            self._enter(TrialPhase.STIMULUS, at_s=at_s, duration_ms=self._config.display_time_ms)
        else:
            window = self._config.display_time_ms + RESPONSE_GRACE_MS
            self._enter(TrialPhase.RESPONSE, at_s=at_s, duration_ms=window)

    def _advance(self, at_s: float) -> None:
        if self._index + 1 < len(self._trials):
            self._present(self._index + 1, at_s)
        else:
            self._complete(at_s=at_s)

    def _on_deadline(self, at_s: float) -> None:
        if self._phase is TrialPhase.RESPONSE:
            # No answer inside the window.
            self._record(is_correct=False)
        self._advance(at_s)

    def _on_response(self, response: object, now_s: float) -> bool:
        if not isinstance(response, bool):
            return False
        trial = self._trials[self._index]
        self._record(
            is_correct=response == trial.is_match,
            reaction_time_ms=self._phase_elapsed_ms(),
        )
        self._advance(now_s)
        return True

    def _prompt(self) -> str:
        trial = self.current_trial
        if trial is None:
            return super()._prompt()
        return "Remember this shape" if trial.is_first else "Same or different?"

    def _payload(self) -> SpeedMatchPayload | None:
        trial = self.current_trial
        if trial is None:
            return None
        return SpeedMatchPayload(index=self._index, shape=trial.shape, color=trial.color, is_first=trial.is_first)


def build_speed_match_game(
    *,
    clock: Clock,
    seed: int,
    difficulty: int,
    time_limit_s: float = TIME_LIMIT_S,
) -> SpeedMatchGame:
    return SpeedMatchGame(clock=clock, rng=SeededRng(seed), difficulty=difficulty, time_limit_s=time_limit_s)
