from __future__ import annotations

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Protocol, TypeVar

T = TypeVar("T")

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
DEFAULT_DIFFICULTY = 2


class RandomSource(Protocol):
    """Single source of uniform randomness shared by every trial generator."""

    def next(self) -> float:
        """Return a float in [0.0, 1.0)."""
        ...


class SeededRng:
    """Seeded RandomSource to keep deterministic trial streams explicit."""

    def __init__(self, seed: int) -> None:
        self._seed = int(seed)
        self._rng = random.Random(self._seed)

    @property
    def seed(self) -> int:
        return self._seed

    def next(self) -> float:
        return self._rng.random()


class GameMode(StrEnum):
    REST = "rest"
    ACTIVATION = "activation"
    DEVELOPMENT = "development"


class CognitiveDomain(StrEnum):
    REACTION = "reaction"
    MEMORY = "memory"
    ATTENTION = "attention"
    FLEXIBILITY = "flexibility"
    PROCESSING = "processing"


class TrialPhase(str, Enum):
    READY = "ready"
    STIMULUS = "stimulus"
    RESPONSE = "response"
    GAP = "gap"
    FINISHED = "finished"


@dataclass(frozen=True, slots=True)
class ConditionReport:
    """Pre-session self report. Every field is on a 1-5 scale (stress: 1 = low)."""

    sleep_quality: int
    energy_level: int
    stress_level: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "sleep_quality", _clamp_int(self.sleep_quality, 1, 5))
        object.__setattr__(self, "energy_level", _clamp_int(self.energy_level, 1, 5))
        object.__setattr__(self, "stress_level", _clamp_int(self.stress_level, 1, 5))


@dataclass(frozen=True, slots=True)
class GameResult:
    """Outcome of one completed game run. Immutable once built."""

    game_id: str
    score: int
    duration_ms: int
    accuracy: float
    difficulty: int
    correct_count: int
    total_count: int
    reaction_time_ms: float | None = None
    raw_metrics: dict[str, float] | None = None


@dataclass(frozen=True, slots=True)
class Completed:
    result: GameResult


@dataclass(frozen=True, slots=True)
class Aborted:
    game_id: str


GameOutcome = Completed | Aborted


@dataclass(frozen=True, slots=True)
class SessionData:
    """A finalized session: every game played, in order, plus the composite."""

    id: str
    started_at: str
    ended_at: str
    mode: GameMode
    game_results: tuple[GameResult, ...]
    composite_score: int
    condition_before: ConditionReport


def clamp_difficulty(level: float) -> int:
    """Silently correct any level into [MIN_DIFFICULTY, MAX_DIFFICULTY]."""

    if isinstance(level, float) and math.isnan(level):
        return DEFAULT_DIFFICULTY
    if isinstance(level, float) and math.isinf(level):
        return MAX_DIFFICULTY if level > 0 else MIN_DIFFICULTY
    lvl = level if isinstance(level, int) else round_half_up(float(level))
    return _clamp_int(lvl, MIN_DIFFICULTY, MAX_DIFFICULTY)


def rand_int(rng: RandomSource, lo: int, hi: int) -> int:
    """Uniform integer in [lo, hi] (inclusive bounds)."""

    if hi < lo:
        raise ValueError("hi must be >= lo")
    return lo + int(math.floor(rng.next() * (hi - lo + 1)))


def pick(rng: RandomSource, seq: Sequence[T]) -> T:
    if not seq:
        raise ValueError("cannot pick from an empty sequence")
    return seq[int(math.floor(rng.next() * len(seq)))]


def chance(rng: RandomSource, p: float) -> bool:
    return rng.next() < p


def shuffled(rng: RandomSource, seq: Sequence[T]) -> list[T]:
    """Fisher-Yates shuffle into a new list."""

    values = list(seq)
    for i in range(len(values) - 1, 0, -1):
        j = int(math.floor(rng.next() * (i + 1)))
        values[i], values[j] = values[j], values[i]
    return values


def clamp01(x: float) -> float:
    return 0.0 if x <= 0.0 else 1.0 if x >= 1.0 else float(x)


def round_half_up(x: float) -> int:
    # Matches the rounding the scores were calibrated with (0.5 rounds up).
    return int(math.floor(x + 0.5))


def mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return float(sum(values)) / float(len(values))


def _clamp_int(value: int, lo: int, hi: int) -> int:
    return lo if value < lo else hi if value > hi else int(value)
