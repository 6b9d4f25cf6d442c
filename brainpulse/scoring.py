"""Game and session scoring.

Each game score is computed as::

    game_score = accuracy * 60 + speed_bonus * 25 + difficulty_bonus * 15

where ``accuracy = correct / total`` (0 when nothing was attempted),
``speed_bonus = max(0, 1 - duration_ms / MAX_GAME_DURATION_MS)`` and
``difficulty_bonus = (difficulty - 1) / 4``.  The composite session score is
the mean game score plus a small completion bonus for playing more games.
"""

from __future__ import annotations

import random
import string
import time
from collections.abc import Sequence
from dataclasses import dataclass

from .cognitive_core import (
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    GameResult,
    clamp01,
    clamp_difficulty,
    round_half_up,
)

MAX_GAME_DURATION_MS = 30_000
MAX_COMPLETION_BONUS = 5

ACCURACY_WEIGHT = 60.0
SPEED_WEIGHT = 25.0
DIFFICULTY_WEIGHT = 15.0

_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True, slots=True)
class DifficultyLabel:
    en: str
    ko: str


_DIFFICULTY_LABELS: dict[int, DifficultyLabel] = {
    1: DifficultyLabel(en="Very Easy", ko="매우 쉬움"),
    2: DifficultyLabel(en="Easy", ko="쉬움"),
    3: DifficultyLabel(en="Normal", ko="보통"),
    4: DifficultyLabel(en="Hard", ko="어려움"),
    5: DifficultyLabel(en="Very Hard", ko="매우 어려움"),
}


def accuracy_of(correct_count: int, total_count: int) -> float:
    if total_count <= 0:
        return 0.0
    return float(correct_count) / float(total_count)


def calculate_game_score(result: GameResult) -> int:
    """Return a single game's score in [0, 100]."""

    accuracy = clamp01(accuracy_of(result.correct_count, result.total_count))
    speed_bonus = clamp01(max(0.0, 1.0 - float(result.duration_ms) / MAX_GAME_DURATION_MS))
    level = clamp_difficulty(result.difficulty)
    difficulty_bonus = (level - MIN_DIFFICULTY) / float(MAX_DIFFICULTY - MIN_DIFFICULTY)

    score = accuracy * ACCURACY_WEIGHT + speed_bonus * SPEED_WEIGHT + difficulty_bonus * DIFFICULTY_WEIGHT
    return round_half_up(min(100.0, max(0.0, score)))


def calculate_composite_score(results: Sequence[GameResult]) -> int:
    """Return the session composite score in [0, 100]."""

    if not results:
        return 0
    total = sum(calculate_game_score(r) for r in results)
    avg = total / float(len(results))
    completion_bonus = min(MAX_COMPLETION_BONUS, len(results) - 1)
    return round_half_up(min(100.0, avg + completion_bonus))


def difficulty_label(level: int) -> DifficultyLabel:
    return _DIFFICULTY_LABELS[clamp_difficulty(level)]


def generate_session_id(*, now_ms: int | None = None, rng: random.Random | None = None) -> str:
    """Session ids look like ``bp_<base36 ms timestamp>_<6 base36 chars>``."""

    stamp = int(time.time() * 1000) if now_ms is None else int(now_ms)
    r = rng or random.SystemRandom()
    suffix = "".join(r.choice(_BASE36) for _ in range(6))
    return f"bp_{_to_base36(stamp)}_{suffix}"


def format_duration(ms: float) -> str:
    seconds = int(ms // 1000)
    if seconds < 60:
        return f"{seconds}s"
    return f"{seconds // 60}m {seconds % 60}s"


def _to_base36(value: int) -> str:
    if value <= 0:
        return "0"
    out: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))
