from __future__ import annotations

import random
import re

from brainpulse.cognitive_core import GameResult
from brainpulse.scoring import (
    calculate_composite_score,
    calculate_game_score,
    difficulty_label,
    format_duration,
    generate_session_id,
)


def _result(correct: int, total: int, duration_ms: int, difficulty: int) -> GameResult:
    return GameResult(
        game_id="speed-match",
        score=0,
        duration_ms=duration_ms,
        accuracy=0.0 if total == 0 else correct / total,
        difficulty=difficulty,
        correct_count=correct,
        total_count=total,
    )


def test_perfect_fast_hardest_game_scores_100() -> None:
    assert calculate_game_score(_result(10, 10, 0, 5)) == 100


def test_score_components_add_up() -> None:
    # accuracy 1/2 -> 30, half the speed window -> 12.5, level 3 -> 7.5
    assert calculate_game_score(_result(1, 2, 15_000, 3)) == 50


def test_nothing_attempted_scores_zero_accuracy() -> None:
    assert calculate_game_score(_result(0, 0, 30_000, 1)) == 0


def test_speed_bonus_never_negative() -> None:
    assert calculate_game_score(_result(1, 1, 120_000, 1)) == 60


def test_half_point_rounds_up() -> None:
    # 0.25 * 60 + 0 + 7.5 = 22.5
    assert calculate_game_score(_result(1, 4, 30_000, 3)) == 23


def test_out_of_range_difficulty_is_clamped() -> None:
    assert calculate_game_score(_result(10, 10, 0, 9)) == 100
    assert calculate_game_score(_result(0, 10, 30_000, -3)) == 0


def test_composite_empty_is_zero() -> None:
    assert calculate_composite_score([]) == 0


def test_composite_adds_completion_bonus() -> None:
    best = _result(10, 10, 0, 5)  # 100
    slow = _result(10, 10, 30_000, 1)  # 60
    assert calculate_composite_score([slow]) == 60
    assert calculate_composite_score([best, slow]) == 81


def test_composite_bonus_is_capped_at_five() -> None:
    slow = _result(10, 10, 30_000, 1)
    assert calculate_composite_score([slow] * 8) == 65


def test_composite_of_zero_scores_is_the_full_bonus() -> None:
    zero = _result(0, 20, 30_000, 1)
    assert calculate_composite_score([zero] * 6) == 5
    assert calculate_composite_score([zero] * 9) == 5


def test_composite_never_exceeds_100() -> None:
    best = _result(10, 10, 0, 5)
    assert calculate_composite_score([best, best, best]) == 100


def test_composite_recomputes_from_counters() -> None:
    r = _result(10, 10, 30_000, 1)
    inflated = GameResult(
        game_id=r.game_id,
        score=99,
        duration_ms=r.duration_ms,
        accuracy=r.accuracy,
        difficulty=r.difficulty,
        correct_count=r.correct_count,
        total_count=r.total_count,
    )
    assert calculate_composite_score([inflated]) == 60


def test_difficulty_labels() -> None:
    assert difficulty_label(1).en == "Very Easy"
    assert difficulty_label(3).en == "Normal"
    assert difficulty_label(5).en == "Very Hard"
    assert difficulty_label(0) == difficulty_label(1)
    assert difficulty_label(7) == difficulty_label(5)


def test_session_id_format() -> None:
    sid = generate_session_id(now_ms=36, rng=random.Random(1))
    assert sid.startswith("bp_10_")
    assert re.fullmatch(r"bp_[0-9a-z]+_[0-9a-z]{6}", sid)
    assert generate_session_id() != generate_session_id()


def test_format_duration() -> None:
    assert format_duration(0) == "0s"
    assert format_duration(42_000) == "42s"
    assert format_duration(65_500) == "1m 5s"
