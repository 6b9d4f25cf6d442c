"""Rule-based adaptive difficulty.

Adjusts the level of each game from its latest result:

- score >= 85 and accuracy >= 0.90 -> one level up
- score <= 40 or accuracy <= 0.50  -> one level down
- otherwise                        -> unchanged

The increase rule is evaluated first, so if the thresholds are ever tuned to
overlap an increase wins.  Levels are always clamped to [1, 5].
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from .cognitive_core import DEFAULT_DIFFICULTY, GameResult, clamp_difficulty

if TYPE_CHECKING:
    from .persistence import ProfileStore

logger = logging.getLogger("brainpulse.adaptive")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


@dataclass(frozen=True, slots=True)
class AdaptiveThresholds:
    score_up: float = 85.0
    accuracy_up: float = 0.90
    score_down: float = 40.0
    accuracy_down: float = 0.50


@dataclass(frozen=True, slots=True)
class DifficultyProfile:
    game_levels: dict[str, int] = field(default_factory=dict)
    updated_at: str = ""

    def level_for(self, game_id: str) -> int:
        level = self.game_levels.get(game_id)
        return DEFAULT_DIFFICULTY if level is None else clamp_difficulty(level)


def calculate_new_difficulty(
    current: int,
    result: GameResult,
    thresholds: AdaptiveThresholds = AdaptiveThresholds(),
) -> int:
    current = clamp_difficulty(current)
    if result.score >= thresholds.score_up and result.accuracy >= thresholds.accuracy_up:
        return clamp_difficulty(current + 1)
    if result.score <= thresholds.score_down or result.accuracy <= thresholds.accuracy_down:
        return clamp_difficulty(current - 1)
    return current


class DifficultyController:
    """Reads and updates per-game levels through a ProfileStore."""

    def __init__(
        self,
        store: ProfileStore,
        *,
        thresholds: AdaptiveThresholds | None = None,
        now: Callable[[], str] = utc_now_iso,
    ) -> None:
        self._store = store
        self._thresholds = thresholds or AdaptiveThresholds()
        self._now = now

    def difficulty_for_game(self, game_id: str) -> int:
        return self._store.get().level_for(game_id)

    def update(self, result: GameResult) -> int:
        """Apply one result; the profile is only written when the level moves."""

        profile = self._store.get()
        current = profile.level_for(result.game_id)
        new_level = calculate_new_difficulty(current, result, self._thresholds)

        if new_level != current:
            levels = dict(profile.game_levels)
            levels[result.game_id] = new_level
            self._store.set(DifficultyProfile(game_levels=levels, updated_at=self._now()))
            logger.info("difficulty %s: %d -> %d", result.game_id, current, new_level)

        return new_level

    def reset(self) -> None:
        self._store.set(DifficultyProfile(game_levels={}, updated_at=self._now()))
