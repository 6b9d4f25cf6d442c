from __future__ import annotations

from dataclasses import dataclass

from .clock import Clock
from .cognitive_core import (
    RandomSource,
    SeededRng,
    TrialPhase,
    chance,
    clamp_difficulty,
    pick,
    shuffled,
)
from .game_engine import TrialGameHarness

GAME_ID = "color-stroop"
TIME_LIMIT_S = 45.0
ROUND_POOL_SIZE = 60
OPTION_COUNT = 4


@dataclass(frozen=True, slots=True)
class ColorDef:
    name: str
    name_ko: str
    hex: str


ALL_COLORS: tuple[ColorDef, ...] = (
    ColorDef(name="RED", name_ko="빨강", hex="#F44336"),
    ColorDef(name="BLUE", name_ko="파랑", hex="#2196F3"),
    ColorDef(name="GREEN", name_ko="초록", hex="#4CAF50"),
    ColorDef(name="YELLOW", name_ko="노랑", hex="#FFEB3B"),
    ColorDef(name="PURPLE", name_ko="보라", hex="#9C27B0"),
    ColorDef(name="ORANGE", name_ko="주황", hex="#FF9800"),
)


@dataclass(frozen=True, slots=True)
class StroopConfig:
    congruent_ratio: float
    display_time_ms: int  # answer window before the trial is auto-skipped
    num_colors: int


DIFFICULTY_CONFIG: dict[int, StroopConfig] = {
    1: StroopConfig(congruent_ratio=0.50, display_time_ms=3000, num_colors=4),
    2: StroopConfig(congruent_ratio=0.40, display_time_ms=2500, num_colors=4),
    3: StroopConfig(congruent_ratio=0.30, display_time_ms=2000, num_colors=5),
    4: StroopConfig(congruent_ratio=0.20, display_time_ms=1500, num_colors=5),
    5: StroopConfig(congruent_ratio=0.15, display_time_ms=1000, num_colors=6),
}


@dataclass(frozen=True, slots=True)
class StroopTrial:
    word: str
    word_ko: str
    ink_color: ColorDef  # the correct answer
    word_color: ColorDef  # the colour the word names
    is_congruent: bool
    options: tuple[ColorDef, ...]


@dataclass(frozen=True, slots=True)
class StroopPayload:
    index: int
    word: str
    ink_hex: str
    options: tuple[ColorDef, ...]


def config_for(difficulty: int) -> StroopConfig:
    return DIFFICULTY_CONFIG[clamp_difficulty(difficulty)]


class ColorStroopGenerator:
    def __init__(self, rng: RandomSource) -> None:
        self._rng = rng

    def generate(self, difficulty: int, count: int) -> list[StroopTrial]:
        cfg = config_for(difficulty)
        pool = ALL_COLORS[: cfg.num_colors]
        return [self._next_trial(cfg, pool) for _ in range(max(0, count))]

    def _next_trial(self, cfg: StroopConfig, pool: tuple[ColorDef, ...]) -> StroopTrial:
        is_congruent = chance(self._rng, cfg.congruent_ratio)
        word_color = pick(self._rng, pool)
        if is_congruent:
            ink = word_color
        else:
            ink = pick(self._rng, tuple(c for c in pool if c.name != word_color.name))

        # Every pool holds at least OPTION_COUNT colours, so three distinct
        # distractors always exist.
        distractors = shuffled(self._rng, [c for c in pool if c.name != ink.name])[: OPTION_COUNT - 1]
        options = tuple(shuffled(self._rng, [ink, *distractors]))

        return StroopTrial(
            word=word_color.name,
            word_ko=word_color.name_ko,
            ink_color=ink,
            word_color=word_color,
            is_congruent=is_congruent,
            options=options,
        )


class ColorStroopGame(TrialGameHarness):
    """Pick the ink colour, not the word. Responses are colour names."""

    game_id = GAME_ID
    title = "Color Stroop"

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
        if pool_size < 1:
            raise ValueError("pool_size must be >= 1")
        self._config = config_for(self._difficulty)
        self._trials = ColorStroopGenerator(rng).generate(self._difficulty, pool_size)
        self._index = 0

    @property
    def current_trial(self) -> StroopTrial | None:
        if self._phase in (TrialPhase.READY, TrialPhase.FINISHED):
            return None
        return self._trials[self._index]

    def _on_start(self, at_s: float) -> None:
        self._present(0, at_s)

    def _present(self, index: int, at_s: float) -> None:
        self._index = index
        self._enter(TrialPhase.RESPONSE, at_s=at_s, duration_ms=self._config.display_time_ms)

    def _advance(self, at_s: float) -> None:
        if self._index + 1 < len(self._trials):
            self._present(self._index + 1, at_s)
        else:
            self._complete(at_s=at_s)

    def _on_deadline(self, at_s: float) -> None:
        self._record(is_correct=False)
        self._advance(at_s)

    def _on_response(self, response: object, now_s: float) -> bool:
        if isinstance(response, ColorDef):
            name = response.name
        elif isinstance(response, str) and response.strip():
            name = response.strip().upper()
        else:
            return False

        trial = self._trials[self._index]
        self._record(is_correct=name == trial.ink_color.name, reaction_time_ms=self._phase_elapsed_ms())
        self._advance(now_s)
        return True

    def _prompt(self) -> str:
        if self.current_trial is None:
            return super()._prompt()
        return "Tap the ink colour, not the word"

    def _payload(self) -> StroopPayload | None:
        trial = self.current_trial
        if trial is None:
            return None
        return StroopPayload(index=self._index, word=trial.word, ink_hex=trial.ink_color.hex, options=trial.options)


def build_color_stroop_game(
    *,
    clock: Clock,
    seed: int,
    difficulty: int,
    time_limit_s: float = TIME_LIMIT_S,
) -> ColorStroopGame:
    return ColorStroopGame(clock=clock, rng=SeededRng(seed), difficulty=difficulty, time_limit_s=time_limit_s)
