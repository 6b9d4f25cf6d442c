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
    rand_int,
)
from .game_engine import TrialGameHarness

GAME_ID = "n-back"
TIME_LIMIT_S = 90.0
RESPONSE_WINDOW_MS = 2000

GRID_SIZE = 3
GRID_CELLS = GRID_SIZE * GRID_SIZE

SYMBOLS: tuple[str, ...] = ("🧠", "⚡", "💡", "🔮", "✨", "🌟", "💫", "🎯", "🧩")
STIMULUS_COLORS: tuple[str, ...] = ("#6C5CE7", "#00CEC9", "#00B894", "#0984E3", "#FDCB6E", "#E17055")


@dataclass(frozen=True, slots=True)
class NBackConfig:
    n_value: int
    stimulus_time_ms: int
    inter_stimulus_ms: int
    round_count: int
    match_ratio: float


DIFFICULTY_CONFIG: dict[int, NBackConfig] = {
    1: NBackConfig(n_value=1, stimulus_time_ms=2500, inter_stimulus_ms=500, round_count=15, match_ratio=0.35),
    2: NBackConfig(n_value=1, stimulus_time_ms=2000, inter_stimulus_ms=400, round_count=18, match_ratio=0.35),
    3: NBackConfig(n_value=2, stimulus_time_ms=2000, inter_stimulus_ms=400, round_count=20, match_ratio=0.30),
    4: NBackConfig(n_value=2, stimulus_time_ms=1500, inter_stimulus_ms=300, round_count=22, match_ratio=0.30),
    5: NBackConfig(n_value=3, stimulus_time_ms=1200, inter_stimulus_ms=300, round_count=25, match_ratio=0.25),
}


@dataclass(frozen=True, slots=True)
class NBackTrial:
    index: int
    position: int  # 0..GRID_CELLS-1, row-major
    symbol: str
    color: str
    is_match: bool  # position equals the one shown n trials earlier


@dataclass(frozen=True, slots=True)
class NBackPayload:
    index: int
    n_value: int
    grid_size: int
    active_cell: int | None  # None while the grid is blank
    symbol: str
    color: str
    scorable: bool


def config_for(difficulty: int) -> NBackConfig:
    return DIFFICULTY_CONFIG[clamp_difficulty(difficulty)]


class NBackGenerator:
    def __init__(self, rng: RandomSource) -> None:
        self._rng = rng

    def generate(self, difficulty: int, count: int | None = None) -> list[NBackTrial]:
        cfg = config_for(difficulty)
        total = cfg.round_count if count is None else max(0, int(count))
        n = cfg.n_value

        trials: list[NBackTrial] = []
        for i in range(total):
            if i < n:
                # Filler: nothing n-back to compare against yet.
                position = rand_int(self._rng, 0, GRID_CELLS - 1)
                is_match = False
            else:
                is_match = chance(self._rng, cfg.match_ratio)
                n_back_position = trials[i - n].position
                position = n_back_position if is_match else self._position_excluding(n_back_position)
            trials.append(
                NBackTrial(
                    index=i,
                    position=position,
                    symbol=pick(self._rng, SYMBOLS),
                    color=pick(self._rng, STIMULUS_COLORS),
                    is_match=is_match,
                )
            )
        return trials

    def _position_excluding(self, exclude: int) -> int:
        pos = rand_int(self._rng, 0, GRID_CELLS - 2)
        return pos + 1 if pos >= exclude else pos


class NBackGame(TrialGameHarness):
    """Spatial N-back. Responses are booleans: True means "matches n back".

    Each trial runs stimulus -> (response window, scorable trials only) -> gap.
    A scorable trial takes one answer during the stimulus or the window.
    """

    game_id = GAME_ID
    title = "N-Back"
    accepting_phases = frozenset({TrialPhase.STIMULUS, TrialPhase.RESPONSE})

    def __init__(
        self,
        *,
        clock: Clock,
        rng: RandomSource,
        difficulty: int,
        round_count: int | None = None,
        time_limit_s: float = TIME_LIMIT_S,
    ) -> None:
        super().__init__(clock=clock, difficulty=difficulty, time_limit_s=time_limit_s)
        self._config = config_for(self._difficulty)
        self._trials = NBackGenerator(rng).generate(self._difficulty, round_count)
        if not self._trials:
            raise ValueError("round_count must be >= 1")
        self._index = 0
        self._responded = False
        self._trial_started_at_s = 0.0

    @property
    def n_value(self) -> int:
        return self._config.n_value

    @property
    def current_trial(self) -> NBackTrial | None:
        if self._phase in (TrialPhase.READY, TrialPhase.FINISHED):
            return None
        return self._trials[self._index]

    def _scorable(self) -> bool:
        return self._index >= self._config.n_value

    def _accepting_input(self) -> bool:
        return super()._accepting_input() and self._scorable() and not self._responded

    def _on_start(self, at_s: float) -> None:
        self._present(0, at_s)

    def _present(self, index: int, at_s: float) -> None:
        self._index = index
        self._responded = False
        self._trial_started_at_s = at_s
        self._enter(TrialPhase.STIMULUS, at_s=at_s, duration_ms=self._config.stimulus_time_ms)

    def _to_gap(self, at_s: float) -> None:
        self._enter(TrialPhase.GAP, at_s=at_s, duration_ms=self._config.inter_stimulus_ms)

    def _on_deadline(self, at_s: float) -> None:
        if self._phase is TrialPhase.STIMULUS:
            if self._scorable() and not self._responded:
                self._enter(TrialPhase.RESPONSE, at_s=at_s, duration_ms=RESPONSE_WINDOW_MS)
            else:
                self._to_gap(at_s)
        elif self._phase is TrialPhase.RESPONSE:
            # Window closed without an answer.
            self._record(is_correct=False)
            self._to_gap(at_s)
        elif self._phase is TrialPhase.GAP:
            if self._index + 1 < len(self._trials):
                self._present(self._index + 1, at_s)
            else:
                self._complete(at_s=at_s)

    def _on_response(self, response: object, now_s: float) -> bool:
        if not isinstance(response, bool):
            return False
        self._responded = True
        trial = self._trials[self._index]
        self._record(
            is_correct=response == trial.is_match,
            reaction_time_ms=(now_s - self._trial_started_at_s) * 1000.0,
        )
        self._to_gap(now_s)
        return True

    def _prompt(self) -> str:
        if self.current_trial is None:
            return super()._prompt()
        if not self._scorable():
            return "Remember the position"
        return f"Same position as {self._config.n_value} back?"

    def _payload(self) -> NBackPayload | None:
        trial = self.current_trial
        if trial is None:
            return None
        return NBackPayload(
            index=self._index,
            n_value=self._config.n_value,
            grid_size=GRID_SIZE,
            active_cell=trial.position if self._phase is TrialPhase.STIMULUS else None,
            symbol=trial.symbol,
            color=trial.color,
            scorable=self._scorable(),
        )

    def _raw_metrics(self) -> dict[str, float]:
        return {"n_value": float(self._config.n_value), "total_rounds": float(len(self._trials))}


def build_n_back_game(
    *,
    clock: Clock,
    seed: int,
    difficulty: int,
    time_limit_s: float = TIME_LIMIT_S,
) -> NBackGame:
    return NBackGame(clock=clock, rng=SeededRng(seed), difficulty=difficulty, time_limit_s=time_limit_s)
