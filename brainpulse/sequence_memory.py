from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .clock import Clock
from .cognitive_core import (
    RandomSource,
    SeededRng,
    TrialPhase,
    clamp_difficulty,
    rand_int,
)
from .game_engine import TrialGameHarness

GAME_ID = "sequence-memory"
TIME_LIMIT_S = 45.0
MAX_STRIKES = 3
INPUT_WINDOW_PER_TILE_MS = 1500


@dataclass(frozen=True, slots=True)
class SequenceConfig:
    grid_size: int  # 3 means a 3x3 grid
    start_length: int
    max_length: int
    flash_duration_ms: int
    pause_between_ms: int


DIFFICULTY_CONFIG: dict[int, SequenceConfig] = {
    1: SequenceConfig(grid_size=3, start_length=3, max_length=6, flash_duration_ms=800, pause_between_ms=300),
    2: SequenceConfig(grid_size=3, start_length=3, max_length=7, flash_duration_ms=650, pause_between_ms=250),
    3: SequenceConfig(grid_size=4, start_length=4, max_length=8, flash_duration_ms=500, pause_between_ms=200),
    4: SequenceConfig(grid_size=4, start_length=5, max_length=9, flash_duration_ms=400, pause_between_ms=150),
    5: SequenceConfig(grid_size=5, start_length=5, max_length=9, flash_duration_ms=300, pause_between_ms=100),
}


@dataclass(frozen=True, slots=True)
class SequenceRound:
    sequence: tuple[int, ...]  # tile indices, row-major
    grid_size: int


@dataclass(frozen=True, slots=True)
class SequenceCheck:
    correct: bool
    failed_at: int  # first mismatching index, -1 when none


@dataclass(frozen=True, slots=True)
class SequencePayload:
    grid_size: int
    sequence_length: int
    highlighted_tile: int | None  # lit tile while the sequence plays back
    entered: tuple[int, ...]
    strikes: int


def config_for(difficulty: int) -> SequenceConfig:
    return DIFFICULTY_CONFIG[clamp_difficulty(difficulty)]


def check_sequence(target: Sequence[int], user_input: Sequence[int]) -> SequenceCheck:
    """Compare the user's taps with the target prefix of the same length."""

    for i, tile in enumerate(user_input):
        if i >= len(target) or tile != target[i]:
            return SequenceCheck(correct=False, failed_at=i)
    return SequenceCheck(correct=True, failed_at=-1)


class SequenceMemoryGenerator:
    def __init__(self, rng: RandomSource) -> None:
        self._rng = rng

    def generate_round(self, grid_size: int, length: int) -> SequenceRound:
        tiles = grid_size * grid_size
        if tiles < 2:
            raise ValueError("grid_size must be >= 2")
        sequence: list[int] = []
        for _ in range(max(0, length)):
            if not sequence:
                sequence.append(rand_int(self._rng, 0, tiles - 1))
                continue
            # Repeats are fine, just never the same tile twice in a row.
            nxt = rand_int(self._rng, 0, tiles - 2)
            sequence.append(nxt + 1 if nxt >= sequence[-1] else nxt)
        return SequenceRound(sequence=tuple(sequence), grid_size=grid_size)

    def generate(self, difficulty: int, count: int, *, length: int | None = None) -> list[SequenceRound]:
        cfg = config_for(difficulty)
        n = cfg.start_length if length is None else length
        return [self.generate_round(cfg.grid_size, n) for _ in range(max(0, count))]


class SequenceMemoryGame(TrialGameHarness):
    """Watch the tiles flash, then tap them back in order.

    Responses are tile indices. A full correct replay is one correct round and
    grows the sequence; a wrong tap or an expired input window is a strike.
    """

    game_id = GAME_ID
    title = "Sequence Memory"

    def __init__(
        self,
        *,
        clock: Clock,
        rng: RandomSource,
        difficulty: int,
        time_limit_s: float = TIME_LIMIT_S,
        max_strikes: int = MAX_STRIKES,
    ) -> None:
        super().__init__(clock=clock, difficulty=difficulty, time_limit_s=time_limit_s)
        if max_strikes < 1:
            raise ValueError("max_strikes must be >= 1")
        self._config = config_for(self._difficulty)
        self._generator = SequenceMemoryGenerator(rng)
        self._max_strikes = int(max_strikes)
        self._length = self._config.start_length
        self._round: SequenceRound | None = None
        self._entered: list[int] = []
        self._strikes = 0

    @property
    def strikes(self) -> int:
        return self._strikes

    @property
    def sequence_length(self) -> int:
        return self._length

    @property
    def current_trial(self) -> SequenceRound | None:
        if self._phase in (TrialPhase.READY, TrialPhase.FINISHED):
            return None
        return self._round

    def _on_start(self, at_s: float) -> None:
        self._new_round(at_s)

    def _new_round(self, at_s: float) -> None:
        self._round = self._generator.generate_round(self._config.grid_size, self._length)
        self._entered = []
        step = self._config.flash_duration_ms + self._config.pause_between_ms
        self._enter(TrialPhase.STIMULUS, at_s=at_s, duration_ms=step * self._length)

    def _strike(self, at_s: float) -> None:
        self._strikes += 1
        self._record(is_correct=False)
        if self._strikes >= self._max_strikes:
            self._complete(at_s=at_s)
        else:
            self._new_round(at_s)

    def _on_deadline(self, at_s: float) -> None:
        if self._phase is TrialPhase.STIMULUS:
            self._enter(TrialPhase.RESPONSE, at_s=at_s, duration_ms=INPUT_WINDOW_PER_TILE_MS * self._length)
        elif self._phase is TrialPhase.RESPONSE:
            self._strike(at_s)

    def _on_response(self, response: object, now_s: float) -> bool:
        tiles = self._config.grid_size * self._config.grid_size
        if isinstance(response, bool) or not isinstance(response, int) or not 0 <= response < tiles:
            return False
        assert self._round is not None

        self._entered.append(response)
        if not check_sequence(self._round.sequence, self._entered).correct:
            self._strike(now_s)
            return True

        if len(self._entered) == len(self._round.sequence):
            self._record(is_correct=True)
            self._length = min(self._length + 1, self._config.max_length)
            self._new_round(now_s)
        return True

    def _highlighted_tile(self) -> int | None:
        if self._phase is not TrialPhase.STIMULUS or self._round is None:
            return None
        step = self._config.flash_duration_ms + self._config.pause_between_ms
        elapsed = self._phase_elapsed_ms()
        pos = int(elapsed // step)
        if pos >= len(self._round.sequence) or elapsed - pos * step >= self._config.flash_duration_ms:
            return None
        return self._round.sequence[pos]

    def _prompt(self) -> str:
        if self.current_trial is None:
            return super()._prompt()
        if self._phase is TrialPhase.STIMULUS:
            return "Watch the sequence"
        return "Repeat the sequence"

    def _payload(self) -> SequencePayload | None:
        if self.current_trial is None:
            return None
        return SequencePayload(
            grid_size=self._config.grid_size,
            sequence_length=self._length,
            highlighted_tile=self._highlighted_tile(),
            entered=tuple(self._entered),
            strikes=self._strikes,
        )

    def _raw_metrics(self) -> dict[str, float]:
        return {"max_sequence_length": float(self._length), "strikes": float(self._strikes)}


def build_sequence_memory_game(
    *,
    clock: Clock,
    seed: int,
    difficulty: int,
    time_limit_s: float = TIME_LIMIT_S,
) -> SequenceMemoryGame:
    return SequenceMemoryGame(clock=clock, rng=SeededRng(seed), difficulty=difficulty, time_limit_s=time_limit_s)
