from __future__ import annotations

import math
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
    rand_int,
    shuffled,
)
from .game_engine import TrialGameHarness

GAME_ID = "quick-math"
TIME_LIMIT_S = 45.0
ROUND_POOL_SIZE = 50
DISTRACTOR_COUNT = 3
# Rejected draws allowed before the perturbation range is widened.
DISTRACTOR_BATCH = 32


class MathOperator(StrEnum):
    ADD = "+"
    SUB = "-"
    MUL = "×"
    DIV = "÷"


@dataclass(frozen=True, slots=True)
class MathConfig:
    max_digits: int
    operators: tuple[MathOperator, ...]
    time_per_problem_ms: int


_ADD_SUB = (MathOperator.ADD, MathOperator.SUB)
_ADD_SUB_MUL = (*_ADD_SUB, MathOperator.MUL)
_ALL_OPS = (*_ADD_SUB_MUL, MathOperator.DIV)

DIFFICULTY_CONFIG: dict[int, MathConfig] = {
    1: MathConfig(max_digits=1, operators=_ADD_SUB, time_per_problem_ms=5000),
    2: MathConfig(max_digits=1, operators=_ADD_SUB_MUL, time_per_problem_ms=4000),
    3: MathConfig(max_digits=2, operators=_ADD_SUB_MUL, time_per_problem_ms=3500),
    4: MathConfig(max_digits=2, operators=_ALL_OPS, time_per_problem_ms=2500),
    5: MathConfig(max_digits=3, operators=_ALL_OPS, time_per_problem_ms=2000),
}


@dataclass(frozen=True, slots=True)
class MathProblem:
    a: int
    b: int
    operator: MathOperator
    answer: int
    display: str  # e.g. "7 + 3 = ?"
    choices: tuple[int, ...]  # shuffled, contains answer exactly once


@dataclass(frozen=True, slots=True)
class MathPayload:
    index: int
    display: str
    choices: tuple[int, ...]


def config_for(difficulty: int) -> MathConfig:
    return DIFFICULTY_CONFIG[clamp_difficulty(difficulty)]


def max_for_digits(digits: int) -> int:
    return 10**digits - 1


class QuickMathGenerator:
    def __init__(self, rng: RandomSource) -> None:
        self._rng = rng

    def generate(self, difficulty: int, count: int) -> list[MathProblem]:
        return [self.next_problem(difficulty) for _ in range(max(0, count))]

    def next_problem(self, difficulty: int) -> MathProblem:
        cfg = config_for(difficulty)
        op = pick(self._rng, cfg.operators)
        a, b, answer = self._operands(op, cfg.max_digits)
        choices = tuple(shuffled(self._rng, [answer, *self._distractors(answer, DISTRACTOR_COUNT)]))
        return MathProblem(a=a, b=b, operator=op, answer=answer, display=f"{a} {op} {b} = ?", choices=choices)

    def _operands(self, op: MathOperator, max_digits: int) -> tuple[int, int, int]:
        hi = max_for_digits(max_digits)
        single = max_digits <= 1

        if op is MathOperator.ADD:
            a = rand_int(self._rng, 1, hi)
            b = rand_int(self._rng, 1, hi)
            return a, b, a + b
        if op is MathOperator.SUB:
            # a >= b keeps the result non-negative.
            a = rand_int(self._rng, 1, hi)
            b = rand_int(self._rng, 1, a)
            return a, b, a - b
        if op is MathOperator.MUL:
            a = rand_int(self._rng, 2, min(hi, 9 if single else 20))
            b = rand_int(self._rng, 2, min(hi, 9 if single else 12))
            return a, b, a * b

        # Division is built backwards (a = b * answer) so there is no remainder.
        answer = rand_int(self._rng, 2, min(hi, 9 if single else 15))
        b = rand_int(self._rng, 2, min(12, hi))
        return answer * b, b, answer

    def _distractors(self, answer: int, count: int) -> list[int]:
        found: list[int] = []
        spread = max(5, math.ceil(answer * 0.2))
        rejected = 0
        while len(found) < count:
            offset = rand_int(self._rng, 1, spread)
            value = answer + offset if chance(self._rng, 0.5) else answer - offset
            if value >= 0 and value != answer and value not in found:
                found.append(value)
                continue
            rejected += 1
            if rejected >= DISTRACTOR_BATCH:
                rejected = 0
                spread *= 2
        return found


class QuickMathGame(TrialGameHarness):
    """Multiple-choice arithmetic. Responses are the chosen integer."""

    game_id = GAME_ID
    title = "Quick Math"

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
        self._problems = QuickMathGenerator(rng).generate(self._difficulty, pool_size)
        self._index = 0

    @property
    def current_trial(self) -> MathProblem | None:
        if self._phase in (TrialPhase.READY, TrialPhase.FINISHED):
            return None
        return self._problems[self._index]

    def _on_start(self, at_s: float) -> None:
        self._present(0, at_s)

    def _present(self, index: int, at_s: float) -> None:
        self._index = index
        self._enter(TrialPhase.RESPONSE, at_s=at_s, duration_ms=self._config.time_per_problem_ms)

    def _advance(self, at_s: float) -> None:
        if self._index + 1 < len(self._problems):
            self._present(self._index + 1, at_s)
        else:
            self._complete(at_s=at_s)

    def _on_deadline(self, at_s: float) -> None:
        self._record(is_correct=False)
        self._advance(at_s)

    def _on_response(self, response: object, now_s: float) -> bool:
        if isinstance(response, bool) or not isinstance(response, int):
            return False
        problem = self._problems[self._index]
        self._record(is_correct=response == problem.answer, reaction_time_ms=self._phase_elapsed_ms())
        self._advance(now_s)
        return True

    def _prompt(self) -> str:
        problem = self.current_trial
        if problem is None:
            return super()._prompt()
        return problem.display

    def _payload(self) -> MathPayload | None:
        problem = self.current_trial
        if problem is None:
            return None
        return MathPayload(index=self._index, display=problem.display, choices=problem.choices)


def build_quick_math_game(
    *,
    clock: Clock,
    seed: int,
    difficulty: int,
    time_limit_s: float = TIME_LIMIT_S,
) -> QuickMathGame:
    return QuickMathGame(clock=clock, rng=SeededRng(seed), difficulty=difficulty, time_limit_s=time_limit_s)
