from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from . import color_stroop, n_back, quick_math, sequence_memory, speed_match
from .clock import Clock
from .cognitive_core import CognitiveDomain, GameMode, RandomSource
from .game_engine import GameEngine


class DuplicateGameError(ValueError):
    pass


EngineFactory = Callable[..., GameEngine]


@dataclass(frozen=True, slots=True)
class MiniGameDefinition:
    id: str
    name: str
    name_ko: str
    description: str
    domain: CognitiveDomain
    estimated_duration_sec: int
    modes: frozenset[GameMode]
    generator_factory: Callable[[RandomSource], object]
    engine_factory: EngineFactory

    def build_engine(self, *, clock: Clock, seed: int, difficulty: int) -> GameEngine:
        return self.engine_factory(clock=clock, seed=seed, difficulty=difficulty)


@dataclass(frozen=True, slots=True)
class ModeConfig:
    title: str
    description: str
    game_count: int
    enabled: bool


MODE_CONFIG: dict[GameMode, ModeConfig] = {
    GameMode.REST: ModeConfig(
        title="Rest",
        description="A gentle check-in with three short games.",
        game_count=3,
        enabled=False,
    ),
    GameMode.ACTIVATION: ModeConfig(
        title="Activation",
        description="Wake your brain up with four quick games.",
        game_count=4,
        enabled=True,
    ),
    GameMode.DEVELOPMENT: ModeConfig(
        title="Development",
        description="Train working memory with one longer game.",
        game_count=1,
        enabled=True,
    ),
}


def mode_config(mode: GameMode | str) -> ModeConfig:
    try:
        return MODE_CONFIG[GameMode(mode)]
    except ValueError:
        raise ValueError(f"unknown game mode: {mode!r}") from None


class GameRegistry:
    """Explicit game catalogue, built once at startup and passed around."""

    def __init__(self) -> None:
        self._games: dict[str, MiniGameDefinition] = {}

    def register(self, definition: MiniGameDefinition) -> None:
        if definition.id in self._games:
            raise DuplicateGameError(f"game already registered: {definition.id}")
        self._games[definition.id] = definition

    def all_games(self) -> list[MiniGameDefinition]:
        return list(self._games.values())

    def games_for_mode(self, mode: GameMode | str) -> list[MiniGameDefinition]:
        m = GameMode(mode)
        return [g for g in self._games.values() if m in g.modes]

    def game_by_id(self, game_id: str) -> MiniGameDefinition | None:
        return self._games.get(game_id)

    def select_session_games(self, mode: GameMode | str, count: int | None = None) -> list[MiniGameDefinition]:
        n = mode_config(mode).game_count if count is None else int(count)
        return self.games_for_mode(mode)[: max(0, n)]

    def __len__(self) -> int:
        return len(self._games)

    def __contains__(self, game_id: object) -> bool:
        return game_id in self._games


_REST_AND_ACTIVATION = frozenset({GameMode.REST, GameMode.ACTIVATION})


def build_default_registry() -> GameRegistry:
    registry = GameRegistry()
    registry.register(
        MiniGameDefinition(
            id=speed_match.GAME_ID,
            name="Speed Match",
            name_ko="스피드 매치",
            description="Does this shape match the one before it?",
            domain=CognitiveDomain.PROCESSING,
            estimated_duration_sec=int(speed_match.TIME_LIMIT_S),
            modes=_REST_AND_ACTIVATION,
            generator_factory=speed_match.SpeedMatchGenerator,
            engine_factory=speed_match.build_speed_match_game,
        )
    )
    registry.register(
        MiniGameDefinition(
            id=color_stroop.GAME_ID,
            name="Color Stroop",
            name_ko="컬러 스트룹",
            description="Pick the ink colour, not the word.",
            domain=CognitiveDomain.ATTENTION,
            estimated_duration_sec=int(color_stroop.TIME_LIMIT_S),
            modes=_REST_AND_ACTIVATION,
            generator_factory=color_stroop.ColorStroopGenerator,
            engine_factory=color_stroop.build_color_stroop_game,
        )
    )
    registry.register(
        MiniGameDefinition(
            id=sequence_memory.GAME_ID,
            name="Sequence Memory",
            name_ko="순서 기억",
            description="Watch the tiles light up, then repeat the order.",
            domain=CognitiveDomain.MEMORY,
            estimated_duration_sec=int(sequence_memory.TIME_LIMIT_S),
            modes=_REST_AND_ACTIVATION,
            generator_factory=sequence_memory.SequenceMemoryGenerator,
            engine_factory=sequence_memory.build_sequence_memory_game,
        )
    )
    registry.register(
        MiniGameDefinition(
            id=quick_math.GAME_ID,
            name="Quick Math",
            name_ko="빠른 계산",
            description="Solve as many problems as you can.",
            domain=CognitiveDomain.PROCESSING,
            estimated_duration_sec=int(quick_math.TIME_LIMIT_S),
            modes=frozenset({GameMode.ACTIVATION}),
            generator_factory=quick_math.QuickMathGenerator,
            engine_factory=quick_math.build_quick_math_game,
        )
    )
    registry.register(
        MiniGameDefinition(
            id=n_back.GAME_ID,
            name="Spatial N-Back",
            name_ko="공간 N-백",
            description="Was the square here N steps ago?",
            domain=CognitiveDomain.MEMORY,
            estimated_duration_sec=int(n_back.TIME_LIMIT_S),
            modes=frozenset({GameMode.DEVELOPMENT}),
            generator_factory=n_back.NBackGenerator,
            engine_factory=n_back.build_n_back_game,
        )
    )
    return registry
