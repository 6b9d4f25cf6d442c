from __future__ import annotations

import pytest

from brainpulse.cognitive_core import CognitiveDomain, GameMode
from brainpulse.registry import (
    MODE_CONFIG,
    DuplicateGameError,
    GameRegistry,
    MiniGameDefinition,
    build_default_registry,
    mode_config,
)
from brainpulse.speed_match import SpeedMatchGame, SpeedMatchGenerator, build_speed_match_game


def _definition(game_id: str, *modes: GameMode) -> MiniGameDefinition:
    return MiniGameDefinition(
        id=game_id,
        name=game_id.title(),
        name_ko=game_id,
        description="",
        domain=CognitiveDomain.REACTION,
        estimated_duration_sec=45,
        modes=frozenset(modes),
        generator_factory=SpeedMatchGenerator,
        engine_factory=build_speed_match_game,
    )


def test_duplicate_registration_is_fatal() -> None:
    registry = GameRegistry()
    registry.register(_definition("a", GameMode.ACTIVATION))
    with pytest.raises(DuplicateGameError):
        registry.register(_definition("a", GameMode.REST))
    assert len(registry) == 1


def test_games_for_mode_keeps_registration_order() -> None:
    registry = GameRegistry()
    registry.register(_definition("c", GameMode.ACTIVATION))
    registry.register(_definition("a", GameMode.ACTIVATION, GameMode.REST))
    registry.register(_definition("b", GameMode.DEVELOPMENT))

    assert [g.id for g in registry.games_for_mode(GameMode.ACTIVATION)] == ["c", "a"]
    assert [g.id for g in registry.games_for_mode("rest")] == ["a"]
    assert registry.game_by_id("b") is not None
    assert registry.game_by_id("zzz") is None
    assert "c" in registry


def test_select_session_games_takes_first_n() -> None:
    registry = GameRegistry()
    for gid in ("a", "b", "c"):
        registry.register(_definition(gid, GameMode.ACTIVATION))
    assert [g.id for g in registry.select_session_games(GameMode.ACTIVATION, 2)] == ["a", "b"]
    assert registry.select_session_games(GameMode.DEVELOPMENT) == []


def test_default_registry_modes() -> None:
    registry = build_default_registry()
    assert [g.id for g in registry.all_games()] == [
        "speed-match",
        "color-stroop",
        "sequence-memory",
        "quick-math",
        "n-back",
    ]
    assert [g.id for g in registry.select_session_games(GameMode.ACTIVATION)] == [
        "speed-match",
        "color-stroop",
        "sequence-memory",
        "quick-math",
    ]
    assert [g.id for g in registry.select_session_games(GameMode.REST)] == [
        "speed-match",
        "color-stroop",
        "sequence-memory",
    ]
    assert [g.id for g in registry.select_session_games(GameMode.DEVELOPMENT)] == ["n-back"]


def test_mode_config() -> None:
    assert MODE_CONFIG[GameMode.ACTIVATION].game_count == 4
    assert MODE_CONFIG[GameMode.REST].enabled is False
    assert mode_config("development").game_count == 1
    with pytest.raises(ValueError):
        mode_config("nap")


def test_definition_builds_engine_at_level() -> None:
    class _Clock:
        def now(self) -> float:
            return 0.0

    definition = build_default_registry().game_by_id("speed-match")
    assert definition is not None
    engine = definition.build_engine(clock=_Clock(), seed=1, difficulty=4)
    assert isinstance(engine, SpeedMatchGame)
    assert engine.difficulty == 4


def test_default_registry_domains() -> None:
    registry = build_default_registry()
    domains = {g.id: g.domain for g in registry.all_games()}
    assert domains["speed-match"] is CognitiveDomain.PROCESSING
    assert domains["quick-math"] is CognitiveDomain.PROCESSING
