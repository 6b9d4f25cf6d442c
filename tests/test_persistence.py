from __future__ import annotations

import json
from pathlib import Path

from brainpulse.adaptive import DifficultyProfile
from brainpulse.cognitive_core import ConditionReport, GameMode, GameResult, SessionData
from brainpulse.persistence import JsonProfileStore, SqliteSessionStore, open_db


def _session(sid: str, started_at: str, composite: int) -> SessionData:
    result = GameResult(
        game_id="quick-math",
        score=composite,
        duration_ms=45_000,
        accuracy=0.8,
        difficulty=3,
        correct_count=16,
        total_count=20,
        reaction_time_ms=812.0,
        raw_metrics={"n_value": 2.0},
    )
    return SessionData(
        id=sid,
        started_at=started_at,
        ended_at=started_at,
        mode=GameMode.ACTIVATION,
        game_results=(result,),
        composite_score=composite,
        condition_before=ConditionReport(sleep_quality=4, energy_level=3, stress_level=2),
    )


def test_profile_store_missing_file_gives_default(tmp_path: Path) -> None:
    store = JsonProfileStore(tmp_path / "profile.json")
    assert store.get().game_levels == {}


def test_profile_store_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "profile.json"
    store = JsonProfileStore(path)
    store.set(DifficultyProfile(game_levels={"n-back": 4, "quick-math": 1}, updated_at="2026-05-01T00:00:00Z"))

    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["version"] == 1
    assert doc["game_levels"] == {"n-back": 4, "quick-math": 1}
    assert store.get() == DifficultyProfile(game_levels={"n-back": 4, "quick-math": 1}, updated_at="2026-05-01T00:00:00Z")
    assert not path.with_suffix(".json.tmp").exists()


def test_profile_store_corrupt_file_gives_default(tmp_path: Path) -> None:
    path = tmp_path / "profile.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonProfileStore(path).get().game_levels == {}

    path.write_text(json.dumps({"version": 99, "game_levels": {"n-back": 3}}), encoding="utf-8")
    assert JsonProfileStore(path).get().game_levels == {}


def test_profile_store_clamps_levels_on_load(tmp_path: Path) -> None:
    path = tmp_path / "profile.json"
    path.write_text(
        json.dumps({"version": 1, "game_levels": {"a": 9, "b": 0, "c": "x", "d": True}, "updated_at": "t"}),
        encoding="utf-8",
    )
    assert JsonProfileStore(path).get().game_levels == {"a": 5, "b": 1}


def test_profile_store_clamps_infinite_levels(tmp_path: Path) -> None:
    path = tmp_path / "profile.json"
    path.write_text(
        '{"version": 1, "game_levels": {"n-back": 1e999, "quick-math": -1e999}, "updated_at": "t"}',
        encoding="utf-8",
    )
    assert JsonProfileStore(path).get().game_levels == {"n-back": 5, "quick-math": 1}


def test_schema_migration_sets_user_version(tmp_path: Path) -> None:
    conn = open_db(tmp_path / "h.sqlite3")
    try:
        assert conn.execute("PRAGMA user_version;").fetchone()[0] == 1
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert {"sessions", "game_results", "daily_summaries"} <= tables
    finally:
        conn.close()


def test_session_store_round_trip(tmp_path: Path) -> None:
    store = SqliteSessionStore(tmp_path / "h.sqlite3")
    try:
        original = _session("bp_1", "2026-03-01T08:00:00.000000Z", 70)
        store.save_session(original)

        loaded = store.recent_sessions(5)
        assert loaded == [original]
        assert store.session_count_for_date("2026-03-01") == 1
        assert store.session_count_for_date("2026-03-02") == 0
    finally:
        store.close()


def test_daily_summary_and_streak(tmp_path: Path) -> None:
    store = SqliteSessionStore(tmp_path / "h.sqlite3")
    try:
        store.save_session(_session("bp_1", "2026-03-01T08:00:00Z", 60))
        store.save_session(_session("bp_2", "2026-03-02T08:00:00Z", 70))
        store.save_session(_session("bp_3", "2026-03-02T20:00:00Z", 90))
        store.save_session(_session("bp_4", "2026-03-04T08:00:00Z", 50))

        days = {d["date"]: d for d in store.daily_summaries(10)}
        assert days["2026-03-02"]["avg_score"] == 80.0
        assert days["2026-03-02"]["session_count"] == 2
        assert days["2026-03-02"]["best_score"] == 90
        assert days["2026-03-01"]["streak_count"] == 1
        assert days["2026-03-02"]["streak_count"] == 2
        assert days["2026-03-04"]["streak_count"] == 1

        assert [s.id for s in store.recent_sessions(2)] == ["bp_4", "bp_3"]
    finally:
        store.close()
