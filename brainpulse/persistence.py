from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date, timedelta
from pathlib import Path
from typing import Protocol

from .adaptive import DifficultyProfile, utc_now_iso
from .cognitive_core import (
    ConditionReport,
    GameMode,
    GameResult,
    SessionData,
    clamp_difficulty,
)

logger = logging.getLogger("brainpulse.persistence")

SCHEMA_VERSION = 1
PROFILE_FORMAT_VERSION = 1


class ProfileStore(Protocol):
    def get(self) -> DifficultyProfile: ...
    def set(self, profile: DifficultyProfile) -> None: ...


class SessionStore(Protocol):
    def save_session(self, session: SessionData) -> None: ...


class InMemoryProfileStore:
    def __init__(self, profile: DifficultyProfile | None = None) -> None:
        self._profile = profile
        self.writes = 0

    def get(self) -> DifficultyProfile:
        if self._profile is None:
            return DifficultyProfile(game_levels={}, updated_at=utc_now_iso())
        return self._profile

    def set(self, profile: DifficultyProfile) -> None:
        self._profile = profile
        self.writes += 1


class JsonProfileStore:
    """Difficulty profile persisted as a small versioned JSON document."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> DifficultyProfile:
        if not self._path.exists():
            return DifficultyProfile(game_levels={}, updated_at=utc_now_iso())
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("unreadable difficulty profile %s: %s", self._path, exc)
            return DifficultyProfile(game_levels={}, updated_at=utc_now_iso())
        return _profile_from_payload(payload)

    def set(self, profile: DifficultyProfile) -> None:
        payload = {
            "version": PROFILE_FORMAT_VERSION,
            "game_levels": {k: clamp_difficulty(v) for k, v in profile.game_levels.items()},
            "updated_at": profile.updated_at,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self._path)


def _profile_from_payload(payload: object) -> DifficultyProfile:
    if not isinstance(payload, dict):
        logger.warning("difficulty profile is not an object; using defaults")
        return DifficultyProfile(game_levels={}, updated_at=utc_now_iso())

    version = payload.get("version")
    if version != PROFILE_FORMAT_VERSION:
        logger.warning("unsupported difficulty profile version %r; using defaults", version)
        return DifficultyProfile(game_levels={}, updated_at=utc_now_iso())

    levels: dict[str, int] = {}
    raw_levels = payload.get("game_levels")
    if isinstance(raw_levels, dict):
        for game_id, level in raw_levels.items():
            if isinstance(level, (int, float)) and not isinstance(level, bool):
                levels[str(game_id)] = clamp_difficulty(level)

    updated_at = payload.get("updated_at")
    return DifficultyProfile(
        game_levels=levels,
        updated_at=str(updated_at) if updated_at else utc_now_iso(),
    )


def open_db(path: Path | str) -> sqlite3.Connection:
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    if str(path) != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
    _migrate(conn)
    return conn


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                started_at TEXT NOT NULL,
                ended_at TEXT NOT NULL,
                mode TEXT NOT NULL,
                composite_score INTEGER NOT NULL,
                sleep_quality INTEGER NOT NULL,
                energy_level INTEGER NOT NULL,
                stress_level INTEGER NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS game_results (
                id INTEGER PRIMARY KEY,
                session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
                seq INTEGER NOT NULL,
                game_id TEXT NOT NULL,
                score INTEGER NOT NULL,
                duration_ms INTEGER NOT NULL,
                accuracy REAL NOT NULL,
                reaction_time_ms REAL,
                difficulty INTEGER NOT NULL,
                correct_count INTEGER NOT NULL,
                total_count INTEGER NOT NULL,
                raw_metrics TEXT
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS daily_summaries (
                date TEXT PRIMARY KEY,
                avg_score REAL NOT NULL,
                session_count INTEGER NOT NULL,
                best_score INTEGER NOT NULL,
                streak_count INTEGER NOT NULL
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_started_at ON sessions(started_at);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_game_results_session ON game_results(session_id, seq);")
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


class SqliteSessionStore:
    """Session history: sessions -> game_results, plus one summary row per day."""

    def __init__(self, path: Path | str) -> None:
        if isinstance(path, Path):
            path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = open_db(path)

    def close(self) -> None:
        self._conn.close()

    def save_session(self, session: SessionData) -> None:
        cond = session.condition_before
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO sessions(
                    id, started_at, ended_at, mode, composite_score,
                    sleep_quality, energy_level, stress_level
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id,
                    session.started_at,
                    session.ended_at,
                    str(session.mode.value),
                    int(session.composite_score),
                    int(cond.sleep_quality),
                    int(cond.energy_level),
                    int(cond.stress_level),
                ),
            )
            for seq, r in enumerate(session.game_results):
                self._conn.execute(
                    """
                    INSERT INTO game_results(
                        session_id, seq, game_id, score, duration_ms, accuracy,
                        reaction_time_ms, difficulty, correct_count, total_count, raw_metrics
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        session.id,
                        seq,
                        r.game_id,
                        int(r.score),
                        int(r.duration_ms),
                        float(r.accuracy),
                        r.reaction_time_ms,
                        int(r.difficulty),
                        int(r.correct_count),
                        int(r.total_count),
                        None if r.raw_metrics is None else json.dumps(r.raw_metrics, sort_keys=True),
                    ),
                )
            self._refresh_daily_summary(session.started_at[:10])

    def _refresh_daily_summary(self, day: str) -> None:
        row = self._conn.execute(
            """
            SELECT AVG(composite_score) AS avg_score,
                   COUNT(*) AS session_count,
                   MAX(composite_score) AS best_score
            FROM sessions WHERE substr(started_at, 1, 10) = ?
            """,
            (day,),
        ).fetchone()
        if row is None or int(row["session_count"]) == 0:
            return

        prev = (date.fromisoformat(day) - timedelta(days=1)).isoformat()
        prev_row = self._conn.execute(
            "SELECT streak_count FROM daily_summaries WHERE date = ?", (prev,)
        ).fetchone()
        streak = 1 if prev_row is None else int(prev_row["streak_count"]) + 1

        self._conn.execute(
            """
            INSERT INTO daily_summaries(date, avg_score, session_count, best_score, streak_count)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(date) DO UPDATE SET
                avg_score = excluded.avg_score,
                session_count = excluded.session_count,
                best_score = excluded.best_score,
                streak_count = excluded.streak_count
            """,
            (day, float(row["avg_score"]), int(row["session_count"]), int(row["best_score"]), streak),
        )

    def recent_sessions(self, limit: int = 10) -> list[SessionData]:
        rows = self._conn.execute(
            "SELECT * FROM sessions ORDER BY started_at DESC LIMIT ?", (int(limit),)
        ).fetchall()
        return [self._session_from_row(row) for row in rows]

    def daily_summaries(self, days: int = 30) -> list[dict[str, object]]:
        rows = self._conn.execute(
            "SELECT * FROM daily_summaries ORDER BY date DESC LIMIT ?", (int(days),)
        ).fetchall()
        return [
            {
                "date": row["date"],
                "avg_score": float(row["avg_score"]),
                "session_count": int(row["session_count"]),
                "best_score": int(row["best_score"]),
                "streak_count": int(row["streak_count"]),
            }
            for row in rows
        ]

    def session_count_for_date(self, day: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM sessions WHERE substr(started_at, 1, 10) = ?", (day,)
        ).fetchone()
        return int(row[0]) if row else 0

    def _session_from_row(self, row: sqlite3.Row) -> SessionData:
        result_rows = self._conn.execute(
            "SELECT * FROM game_results WHERE session_id = ? ORDER BY seq", (row["id"],)
        ).fetchall()
        results = tuple(
            GameResult(
                game_id=r["game_id"],
                score=int(r["score"]),
                duration_ms=int(r["duration_ms"]),
                accuracy=float(r["accuracy"]),
                difficulty=int(r["difficulty"]),
                correct_count=int(r["correct_count"]),
                total_count=int(r["total_count"]),
                reaction_time_ms=r["reaction_time_ms"],
                raw_metrics=None if r["raw_metrics"] is None else json.loads(r["raw_metrics"]),
            )
            for r in result_rows
        )
        return SessionData(
            id=row["id"],
            started_at=row["started_at"],
            ended_at=row["ended_at"],
            mode=GameMode(row["mode"]),
            game_results=results,
            composite_score=int(row["composite_score"]),
            condition_before=ConditionReport(
                sleep_quality=int(row["sleep_quality"]),
                energy_level=int(row["energy_level"]),
                stress_level=int(row["stress_level"]),
            ),
        )
