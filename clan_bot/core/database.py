from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import aiosqlite

from .error_engine import ErrorEngine


logger = logging.getLogger(__name__)


_SCHEMA: Sequence[str] = (
    """
    CREATE TABLE IF NOT EXISTS channels (
        feature_name TEXT PRIMARY KEY,
        guild_id     TEXT NOT NULL,
        channel_id   TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS watch_clans (
        id            INTEGER PRIMARY KEY,
        name          TEXT NOT NULL,
        last_activity TEXT,
        image_url     TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS blacklisted_players (
        id     INTEGER PRIMARY KEY,
        name   TEXT NOT NULL,
        reason TEXT NOT NULL
    )
    """,
    "CREATE TABLE IF NOT EXISTS leaving_players (id INTEGER PRIMARY KEY)",
    "CREATE TABLE IF NOT EXISTS potential_clans (id INTEGER PRIMARY KEY)",
    """
    CREATE TABLE IF NOT EXISTS player (
        id   INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tanks (
        id    INTEGER PRIMARY KEY AUTOINCREMENT,
        name  TEXT NOT NULL UNIQUE,
        image TEXT NOT NULL,
        ammo  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trivia (
        id         INTEGER PRIMARY KEY AUTOINCREMENT,
        date       TEXT    NOT NULL,
        tank_id    INTEGER NOT NULL REFERENCES tanks(id),
        slot       INTEGER NOT NULL DEFAULT 0,
        ammo_index INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS player_answer (
        id           INTEGER PRIMARY KEY AUTOINCREMENT,
        player_id    INTEGER NOT NULL REFERENCES player(id),
        trivia_id    INTEGER REFERENCES trivia(id),
        date         TEXT    NOT NULL,
        right_answer INTEGER NOT NULL DEFAULT 0,
        answer_time  INTEGER,
        elo          INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS win_streak (
        id        INTEGER PRIMARY KEY AUTOINCREMENT,
        player_id INTEGER NOT NULL REFERENCES player(id),
        date      TEXT    NOT NULL,
        current   INTEGER NOT NULL DEFAULT 0,
        max       INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trivia_data (
        id                         INTEGER PRIMARY KEY CHECK (id = 1),
        max_number_of_question     INTEGER NOT NULL,
        max_duration_of_question   INTEGER NOT NULL,
        max_response_time_limit    INTEGER NOT NULL,
        max_number_of_unique_tanks INTEGER NOT NULL,
        last_tank_page             TEXT    NOT NULL,
        last_date_reduction        TEXT    NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS news_websites (
        name     TEXT PRIMARY KEY,
        live_url TEXT NOT NULL,
        last_url TEXT NOT NULL DEFAULT '',
        selector TEXT NOT NULL DEFAULT ''
    )
    """,
    "CREATE TABLE IF NOT EXISTS ban_words (word TEXT PRIMARY KEY)",
    """
    CREATE TABLE IF NOT EXISTS feature_flipping (
        name         TEXT PRIMARY KEY,
        is_activated INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS fold_recruitment (
        id                  INTEGER PRIMARY KEY CHECK (id = 1),
        wn8_min             INTEGER NOT NULL,
        battles_min         INTEGER NOT NULL,
        random_min_28       INTEGER NOT NULL,
        fort_sorties_min_28 INTEGER NOT NULL,
        fort_battles_min_28 INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_player_answer_player_date ON player_answer (player_id, date)",
    "CREATE INDEX IF NOT EXISTS idx_trivia_date ON trivia (date)",
)

_SEEDS: Sequence[str] = (
    """
    INSERT OR IGNORE INTO trivia_data (
        id, max_number_of_question, max_duration_of_question, max_response_time_limit,
        max_number_of_unique_tanks, last_tank_page, last_date_reduction
    ) VALUES (1, 4, 30, 10, 40, '[]', '1970-01-01 00:00:00')
    """,
    """
    INSERT OR IGNORE INTO fold_recruitment (
        id, wn8_min, battles_min, random_min_28, fort_sorties_min_28, fort_battles_min_28
    ) VALUES (1, 2000, 10000, 150, 20, 10)
    """,
    """
    INSERT OR IGNORE INTO feature_flipping (name, is_activated)
    VALUES ('trivia', 1), ('fold_recruitment', 1), ('scrap_website', 1)
    """,
)


class DatabaseEngine:
    """Async SQLite-backed persistence for every ClanBot table.

    The engine owns a single connection guarded by a lock. Callers hand it
    statements rendered by the query builders together with their bound
    parameters; it never builds SQL on its own apart from the schema.
    """

    def __init__(self, db_path: str) -> None:
        self._project_root = Path(__file__).resolve().parents[1]
        raw_path = Path(db_path)
        if raw_path.is_absolute() or db_path == ":memory:":
            resolved = raw_path
        else:
            resolved = (self._project_root / raw_path).resolve()

        self._db_path = resolved
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self._error_engine = ErrorEngine()

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        """Open the database, create the schema and seed the settings rows.

        Safe to call multiple times; subsequent calls are no-ops.
        """

        if self._conn is not None:
            return

        try:
            if str(self._db_path) != ":memory:":
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(self._db_path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode=WAL;")
            await self._conn.execute("PRAGMA foreign_keys=ON;")

            for statement in _SCHEMA:
                await self._conn.execute(statement)
            for statement in _SEEDS:
                await self._conn.execute(statement)

            await self._conn.commit()
            logger.info("DatabaseEngine initialised at %s", self._db_path)
        except Exception as exc:  # pragma: no cover
            self._error_engine.log_exception(exc, context="DatabaseEngine.initialize")
            raise

    async def close(self) -> None:
        conn = self._conn
        if conn is None:
            return
        self._conn = None
        await conn.close()

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a write statement and return the number of affected rows."""

        if self._conn is None:
            await self.initialize()

        assert self._conn is not None  # for type checkers

        async with self._lock:
            cursor = await self._conn.execute(sql, tuple(params))
            await self._conn.commit()
            rowcount = cursor.rowcount
            await cursor.close()

        logger.debug("Executed %s with %s (%d row(s))", sql, params, rowcount)
        return rowcount

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a read statement and return its rows as dictionaries."""

        if self._conn is None:
            await self.initialize()

        assert self._conn is not None  # for type checkers

        async with self._lock:
            cursor = await self._conn.execute(sql, tuple(params))
            rows = await cursor.fetchall()
            await cursor.close()

        return [dict(row) for row in rows]


__all__ = ["DatabaseEngine"]
