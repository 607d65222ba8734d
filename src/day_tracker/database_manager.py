from __future__ import annotations

"""SQLite connection handling and migrations for the day tracker.

Each schema change is a function in ``MIGRATIONS``; applied versions are
recorded in ``schema_migrations`` so ``init_db`` is idempotent.

Tables:
 - ``tasks``            the day's task list (task list source)
 - ``settings``         key/value configuration
 - ``recovery_records`` JSON payloads for timer/interruption recovery
"""

from dataclasses import dataclass
from pathlib import Path
import logging
import sqlite3
from typing import Callable, Iterable

from .logging_setup import json_extra

_log = logging.getLogger(__name__)


@dataclass(slots=True)
class DBConfig:
    path: Path
    pragmas: tuple[tuple[str, str | int], ...] = (
        ("journal_mode", "WAL"),
        ("foreign_keys", 1),
        ("synchronous", "NORMAL"),
    )


class DatabaseManager:
    def __init__(self, config: DBConfig):
        self.config = config
        self._conn: sqlite3.Connection | None = None

    # --- Connection --------------------------------------------------------
    def connect(self) -> sqlite3.Connection:
        if self._conn is None:
            self.config.path.parent.mkdir(parents=True, exist_ok=True)
            # autocommit; multi-statement work issues an explicit BEGIN
            self._conn = sqlite3.connect(self.config.path, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._apply_pragmas(self._conn)
        return self._conn

    def _apply_pragmas(self, conn: sqlite3.Connection) -> None:
        cur = conn.cursor()
        for key, value in self.config.pragmas:
            cur.execute(f"PRAGMA {key}={value}")
        cur.close()

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # --- Migrations --------------------------------------------------------
    def init_db(self) -> None:
        conn = self.connect()
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
            )
            """
        )
        applied = self._get_applied_versions()
        for version, migration_fn in enumerate(MIGRATIONS, start=1):
            if version in applied:
                continue
            conn.execute("BEGIN")
            try:
                migration_fn(conn)
                conn.execute("INSERT INTO schema_migrations (version) VALUES (?)", (version,))
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
            _log.info("migration applied", extra=json_extra(version=version))

    def _get_applied_versions(self) -> set[int]:
        cur = self.connect().execute("SELECT version FROM schema_migrations")
        return {row[0] for row in cur.fetchall()}

    # --- Convenience -------------------------------------------------------
    def execute(self, sql: str, params: Iterable | None = None) -> sqlite3.Cursor:
        cur = self.connect().cursor()
        cur.execute(sql, params or [])
        return cur

    def executemany(self, sql: str, seq_of_params: Iterable[Iterable]) -> None:
        self.connect().executemany(sql, seq_of_params)

    def query_all(self, sql: str, params: Iterable | None = None) -> list[sqlite3.Row]:
        return self.execute(sql, params).fetchall()

    def query_one(self, sql: str, params: Iterable | None = None) -> sqlite3.Row | None:
        return self.execute(sql, params).fetchone()


# --- Migration definitions --------------------------------------------------
# Statements run one by one: executescript() would commit the open transaction.

def migration_001_create_tasks(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE tasks (
            task_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            kind TEXT NOT NULL CHECK (kind IN ('fixed', 'flexible')),
            planned_start TEXT,
            duration_seconds INTEGER NOT NULL CHECK (duration_seconds >= 0),
            sequence_index INTEGER NOT NULL,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now')),
            CHECK (kind = 'flexible' OR planned_start IS NOT NULL)
        )
        """
    )
    conn.execute("CREATE INDEX idx_tasks_sequence ON tasks(sequence_index)")


def migration_002_add_settings_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def migration_003_add_recovery_records(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS recovery_records (
            key TEXT PRIMARY KEY,
            payload TEXT NOT NULL,
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now'))
        )
        """
    )


MIGRATIONS: list[Callable[[sqlite3.Connection], None]] = [
    migration_001_create_tasks,
    migration_002_add_settings_table,
    migration_003_add_recovery_records,
]

__all__ = [
    "DBConfig",
    "DatabaseManager",
    "MIGRATIONS",
]
