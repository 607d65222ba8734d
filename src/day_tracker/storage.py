from __future__ import annotations

"""Persistence collaborator for recovery records.

Any key/value backend satisfies ``RecoveryStore``. Writes are best-effort:
failures are logged and reported through the return value, never raised
into the timer's hot path.
"""

import copy
import json
import logging
import sqlite3
from typing import Any, Protocol

from .database_manager import DatabaseManager
from .logging_setup import json_extra

TIMER_KEY = "timer"
INTERRUPTIONS_KEY = "interruptions"

_log = logging.getLogger(__name__)


class RecoveryStore(Protocol):
    def load(self, key: str) -> dict[str, Any] | None: ...

    def save(self, key: str, record: dict[str, Any]) -> bool: ...

    def clear(self, key: str) -> bool: ...


class SqliteRecoveryStore:
    """Stores one JSON payload per key in the ``recovery_records`` table."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    def load(self, key: str) -> dict[str, Any] | None:
        try:
            row = self._db.query_one("SELECT payload FROM recovery_records WHERE key=?", (key,))
        except sqlite3.Error as e:
            _log.error("recovery record load failed: %s", e, extra=json_extra(key=key))
            return None
        if not row:
            return None
        try:
            return json.loads(row["payload"])
        except ValueError:
            _log.warning("recovery record is not valid JSON; discarding", extra=json_extra(key=key))
            self.clear(key)
            return None

    def save(self, key: str, record: dict[str, Any]) -> bool:
        try:
            payload = json.dumps(record)
            self._db.execute(
                """
                INSERT INTO recovery_records(key, payload) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload=excluded.payload,
                    updated_at=strftime('%Y-%m-%dT%H:%M:%fZ','now')
                """,
                (key, payload),
            )
        except (sqlite3.Error, TypeError, ValueError) as e:
            _log.error("recovery record save failed: %s", e, extra=json_extra(key=key))
            return False
        return True

    def clear(self, key: str) -> bool:
        try:
            self._db.execute("DELETE FROM recovery_records WHERE key=?", (key,))
        except sqlite3.Error as e:
            _log.error("recovery record clear failed: %s", e, extra=json_extra(key=key))
            return False
        return True


class MemoryRecoveryStore:
    """Process-local store; records are deep-copied in and out."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    def load(self, key: str) -> dict[str, Any] | None:
        record = self._records.get(key)
        return copy.deepcopy(record) if record is not None else None

    def save(self, key: str, record: dict[str, Any]) -> bool:
        self._records[key] = copy.deepcopy(record)
        return True

    def clear(self, key: str) -> bool:
        self._records.pop(key, None)
        return True


__all__ = [
    "TIMER_KEY",
    "INTERRUPTIONS_KEY",
    "RecoveryStore",
    "SqliteRecoveryStore",
    "MemoryRecoveryStore",
]
