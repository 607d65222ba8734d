from __future__ import annotations

"""Repository helper functions for the task list and settings."""

from datetime import datetime
from typing import Iterable
import sqlite3

from .database_manager import DatabaseManager
from .models import Task
from .timeutil import to_local_naive


# --- Generic helpers -------------------------------------------------------

def _row_to_task(row: sqlite3.Row) -> Task:
    planned = row["planned_start"]
    return Task(
        task_id=row["task_id"],
        name=row["name"],
        kind=row["kind"],
        duration_seconds=row["duration_seconds"],
        sequence_index=row["sequence_index"],
        planned_start=to_local_naive(datetime.fromisoformat(planned)) if planned else None,
    )


def _task_params(task: Task) -> tuple:
    return (
        task.task_id,
        task.name,
        task.kind,
        task.planned_start.isoformat() if task.planned_start else None,
        task.duration_seconds,
        task.sequence_index,
    )


# --- Tasks ------------------------------------------------------------------

def upsert_task(db: DatabaseManager, task: Task) -> Task:
    db.execute(
        """
        INSERT INTO tasks (task_id, name, kind, planned_start, duration_seconds, sequence_index)
        VALUES (?,?,?,?,?,?)
        ON CONFLICT(task_id) DO UPDATE SET
            name=excluded.name,
            kind=excluded.kind,
            planned_start=excluded.planned_start,
            duration_seconds=excluded.duration_seconds,
            sequence_index=excluded.sequence_index
        """,
        _task_params(task),
    )
    return task


def save_tasks(db: DatabaseManager, tasks: Iterable[Task]) -> None:
    """Replace the stored task list in one transaction."""
    conn = db.connect()
    conn.execute("BEGIN")
    try:
        conn.execute("DELETE FROM tasks")
        conn.executemany(
            """
            INSERT INTO tasks (task_id, name, kind, planned_start, duration_seconds, sequence_index)
            VALUES (?,?,?,?,?,?)
            """,
            [_task_params(t) for t in tasks],
        )
    except sqlite3.Error:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def get_task(db: DatabaseManager, task_id: str) -> Task | None:
    row = db.query_one("SELECT * FROM tasks WHERE task_id=?", (task_id,))
    if not row:
        return None
    return _row_to_task(row)


def list_tasks(db: DatabaseManager) -> list[Task]:
    rows = db.query_all("SELECT * FROM tasks ORDER BY sequence_index, rowid")
    return [_row_to_task(r) for r in rows]


def delete_task(db: DatabaseManager, task_id: str) -> None:
    db.execute("DELETE FROM tasks WHERE task_id=?", (task_id,))


def clear_tasks(db: DatabaseManager) -> None:
    db.execute("DELETE FROM tasks")


# --- Settings ---------------------------------------------------------------

def get_setting(db: DatabaseManager, key: str) -> str | None:
    row = db.query_one("SELECT value FROM settings WHERE key=?", (key,))
    return row["value"] if row else None


def set_setting(db: DatabaseManager, key: str, value: str) -> None:
    db.execute(
        "INSERT INTO settings(key, value) VALUES(?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
        (key, value),
    )


__all__ = [
    # Tasks
    "upsert_task",
    "save_tasks",
    "get_task",
    "list_tasks",
    "delete_task",
    "clear_tasks",
    # Settings
    "get_setting",
    "set_setting",
]
