from __future__ import annotations

"""Interruption tracker: logs distractions against the task in progress.

An open interruption is persisted the moment it starts, so after a crash
it can be recovered from ``started_at_wall_clock`` with the same rules as
the task timer (see ``recovery.recover_interruption``).
"""

import logging
import uuid
from typing import Any, Callable, Iterable, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from .logging_setup import json_extra
from .models import (
    INTERRUPTION_CATEGORIES,
    MAX_INTERRUPTION_NOTE_LENGTH,
    Interruption,
    InterruptionSummary,
    TimerRecoveryResult,
)
from .recovery import recover_interruption
from .storage import INTERRUPTIONS_KEY, RecoveryStore
from .timer_engine import Stopwatch
from .timeutil import MonotonicClock, WallClock, wall_clock_ms

_UNSET: Any = object()

_log = logging.getLogger(__name__)


class InterruptionTracker(QObject):
    started = pyqtSignal(str)  # interruption_id
    ended = pyqtSignal(str, int)  # interruption_id, duration_sec
    tick = pyqtSignal("qint64")  # elapsed ms of the open interruption
    changed = pyqtSignal()

    def __init__(
        self,
        store: RecoveryStore,
        *,
        record_key: str = INTERRUPTIONS_KEY,
        wall_clock: Optional[WallClock] = None,
        monotonic: Optional[MonotonicClock] = None,
        id_factory: Optional[Callable[[], str]] = None,
        tick_interval_ms: int = 1000,
    ) -> None:
        super().__init__()
        self._store = store
        self._record_key = record_key
        self._wall_clock: WallClock = wall_clock or wall_clock_ms
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._stopwatch = Stopwatch(monotonic)
        self._timer = QTimer(self)
        self._timer.setInterval(tick_interval_ms)
        self._timer.timeout.connect(lambda: self.tick.emit(self._stopwatch.elapsed_ms))

        self._active: Optional[Interruption] = None
        self._history: list[Interruption] = []

    # --- Access ---------------------------------------------------------
    @property
    def is_interrupted(self) -> bool:
        return self._active is not None

    @property
    def active_interruption(self) -> Optional[Interruption]:
        return self._active

    @property
    def elapsed_ms(self) -> int:
        return self._stopwatch.elapsed_ms if self._active is not None else 0

    def interruptions(self) -> list[Interruption]:
        return list(self._history)

    def task_summary(self, task_id: str) -> InterruptionSummary:
        done = [i for i in self._history if i.task_id == task_id and not i.is_active]
        return InterruptionSummary(
            task_id=task_id,
            count=len(done),
            total_duration_sec=sum(i.duration_sec for i in done),
        )

    # --- Actions --------------------------------------------------------
    def start_interruption(self, task_id: str) -> Interruption:
        if self._active is not None:
            raise RuntimeError("Already interrupted")
        self._active = Interruption(
            interruption_id=self._id_factory(),
            task_id=task_id,
            started_at_wall_clock=self._wall_clock(),
        )
        self._stopwatch.reset()
        self._stopwatch.start(0)
        self._timer.start()
        self._persist()
        self.started.emit(self._active.interruption_id)
        self.changed.emit()
        return self._active

    def end_interruption(self) -> Interruption:
        if self._active is None:
            raise RuntimeError("Not interrupted")
        elapsed = self._stopwatch.stop()
        self._timer.stop()
        completed = self._active
        completed.ended_at_wall_clock = self._wall_clock()
        completed.duration_sec = elapsed // 1000
        self._history.append(completed)
        self._active = None
        self._stopwatch.reset()
        self._persist()
        self.ended.emit(completed.interruption_id, completed.duration_sec)
        self.changed.emit()
        return completed

    def auto_end_interruption(self) -> Optional[Interruption]:
        """End the open interruption, if any (task completed or day ended)."""
        if self._active is None:
            return None
        return self.end_interruption()

    def update_interruption(self, interruption_id: str, *, category: Any = _UNSET, note: Any = _UNSET) -> Interruption:
        target = next((i for i in self._history if i.interruption_id == interruption_id), None)
        if target is None:
            raise KeyError(interruption_id)
        if category is not _UNSET and category is not None and category not in INTERRUPTION_CATEGORIES:
            raise ValueError(f"unknown interruption category {category!r}")
        if note is not _UNSET and note is not None and len(note) > MAX_INTERRUPTION_NOTE_LENGTH:
            raise ValueError(f"note exceeds {MAX_INTERRUPTION_NOTE_LENGTH} characters")
        if category is not _UNSET:
            target.category = category
        if note is not _UNSET:
            target.note = note
        self._persist()
        self.changed.emit()
        return target

    def reset(self) -> None:
        self._timer.stop()
        self._stopwatch.reset()
        self._active = None
        self._history = []
        try:
            self._store.clear(self._record_key)
        except Exception:
            _log.exception("interruption record clear failed")
        self.changed.emit()

    # --- Persistence & recovery ----------------------------------------
    def load(self, now_ms: Optional[int] = None) -> Optional[TimerRecoveryResult]:
        try:
            raw = self._store.load(self._record_key)
        except Exception:
            _log.exception("interruption record load failed")
            raw = None
        entries = raw.get("interruptions", []) if isinstance(raw, dict) else []
        saved = []
        for entry in entries if isinstance(entries, list) else []:
            try:
                saved.append(Interruption.from_record(entry))
            except (KeyError, TypeError, ValueError, AttributeError):
                _log.warning("skipping corrupt interruption record", extra=json_extra(entry=repr(entry)))
        return self.restore(saved, now_ms)

    def restore(self, saved: Iterable[Interruption], now_ms: Optional[int] = None) -> Optional[TimerRecoveryResult]:
        """Restore history and resume an interruption left open by the last session.

        Returns the recovery result for the open interruption, or None when
        every restored interruption was already closed.
        """
        self._timer.stop()
        self._stopwatch.reset()
        self._active = None
        items = list(saved)
        self._history = [i for i in items if not i.is_active]
        open_items = [i for i in items if i.is_active]
        if not open_items:
            self.changed.emit()
            return None
        if len(open_items) > 1:
            _log.warning("multiple open interruptions; keeping the latest", extra=json_extra(count=len(open_items)))
        candidate = max(open_items, key=lambda i: i.started_at_wall_clock)

        now = self._wall_clock() if now_ms is None else now_ms
        result = recover_interruption(candidate, now)
        if result.success:
            self._active = candidate
            self._stopwatch.start(result.recovered_elapsed_ms)
            self._timer.start()
        else:
            _log.warning("dropping unrecoverable interruption", extra=json_extra(error=result.error))
            self._persist()
        _log.info(
            "interruption recovery finished",
            extra=json_extra(success=result.success, recovered_ms=result.recovered_elapsed_ms),
        )
        self.changed.emit()
        return result

    def _persist(self) -> bool:
        records = [i.to_record() for i in self._history]
        if self._active is not None:
            records.append(self._active.to_record())
        try:
            ok = self._store.save(self._record_key, {"interruptions": records})
        except Exception:
            _log.exception("interruption persistence failed")
            return False
        if not ok:
            _log.warning("interruptions not persisted")
        return ok


__all__ = ["InterruptionTracker"]
