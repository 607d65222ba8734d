from __future__ import annotations

"""Timer engine for the active task.

Design:
 - In-session elapsed time comes from a monotonic stopwatch so wall-clock
   adjustments never make the countdown jump.
 - The wall clock is only an anchor for recovery: every persistence write
   stores ``elapsed_ms`` together with a fresh wall-clock timestamp.
 - Writes happen on start/stop, every sync interval while running, and on
   each lifecycle boundary reported by the owner (hidden, teardown ...).
 - State machine: idle -> running -> stopped -> running ...;
   on load: idle -> recovering -> running | idle.
 - Emits Qt signals for UI binding.
"""

import logging
from typing import Any, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from .logging_setup import json_extra
from .models import TimerColor, TimerRecoveryResult, TimerRuntimeState
from .recovery import ACTIVE, STOPPED, recover_record
from .storage import TIMER_KEY, RecoveryStore
from .timeutil import MonotonicClock, WallClock, format_timer_ms, monotonic_ms, wall_clock_ms

DEFAULT_SYNC_INTERVAL_SEC = 10
DEFAULT_WARNING_THRESHOLD_SEC = 300

_log = logging.getLogger(__name__)


class Stopwatch:
    """Elapsed milliseconds measured on a monotonic clock, with a start offset."""

    def __init__(self, monotonic: Optional[MonotonicClock] = None) -> None:
        self._monotonic: MonotonicClock = monotonic or monotonic_ms
        self._running = False
        self._origin = 0.0
        self._offset = 0
        self._last = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def elapsed_ms(self) -> int:
        if not self._running:
            return self._last
        return max(0, int(self._offset + self._monotonic() - self._origin))

    def start(self, offset_ms: int = 0) -> None:
        if self._running:
            return
        self._offset = int(offset_ms)
        self._last = self._offset
        self._origin = self._monotonic()
        self._running = True

    def stop(self) -> int:
        if not self._running:
            return self._last
        self._last = self.elapsed_ms
        self._running = False
        return self._last

    def reset(self) -> None:
        self._running = False
        self._offset = 0
        self._last = 0


class TimerEngine(QObject):
    tick = pyqtSignal("qint64")  # elapsed ms
    started = pyqtSignal("qint64")  # elapsed ms the timer resumed from
    stopped = pyqtSignal("qint64")  # final elapsed ms
    state_changed = pyqtSignal(str)
    color_changed = pyqtSignal(str)
    synced = pyqtSignal("qint64")  # epoch ms of the write

    def __init__(
        self,
        store: RecoveryStore,
        *,
        warning_threshold_sec: int = DEFAULT_WARNING_THRESHOLD_SEC,
        sync_interval_sec: int = DEFAULT_SYNC_INTERVAL_SEC,
        record_key: str = TIMER_KEY,
        wall_clock: Optional[WallClock] = None,
        monotonic: Optional[MonotonicClock] = None,
        tick_interval_ms: int = 1000,
    ) -> None:
        super().__init__()
        self._store = store
        self._record_key = record_key
        self._wall_clock: WallClock = wall_clock or wall_clock_ms
        self._stopwatch = Stopwatch(monotonic)
        self._warning_threshold_ms = int(warning_threshold_sec) * 1000

        self._tick_timer = QTimer(self)
        self._tick_timer.setInterval(tick_interval_ms)
        self._tick_timer.timeout.connect(self._on_tick)
        self._sync_timer = QTimer(self)
        self._sync_timer.setInterval(max(1, int(sync_interval_sec)) * 1000)
        self._sync_timer.timeout.connect(self.sync)

        self._state: str = "idle"
        self._duration_ms: int = 0
        self._task_id: Optional[str] = None
        self._started_at_wall_clock: Optional[int] = None
        self._last_sync_wall_clock: Optional[int] = None
        self._last_color: TimerColor = "green"

    # --- Properties -----------------------------------------------------
    @property
    def state(self) -> str:
        return self._state

    def _set_state(self, new_state: str) -> None:
        if new_state != self._state:
            self._state = new_state
            self.state_changed.emit(new_state)

    @property
    def is_running(self) -> bool:
        return self._state == "running"

    @property
    def task_id(self) -> Optional[str]:
        return self._task_id

    @property
    def planned_duration_seconds(self) -> int:
        return self._duration_ms // 1000

    @property
    def elapsed_ms(self) -> int:
        return self._stopwatch.elapsed_ms

    @property
    def remaining_ms(self) -> int:
        return self._duration_ms - self.elapsed_ms

    @property
    def warning_threshold_sec(self) -> int:
        return self._warning_threshold_ms // 1000

    @warning_threshold_sec.setter
    def warning_threshold_sec(self, value: int) -> None:
        self._warning_threshold_ms = max(0, int(value)) * 1000
        self._update_color()

    @property
    def color(self) -> TimerColor:
        if self._duration_ms == 0 and not self.is_running:
            return "green"
        remaining = self.remaining_ms
        if remaining <= 0:
            return "red"
        if remaining <= self._warning_threshold_ms:
            return "yellow"
        return "green"

    @property
    def display_time(self) -> str:
        return format_timer_ms(self.remaining_ms)

    def snapshot(self) -> TimerRuntimeState:
        elapsed = self.elapsed_ms
        remaining = self._duration_ms - elapsed
        return TimerRuntimeState(
            elapsed_ms=elapsed,
            is_running=self.is_running,
            timer_started_at_wall_clock=self._started_at_wall_clock,
            last_sync_wall_clock=self._last_sync_wall_clock,
            remaining_ms=remaining,
            color=self.color,
            display_time=format_timer_ms(remaining),
        )

    # --- Public API -----------------------------------------------------
    def start(self, planned_duration_seconds: int, resume_from_ms: int = 0, task_id: Optional[str] = None) -> None:
        if self.is_running:
            _log.debug("start ignored; timer already running")
            return
        if planned_duration_seconds < 0 or resume_from_ms < 0:
            raise ValueError("duration and resume offset must be >= 0")
        self._duration_ms = int(planned_duration_seconds) * 1000
        self._task_id = task_id
        self._stopwatch.reset()
        self._stopwatch.start(resume_from_ms)
        self._started_at_wall_clock = self._wall_clock()
        self._persist(ACTIVE)
        self._tick_timer.start()
        self._sync_timer.start()
        self._set_state("running")
        self.started.emit(int(resume_from_ms))
        self.tick.emit(self.elapsed_ms)
        self._update_color()

    def stop(self) -> int:
        if not self.is_running:
            return self._stopwatch.elapsed_ms
        self._tick_timer.stop()
        self._sync_timer.stop()
        elapsed = self._stopwatch.stop()
        self._persist(STOPPED)
        self._set_state("stopped")
        self.stopped.emit(elapsed)
        self._update_color()
        return elapsed

    def reset(self) -> None:
        self._tick_timer.stop()
        self._sync_timer.stop()
        self._stopwatch.reset()
        self._duration_ms = 0
        self._task_id = None
        self._started_at_wall_clock = None
        self._last_sync_wall_clock = None
        self._clear_record()
        self._set_state("idle")
        self._update_color()

    def sync(self) -> bool:
        """Persist the running timer now; a no-op when not running."""
        if not self.is_running:
            return False
        return self._persist(ACTIVE)

    def on_lifecycle_boundary(self, reason: str) -> bool:
        _log.debug("lifecycle boundary", extra=json_extra(reason=reason, state=self._state))
        return self.sync()

    def recover(self, now_ms: Optional[int] = None) -> TimerRecoveryResult:
        """Resume a timer that was running when the last session ended.

        Must run before any fresh ``start`` so a stale elapsed value is not
        overwritten. Failures are silent: the record is dropped and the
        engine stays idle.
        """
        if self.is_running:
            _log.warning("recover called while running; ignoring")
            return TimerRecoveryResult(success=False, error="Timer already running")

        self._set_state("recovering")
        raw = self._load_record()
        now = self._wall_clock() if now_ms is None else now_ms
        result = recover_record(raw, now)

        if result.success:
            self.start(
                _planned_seconds(raw),
                result.recovered_elapsed_ms,
                task_id=raw.get("task_id") if isinstance(raw.get("task_id"), str) else None,
            )
        else:
            if not result.is_valid:
                self._clear_record()
            self._stopwatch.reset()
            self._duration_ms = 0
            self._set_state("idle")

        _log.info(
            "timer recovery finished",
            extra=json_extra(
                success=result.success,
                is_valid=result.is_valid,
                recovered_ms=result.recovered_elapsed_ms,
                away_ms=result.away_ms,
                error=result.error,
            ),
        )
        return result

    # --- Internal -------------------------------------------------------
    def _on_tick(self) -> None:
        if not self.is_running:
            return
        self.tick.emit(self.elapsed_ms)
        self._update_color()

    def _update_color(self) -> None:
        color = self.color
        if color != self._last_color:
            self._last_color = color
            self.color_changed.emit(color)

    def _persist(self, status: str) -> bool:
        now = self._wall_clock()
        record = {
            "status": status,
            "elapsed_ms": self._stopwatch.elapsed_ms,
            "last_sync_wall_clock": now,
            "timer_started_at_wall_clock": self._started_at_wall_clock,
            "planned_duration_seconds": self._duration_ms // 1000,
            "task_id": self._task_id,
        }
        try:
            ok = self._store.save(self._record_key, record)
        except Exception:
            _log.exception("timer persistence failed")
            ok = False
        if not ok:
            _log.warning("timer state not persisted", extra=json_extra(status=status))
            return False
        self._last_sync_wall_clock = now
        self.synced.emit(now)
        return True

    def _load_record(self) -> Any:
        try:
            return self._store.load(self._record_key)
        except Exception:
            _log.exception("timer record load failed")
            return None

    def _clear_record(self) -> None:
        try:
            self._store.clear(self._record_key)
        except Exception:
            _log.exception("timer record clear failed")


def _planned_seconds(raw: Any) -> int:
    value = raw.get("planned_duration_seconds") if hasattr(raw, "get") else None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return 0
    return value


__all__ = ["Stopwatch", "TimerEngine", "DEFAULT_SYNC_INTERVAL_SEC", "DEFAULT_WARNING_THRESHOLD_SEC"]
