from __future__ import annotations

"""Debounced schedule recalculation.

Task edits arrive in bursts (typing a duration, dragging a row). Each call
to ``request`` replaces the pending input and restarts a single-shot timer;
only the last input in a burst is calculated.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from .logging_setup import json_extra
from .models import ScheduleConfig, ScheduleResult, Task
from .schedule_calculator import calculate_schedule

DEFAULT_DEBOUNCE_MS = 300

_log = logging.getLogger(__name__)


class ScheduleRecalculator(QObject):
    schedule_ready = pyqtSignal(object)  # ScheduleResult
    failed = pyqtSignal(str)

    def __init__(
        self,
        delay_ms: int = DEFAULT_DEBOUNCE_MS,
        now_provider: Optional[Callable[[], datetime]] = None,
    ) -> None:
        super().__init__()
        self._now = now_provider or datetime.now
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(max(0, int(delay_ms)))
        self._timer.timeout.connect(self._run)
        self._pending: Optional[tuple[tuple[Task, ...], ScheduleConfig]] = None
        self._last_result: Optional[ScheduleResult] = None

    @property
    def delay_ms(self) -> int:
        return self._timer.interval()

    @delay_ms.setter
    def delay_ms(self, value: int) -> None:
        self._timer.setInterval(max(0, int(value)))

    @property
    def last_result(self) -> Optional[ScheduleResult]:
        return self._last_result

    @property
    def is_pending(self) -> bool:
        return self._pending is not None

    def request(self, tasks: Sequence[Task], config: ScheduleConfig) -> None:
        self._pending = (tuple(tasks), config)
        self._timer.start()  # restarts if already active

    def flush(self) -> Optional[ScheduleResult]:
        """Run a pending calculation immediately instead of waiting."""
        if self._pending is None:
            return None
        self._timer.stop()
        return self._run()

    def cancel(self) -> None:
        self._timer.stop()
        self._pending = None

    def recalculate_now(self, tasks: Sequence[Task], config: ScheduleConfig) -> Optional[ScheduleResult]:
        self._pending = (tuple(tasks), config)
        return self.flush()

    def _run(self) -> Optional[ScheduleResult]:
        if self._pending is None:
            return None
        tasks, config = self._pending
        self._pending = None
        try:
            result = calculate_schedule(tasks, config, self._now())
        except Exception as e:  # keep the last good schedule on screen
            _log.exception("schedule recalculation failed")
            self.failed.emit(str(e))
            return None
        self._last_result = result
        _log.debug(
            "schedule recalculated",
            extra=json_extra(tasks=len(tasks), overflow=result.has_overflow, end=result.schedule_end.isoformat()),
        )
        self.schedule_ready.emit(result)
        return result


__all__ = ["ScheduleRecalculator", "DEFAULT_DEBOUNCE_MS"]
