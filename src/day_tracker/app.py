from __future__ import annotations

import sys
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from PyQt6.QtCore import QCoreApplication

from .database_manager import DBConfig, DatabaseManager
from .interruptions import InterruptionTracker
from .logging_setup import configure_logging, json_extra
from .models import ScheduleResult
from .repositories import list_tasks
from .schedule_calculator import calculate_schedule, fixed_task_delays
from .schedule_service import ScheduleRecalculator
from .settings import TrackerSettings, load_settings
from .storage import SqliteRecoveryStore
from .timer_engine import TimerEngine
from .timeutil import MonotonicClock, WallClock, format_clock_time, format_duration

APP_NAME = "Day Tracker"
DATA_DIR_ENV = "DAY_TRACKER_HOME"
DB_FILENAME = "day_tracker.sqlite"

_log = logging.getLogger(__name__)


@dataclass(slots=True)
class AppState:
    data_dir: Path
    db: DatabaseManager
    settings: TrackerSettings
    store: SqliteRecoveryStore
    timer: TimerEngine
    interruptions: InterruptionTracker
    recalculator: ScheduleRecalculator


def default_data_dir() -> Path:
    env = os.environ.get(DATA_DIR_ENV)
    if env:
        return Path(env)
    return Path.home() / ".day_tracker"


def get_app_state(
    data_dir: Optional[Path] = None,
    *,
    wall_clock: Optional[WallClock] = None,
    monotonic: Optional[MonotonicClock] = None,
    now_provider: Optional[Callable[[], datetime]] = None,
    console_logging: bool = True,
) -> AppState:
    data_dir = data_dir or default_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    # Logging first
    configure_logging(data_dir, console=console_logging)
    db = DatabaseManager(DBConfig(path=data_dir / DB_FILENAME))
    db.init_db()
    settings = load_settings(db)
    store = SqliteRecoveryStore(db)
    timer = TimerEngine(
        store,
        warning_threshold_sec=settings.warning_threshold_sec,
        sync_interval_sec=settings.sync_interval_sec,
        wall_clock=wall_clock,
        monotonic=monotonic,
    )
    interruptions = InterruptionTracker(store, wall_clock=wall_clock, monotonic=monotonic)
    recalculator = ScheduleRecalculator(settings.recalc_debounce_ms, now_provider=now_provider)
    _log.info("app_state_created", extra=json_extra(data_dir=str(data_dir)))
    return AppState(
        data_dir=data_dir,
        db=db,
        settings=settings,
        store=store,
        timer=timer,
        interruptions=interruptions,
        recalculator=recalculator,
    )


def resume(state: AppState, now_ms: Optional[int] = None) -> None:
    """Recover whatever was running when the previous session ended.

    Runs before anything can start a fresh timer.
    """
    state.interruptions.load(now_ms)
    state.timer.recover(now_ms)


def current_schedule(state: AppState, now: Optional[datetime] = None) -> ScheduleResult:
    tasks = list_tasks(state.db)
    return calculate_schedule(tasks, state.settings.schedule_config(), now or datetime.now())


def shutdown(state: AppState) -> None:
    state.timer.on_lifecycle_boundary("shutdown")
    state.recalculator.cancel()
    state.db.close()
    _log.info("app_shutdown")


def render_schedule(result: ScheduleResult) -> list[str]:
    lines = []
    for st in result.scheduled_tasks:
        marker = " (split)" if st.is_interrupted else ""
        lines.append(
            f"{format_clock_time(st.calculated_start)}-{format_clock_time(st.calculated_end)}  "
            f"{st.task.name} [{st.task.kind}, {format_duration(st.task.duration_seconds)}]{marker}"
        )
    for delay in fixed_task_delays(result):
        lines.append(f"! {delay.task_name} starts {delay.minutes_late} min late")
    for conflict in result.conflicts:
        lines.append(f"! {conflict.message}")
    if result.has_overflow:
        lines.append("! schedule runs past midnight")
    return lines


def run(argv: Optional[list[str]] = None) -> int:
    """Print today's schedule for the stored task list."""
    if argv is None:
        argv = sys.argv
    app = QCoreApplication.instance() or QCoreApplication(argv)
    app.setApplicationName(APP_NAME)
    state = get_app_state(console_logging=False)
    try:
        resume(state)
        for line in render_schedule(current_schedule(state)):
            print(line)
    finally:
        shutdown(state)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(run())
