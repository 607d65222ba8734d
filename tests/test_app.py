from datetime import datetime, timedelta, timezone
import logging

import pytest

from day_tracker import app
from day_tracker.models import ScheduleConfig, Task
from day_tracker.recovery import ACTIVE
from day_tracker.repositories import save_tasks
from day_tracker.schedule_calculator import calculate_schedule
from day_tracker.storage import TIMER_KEY


@pytest.fixture()
def state(tmp_path, qtbot, wall, mono):
    s = app.get_app_state(tmp_path, wall_clock=wall, monotonic=mono, console_logging=False)
    yield s
    s.timer.reset()
    s.db.close()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


def test_state_is_wired_from_settings(state, tmp_path):
    assert state.data_dir == tmp_path
    assert (tmp_path / app.DB_FILENAME).exists()
    assert (tmp_path / "logs" / "day_tracker.log").exists()
    assert state.timer.warning_threshold_sec == state.settings.warning_threshold_sec
    assert state.recalculator.delay_ms == state.settings.recalc_debounce_ms


def test_resume_recovers_timer_and_interruption(state, wall, mono):
    state.interruptions.start_interruption("t1")
    state.store.save(
        TIMER_KEY,
        {"status": ACTIVE, "elapsed_ms": 60_000, "last_sync_wall_clock": wall.now, "planned_duration_seconds": 600},
    )
    wall.advance(30_000)
    app.resume(state)
    assert state.timer.is_running
    assert state.timer.elapsed_ms == 90_000
    assert state.interruptions.is_interrupted
    assert state.interruptions.elapsed_ms == 30_000
    state.interruptions.reset()


def test_current_schedule_and_render(state):
    save_tasks(
        state.db,
        [
            Task(task_id="a", name="Deep work", kind="flexible", duration_seconds=7200, sequence_index=0),
            Task(task_id="b", name="Standup", kind="fixed", duration_seconds=3600, sequence_index=1, planned_start=datetime(2025, 12, 18, 9, 0)),
        ],
    )
    result = app.current_schedule(state, datetime(2025, 12, 18, 8, 30))
    assert result.scheduled_tasks[0].is_interrupted
    lines = app.render_schedule(result)
    assert lines[0] == "08:30-11:30  Deep work [flexible, 2h] (split)"
    assert lines[1] == "09:00-10:00  Standup [fixed, 1h]"


def test_render_warnings():
    tasks = [
        Task(task_id="a", name="A", kind="fixed", duration_seconds=3600, sequence_index=0, planned_start=datetime(2025, 12, 18, 23, 0)),
        Task(task_id="b", name="B", kind="fixed", duration_seconds=3600, sequence_index=1, planned_start=datetime(2025, 12, 18, 23, 30)),
    ]

    lines = app.render_schedule(calculate_schedule(tasks, ScheduleConfig(), datetime(2025, 12, 18, 22, 0)))
    assert "! B starts 30 min late" in lines
    assert '! "A" overlaps with "B" by 30 minutes' in lines
    assert lines[-1] == "! schedule runs past midnight"


def test_shutdown_flushes_running_timer(state, mono):
    state.timer.start(600)
    mono.advance(12_000)
    app.shutdown(state)
    record = state.store.load(TIMER_KEY)
    assert record["elapsed_ms"] == 12_000


def test_default_data_dir_env(monkeypatch, tmp_path):
    monkeypatch.setenv(app.DATA_DIR_ENV, str(tmp_path))
    assert app.default_data_dir() == tmp_path
    monkeypatch.delenv(app.DATA_DIR_ENV)
    assert app.default_data_dir().name == ".day_tracker"


def test_current_schedule_with_offset_planned_start(state):
    start = datetime(2025, 12, 18, 9, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))
    save_tasks(
        state.db,
        [
            Task(task_id="a", name="Inbox", kind="flexible", duration_seconds=900, sequence_index=0),
            Task(task_id="b", name="Call", kind="fixed", duration_seconds=1800, sequence_index=1, planned_start=start),
        ],
    )
    result = app.current_schedule(state)
    assert len(result.scheduled_tasks) == 2
    assert result.scheduled_tasks[1].task.planned_start.tzinfo is None
