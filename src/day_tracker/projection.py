from __future__ import annotations

"""Live projection of the day while a task is being tracked.

Given the calculated schedule and progress on the current task, project
when every remaining task will actually run and how much slack is left
before each pending fixed task.
"""

from datetime import datetime, timedelta
from typing import Collection

from .models import DisplayStatus, ProjectedTask, RiskLevel, ScheduleResult

DEFAULT_ALERT_THRESHOLD_SEC = 600


def calculate_risk_level(projected_start: datetime, planned_start: datetime, alert_threshold_sec: int = DEFAULT_ALERT_THRESHOLD_SEC) -> RiskLevel:
    buffer = (planned_start - projected_start).total_seconds()
    if buffer > alert_threshold_sec:
        return "green"
    if buffer > 0:
        return "yellow"
    return "red"


def project_tasks(
    schedule: ScheduleResult,
    current_index: int,
    current_elapsed_ms: int,
    now: datetime,
    completed_ids: Collection[str] = (),
    alert_threshold_sec: int = DEFAULT_ALERT_THRESHOLD_SEC,
) -> list[ProjectedTask]:
    """Project start/end for each scheduled task.

    Tasks before ``current_index`` keep their calculated times. The current
    task starts ``now`` and runs for its remaining time; later tasks follow
    back to back, fixed tasks never starting before their planned start.
    A ``current_index`` outside the schedule projects everything from ``now``.
    """
    items = schedule.scheduled_tasks
    if not items:
        return []

    current_remaining = timedelta(0)
    if 0 <= current_index < len(items):
        remaining_ms = max(0, items[current_index].task.duration_seconds * 1000 - int(current_elapsed_ms))
        current_remaining = timedelta(milliseconds=remaining_ms)
    next_available = now + current_remaining

    projected: list[ProjectedTask] = []
    for index, st in enumerate(items):
        task = st.task
        status: DisplayStatus
        if task.task_id in completed_ids:
            status = "completed"
        elif index == current_index:
            status = "current"
        else:
            status = "pending"

        if index < current_index:
            start, end = st.calculated_start, st.calculated_end
        elif index == current_index:
            start = now
            end = now + current_remaining
        else:
            # raw arrival: when the previous task frees up, ignoring the fixed start
            arrival = next_available
            start = max(arrival, task.planned_start) if task.is_fixed else arrival  # type: ignore[type-var]
            end = start + task.duration
        if index >= current_index:
            next_available = end

        risk = None
        buffer_seconds = 0
        if task.is_fixed and status == "pending" and index > current_index:
            buffer_seconds = round((task.planned_start - arrival).total_seconds())  # type: ignore[operator]
            risk = calculate_risk_level(arrival, task.planned_start, alert_threshold_sec)  # type: ignore[arg-type]

        projected.append(
            ProjectedTask(
                task=task,
                projected_start=start,
                projected_end=end,
                display_status=status,
                risk_level=risk,
                buffer_seconds=buffer_seconds,
            )
        )
    return projected


__all__ = ["calculate_risk_level", "project_tasks", "DEFAULT_ALERT_THRESHOLD_SEC"]
