from __future__ import annotations

"""Schedule calculator: ordered tasks + start time -> concrete start/end times.

Single forward pass with a running cursor:
 - Fixed tasks start at ``max(cursor, planned_start)``; a cursor past the
   planned start means the fixed task runs late (see ``delay_seconds``).
 - Flexible tasks start at the cursor. When the next fixed task in sequence
   begins inside a flexible task's naive window, the flexible task pauses
   at that instant, the fixed task runs, and the flexible task resumes right
   after. Fixed tasks directly behind it in sequence that are due by the
   time it ends run back to back before the resume; the flexible task never
   sits idle in a gap.
 - Fixed tasks placed while splitting a flexible task are not placed again.

The function is pure: no clock reads, no shared state. Callers debounce.
"""

import logging
from datetime import datetime, time, timedelta
from typing import Iterable, Optional, Sequence

from .logging_setup import json_extra
from .models import (
    FixedTaskConflict,
    FixedTaskDelay,
    ScheduleConfig,
    ScheduledTask,
    ScheduleResult,
    Task,
)

_log = logging.getLogger(__name__)


def resolve_anchor(config: ScheduleConfig, now: datetime) -> datetime:
    if config.mode == "custom" and config.custom_start is not None:
        return config.custom_start
    return now


def has_schedule_overflow(schedule_end: datetime, anchor: datetime) -> bool:
    """True when ``schedule_end`` reaches midnight after the anchor's day."""
    next_midnight = datetime.combine(anchor.date(), time.min, tzinfo=anchor.tzinfo) + timedelta(days=1)
    return schedule_end >= next_midnight


def interruption_split(task: Task, flexible_start: datetime, fixed_start: datetime) -> tuple[int, int]:
    """Return ``(seconds_before_pause, seconds_remaining_after_pause)``.

    Both parts are clamped to ``[0, duration]`` so they always sum to the
    task's duration.
    """
    before = int((fixed_start - flexible_start).total_seconds())
    before = min(max(0, before), task.duration_seconds)
    return before, task.duration_seconds - before


def calculate_schedule(tasks: Sequence[Task], config: ScheduleConfig, now: datetime) -> ScheduleResult:
    anchor = resolve_anchor(config, now)
    if not tasks:
        return ScheduleResult(anchor=anchor, scheduled_tasks=(), has_overflow=False, schedule_end=anchor)

    ordered = sorted(tasks, key=lambda t: t.sequence_index)
    fixed_positions = [i for i, t in enumerate(ordered) if t.is_fixed]
    slots: list[Optional[ScheduledTask]] = [None] * len(ordered)
    next_fixed = 0  # index into fixed_positions of the first fixed task not yet reached/placed
    cursor = anchor

    for i, task in enumerate(ordered):
        if slots[i] is not None:
            continue

        if task.is_fixed:
            start = max(cursor, task.planned_start)  # type: ignore[type-var]
            end = start + task.duration
            slots[i] = ScheduledTask(task=task, calculated_start=start, calculated_end=end)
            cursor = end
            continue

        while next_fixed < len(fixed_positions) and (
            fixed_positions[next_fixed] <= i or slots[fixed_positions[next_fixed]] is not None
        ):
            next_fixed += 1

        start = cursor
        naive_end = start + task.duration
        interrupting = ordered[fixed_positions[next_fixed]] if next_fixed < len(fixed_positions) else None

        if (
            interrupting is not None
            and task.duration_seconds > 0
            and start <= interrupting.planned_start < naive_end  # type: ignore[operator]
        ):
            pause_at: datetime = interrupting.planned_start  # type: ignore[assignment]
            before, remaining = interruption_split(task, start, pause_at)
            resume_at = pause_at
            ptr = next_fixed
            prev_pos = -1
            while ptr < len(fixed_positions):
                pos = fixed_positions[ptr]
                fixed = ordered[pos]
                # chain only the next task in sequence, due by the time the previous one ends
                if ptr != next_fixed and (pos != prev_pos + 1 or fixed.planned_start > resume_at):  # type: ignore[operator]
                    break
                f_start = max(resume_at, fixed.planned_start)  # type: ignore[type-var]
                f_end = f_start + fixed.duration
                slots[pos] = ScheduledTask(task=fixed, calculated_start=f_start, calculated_end=f_end)
                resume_at = f_end
                prev_pos = pos
                ptr += 1
            next_fixed = ptr
            end = resume_at + timedelta(seconds=remaining)
            slots[i] = ScheduledTask(
                task=task,
                calculated_start=start,
                calculated_end=end,
                is_interrupted=True,
                pause_instant=pause_at,
                seconds_before_pause=before,
                seconds_remaining_after_pause=remaining,
            )
            cursor = end
            continue

        slots[i] = ScheduledTask(task=task, calculated_start=start, calculated_end=naive_end)
        cursor = naive_end

    scheduled = tuple(s for s in slots if s is not None)
    schedule_end = max(s.calculated_end for s in scheduled)
    overflow = has_schedule_overflow(schedule_end, anchor)
    conflicts = detect_fixed_task_conflicts(tasks)
    if overflow or conflicts:
        _log.debug(
            "schedule has warnings",
            extra=json_extra(overflow=overflow, conflicts=len(conflicts), tasks=len(scheduled)),
        )
    return ScheduleResult(
        anchor=anchor,
        scheduled_tasks=scheduled,
        has_overflow=overflow,
        schedule_end=schedule_end,
        conflicts=tuple(conflicts),
    )


def detect_fixed_task_conflicts(tasks: Iterable[Task]) -> list[FixedTaskConflict]:
    """Every pair of fixed tasks whose planned intervals overlap.

    Sorted sweep keeping the intervals still open at each start; ties on the
    planned start keep their input order.
    """
    fixed = sorted((t for t in tasks if t.is_fixed), key=lambda t: t.planned_start)  # type: ignore[arg-type, return-value]
    conflicts: list[FixedTaskConflict] = []
    open_tasks: list[Task] = []
    for task in fixed:
        start: datetime = task.planned_start  # type: ignore[assignment]
        end = start + task.duration
        open_tasks = [o for o in open_tasks if o.planned_start + o.duration > start]  # type: ignore[operator]
        for other in open_tasks:
            overlap = int((min(end, other.planned_start + other.duration) - start).total_seconds())  # type: ignore[operator]
            if overlap <= 0:
                continue
            conflicts.append(
                FixedTaskConflict(
                    task_id_1=other.task_id,
                    task_id_2=task.task_id,
                    overlap_seconds=overlap,
                    message=f'"{other.name}" overlaps with "{task.name}" by {overlap // 60} minutes',
                )
            )
        open_tasks.append(task)
    return conflicts


def fixed_task_delays(result: ScheduleResult) -> list[FixedTaskDelay]:
    """Fixed tasks pushed past their planned start by earlier work."""
    delays = []
    for st in result.scheduled_tasks:
        late = st.delay_seconds
        if late <= 0:
            continue
        delays.append(
            FixedTaskDelay(
                task_id=st.task.task_id,
                task_name=st.task.name,
                minutes_late=-(-late // 60),
                planned_start=st.task.planned_start,  # type: ignore[arg-type]
            )
        )
    return delays


__all__ = [
    "resolve_anchor",
    "has_schedule_overflow",
    "interruption_split",
    "calculate_schedule",
    "detect_fixed_task_conflicts",
    "fixed_task_delays",
]
