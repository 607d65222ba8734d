from __future__ import annotations

"""Dataclass models shared by the scheduling, timer and recovery layers."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal, Optional

TaskKind = Literal["fixed", "flexible"]
ScheduleMode = Literal["now", "custom"]
TimerColor = Literal["green", "yellow", "red"]
RiskLevel = Literal["green", "yellow", "red"]
DisplayStatus = Literal["completed", "current", "pending"]

FIXED: TaskKind = "fixed"
FLEXIBLE: TaskKind = "flexible"

INTERRUPTION_CATEGORIES: tuple[str, ...] = ("Phone", "Luci", "Colleague", "Personal", "Other")
MAX_INTERRUPTION_NOTE_LENGTH = 200


class InvalidTaskError(ValueError):
    """Raised when a task or schedule config violates its invariants."""


@dataclass(slots=True, frozen=True)
class Task:
    task_id: str
    name: str
    kind: TaskKind
    duration_seconds: int
    sequence_index: int
    planned_start: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.kind not in (FIXED, FLEXIBLE):
            raise InvalidTaskError(f"unknown task kind {self.kind!r}")
        if self.kind == FIXED and self.planned_start is None:
            raise InvalidTaskError(f"fixed task {self.task_id!r} requires a planned start")
        if self.duration_seconds < 0:
            raise InvalidTaskError(f"task {self.task_id!r} has a negative duration")

    @property
    def is_fixed(self) -> bool:
        return self.kind == FIXED

    @property
    def duration(self) -> timedelta:
        return timedelta(seconds=self.duration_seconds)


@dataclass(slots=True, frozen=True)
class ScheduleConfig:
    mode: ScheduleMode = "now"
    custom_start: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.mode not in ("now", "custom"):
            raise InvalidTaskError(f"unknown schedule mode {self.mode!r}")
        if self.mode == "custom" and self.custom_start is None:
            raise InvalidTaskError("custom schedule mode requires a start time")


@dataclass(slots=True, frozen=True)
class ScheduledTask:
    task: Task
    calculated_start: datetime
    calculated_end: datetime
    is_interrupted: bool = False
    pause_instant: Optional[datetime] = None
    seconds_before_pause: int = 0
    seconds_remaining_after_pause: int = 0

    @property
    def resume_instant(self) -> Optional[datetime]:
        if not self.is_interrupted:
            return None
        return self.calculated_end - timedelta(seconds=self.seconds_remaining_after_pause)

    @property
    def delay_seconds(self) -> int:
        """Seconds a fixed task starts after its planned start (0 when on time)."""
        if not self.task.is_fixed or self.task.planned_start is None:
            return 0
        return max(0, int((self.calculated_start - self.task.planned_start).total_seconds()))


@dataclass(slots=True, frozen=True)
class FixedTaskConflict:
    task_id_1: str
    task_id_2: str
    overlap_seconds: int
    message: str


@dataclass(slots=True, frozen=True)
class FixedTaskDelay:
    task_id: str
    task_name: str
    minutes_late: int
    planned_start: datetime


@dataclass(slots=True, frozen=True)
class ScheduleResult:
    anchor: datetime
    scheduled_tasks: tuple[ScheduledTask, ...]
    has_overflow: bool
    schedule_end: datetime
    conflicts: tuple[FixedTaskConflict, ...] = ()


@dataclass(slots=True)
class TimerRuntimeState:
    elapsed_ms: int = 0
    is_running: bool = False
    timer_started_at_wall_clock: Optional[int] = None  # epoch ms
    last_sync_wall_clock: Optional[int] = None  # epoch ms
    remaining_ms: int = 0
    color: TimerColor = "green"
    display_time: str = "00:00"


@dataclass(slots=True, frozen=True)
class TimerRecoveryResult:
    success: bool
    recovered_elapsed_ms: int = 0
    away_ms: int = 0
    is_valid: bool = True
    error: Optional[str] = None


@dataclass(slots=True)
class Interruption:
    interruption_id: str
    task_id: str
    started_at_wall_clock: int  # epoch ms
    ended_at_wall_clock: Optional[int] = None
    duration_sec: int = 0
    category: Optional[str] = None
    note: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.ended_at_wall_clock is None

    def to_record(self) -> dict:
        return {
            "interruption_id": self.interruption_id,
            "task_id": self.task_id,
            "started_at_wall_clock": self.started_at_wall_clock,
            "ended_at_wall_clock": self.ended_at_wall_clock,
            "duration_sec": self.duration_sec,
            "category": self.category,
            "note": self.note,
        }

    @classmethod
    def from_record(cls, data: dict) -> "Interruption":
        return cls(
            interruption_id=str(data["interruption_id"]),
            task_id=str(data["task_id"]),
            started_at_wall_clock=int(data["started_at_wall_clock"]),
            ended_at_wall_clock=(
                None if data.get("ended_at_wall_clock") is None else int(data["ended_at_wall_clock"])
            ),
            duration_sec=int(data.get("duration_sec") or 0),
            category=data.get("category"),
            note=data.get("note"),
        )


@dataclass(slots=True, frozen=True)
class InterruptionSummary:
    task_id: str
    count: int = 0
    total_duration_sec: int = 0


@dataclass(slots=True, frozen=True)
class ProjectedTask:
    task: Task
    projected_start: datetime
    projected_end: datetime
    display_status: DisplayStatus
    risk_level: Optional[RiskLevel] = None
    buffer_seconds: int = 0

    @property
    def is_draggable(self) -> bool:
        return not self.task.is_fixed and self.display_status != "completed"


__all__ = [
    "TaskKind",
    "ScheduleMode",
    "TimerColor",
    "RiskLevel",
    "DisplayStatus",
    "FIXED",
    "FLEXIBLE",
    "INTERRUPTION_CATEGORIES",
    "MAX_INTERRUPTION_NOTE_LENGTH",
    "InvalidTaskError",
    "Task",
    "ScheduleConfig",
    "ScheduledTask",
    "FixedTaskConflict",
    "FixedTaskDelay",
    "ScheduleResult",
    "TimerRuntimeState",
    "TimerRecoveryResult",
    "Interruption",
    "InterruptionSummary",
    "ProjectedTask",
]
