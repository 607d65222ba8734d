from __future__ import annotations

"""Typed tracker configuration stored in the ``settings`` table."""

import logging
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Optional

from .database_manager import DatabaseManager
from .logging_setup import json_extra
from .models import ScheduleConfig
from .repositories import get_setting, set_setting
from .timeutil import to_local_naive

WARNING_THRESHOLD_KEY = "timer.warning_threshold_sec"
FIXED_ALERT_KEY = "projection.fixed_task_alert_min"
SYNC_INTERVAL_KEY = "timer.sync_interval_sec"
RECALC_DEBOUNCE_KEY = "schedule.recalc_debounce_ms"
SCHEDULE_MODE_KEY = "schedule.mode"  # now|custom
CUSTOM_START_KEY = "schedule.custom_start"  # ISO datetime or ""

_log = logging.getLogger(__name__)


@dataclass(slots=True)
class TrackerSettings:
    warning_threshold_sec: int = 300
    fixed_task_alert_min: int = 10
    sync_interval_sec: int = 10
    recalc_debounce_ms: int = 300
    schedule_mode: str = "now"
    custom_start: Optional[datetime] = None

    def schedule_config(self) -> ScheduleConfig:
        if self.schedule_mode == "custom" and self.custom_start is not None:
            return ScheduleConfig(mode="custom", custom_start=self.custom_start)
        return ScheduleConfig(mode="now")


_INT_KEYS = {
    "warning_threshold_sec": WARNING_THRESHOLD_KEY,
    "fixed_task_alert_min": FIXED_ALERT_KEY,
    "sync_interval_sec": SYNC_INTERVAL_KEY,
    "recalc_debounce_ms": RECALC_DEBOUNCE_KEY,
}


def _read_int(db: DatabaseManager, key: str, default: int) -> int:
    raw = get_setting(db, key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        _log.warning("ignoring malformed setting", extra=json_extra(key=key, value=raw))
        return default
    if value < 0:
        _log.warning("ignoring negative setting", extra=json_extra(key=key, value=raw))
        return default
    return value


def load_settings(db: DatabaseManager) -> TrackerSettings:
    defaults = TrackerSettings()
    values = {name: _read_int(db, key, getattr(defaults, name)) for name, key in _INT_KEYS.items()}

    mode = get_setting(db, SCHEDULE_MODE_KEY) or defaults.schedule_mode
    if mode not in ("now", "custom"):
        _log.warning("unknown schedule mode %r; using 'now'", mode)
        mode = "now"
    custom_start = None
    raw_start = get_setting(db, CUSTOM_START_KEY)
    if raw_start:
        try:
            custom_start = to_local_naive(datetime.fromisoformat(raw_start))
        except ValueError:
            _log.warning("ignoring malformed custom start", extra=json_extra(value=raw_start))
    if mode == "custom" and custom_start is None:
        mode = "now"
    return TrackerSettings(schedule_mode=mode, custom_start=custom_start, **values)


def save_settings(db: DatabaseManager, settings: TrackerSettings) -> None:
    for f in fields(settings):
        if f.name in _INT_KEYS:
            set_setting(db, _INT_KEYS[f.name], str(int(getattr(settings, f.name))))
    set_setting(db, SCHEDULE_MODE_KEY, settings.schedule_mode)
    set_setting(db, CUSTOM_START_KEY, settings.custom_start.isoformat() if settings.custom_start else "")


__all__ = [
    "TrackerSettings",
    "load_settings",
    "save_settings",
    "WARNING_THRESHOLD_KEY",
    "FIXED_ALERT_KEY",
    "SYNC_INTERVAL_KEY",
    "RECALC_DEBOUNCE_KEY",
    "SCHEDULE_MODE_KEY",
    "CUSTOM_START_KEY",
]
