from __future__ import annotations

"""Time helpers: duration/clock parsing, display formatting and clock readers.

Two clocks are kept apart:
 - wall clock (epoch milliseconds) keeps advancing while the process is
   suspended or dead, so it anchors cross-session recovery;
 - monotonic clock never runs backwards, so in-session elapsed time is
   measured against it.
"""

import re
import time as _time
from datetime import date, datetime, time, tzinfo
from typing import Callable, Literal, Optional

WallClock = Callable[[], int]  # epoch milliseconds
MonotonicClock = Callable[[], float]  # milliseconds, arbitrary origin

_SECONDS_RE = re.compile(r"^(\d+)s$", re.IGNORECASE)
_MINUTES_RE = re.compile(r"^(\d+)m$", re.IGNORECASE)
_HOURS_RE = re.compile(r"^(\d+)h$", re.IGNORECASE)
_HMS_RE = re.compile(r"^(\d+)h\s*(\d+)m\s*(\d+)s$", re.IGNORECASE)
_HM_RE = re.compile(r"^(\d+)h\s*(\d+)m$", re.IGNORECASE)
_MS_RE = re.compile(r"^(\d+)m\s*(\d+)s$", re.IGNORECASE)
_HHMMSS_RE = re.compile(r"^(\d{1,2}):(\d{2}):(\d{2})$")
_MMSS_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

_CLOCK_24H_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
_CLOCK_12H_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*(AM|PM)$", re.IGNORECASE)


# --- Clocks ---------------------------------------------------------------

def wall_clock_ms() -> int:
    return int(_time.time() * 1000)


def monotonic_ms() -> float:
    return _time.monotonic() * 1000.0


def to_epoch_ms(dt: datetime) -> int:
    """Naive datetimes are taken as local time, like ``datetime.timestamp``."""
    return int(round(dt.timestamp() * 1000))


def from_epoch_ms(ms: int, tz: Optional[tzinfo] = None) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz)


def to_local_naive(dt: datetime) -> datetime:
    """Aware datetimes are converted to local time and stripped of tzinfo."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


# --- Durations ------------------------------------------------------------

def parse_duration(text: str | None) -> Optional[int]:
    """Parse ``30m``, ``1h 30m``, ``8m58s``, ``01:30:00`` ... into seconds."""
    if not text or not isinstance(text, str):
        return None
    normalized = " ".join(text.split())
    if not normalized:
        return None

    m = _SECONDS_RE.match(normalized)
    if m:
        return int(m.group(1))
    m = _MINUTES_RE.match(normalized)
    if m:
        return int(m.group(1)) * 60
    m = _HOURS_RE.match(normalized)
    if m:
        return int(m.group(1)) * 3600
    m = _HMS_RE.match(normalized)
    if m:
        return int(m.group(1)) * 3600 + int(m.group(2)) * 60 + int(m.group(3))
    m = _HM_RE.match(normalized)
    if m:
        return int(m.group(1)) * 3600 + int(m.group(2)) * 60
    m = _MS_RE.match(normalized)
    if m:
        return int(m.group(1)) * 60 + int(m.group(2))
    # HH:MM:SS before MM:SS
    m = _HHMMSS_RE.match(normalized)
    if m:
        return int(m.group(1)) * 3600 + int(m.group(2)) * 60 + int(m.group(3))
    m = _MMSS_RE.match(normalized)
    if m:
        return int(m.group(1)) * 60 + int(m.group(2))
    return None


def format_duration(seconds: int) -> str:
    if seconds <= 0:
        return "0s"
    hours, rem = divmod(int(seconds), 3600)
    minutes, secs = divmod(rem, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs:
        parts.append(f"{secs}s")
    return " ".join(parts)


# --- Clock times ----------------------------------------------------------

def parse_clock_time(text: str | None, day: date) -> Optional[datetime]:
    """Parse ``09:00``, ``09:00:30`` or ``9:00 PM`` into a datetime on ``day``."""
    if not text or not isinstance(text, str):
        return None
    normalized = text.strip()
    if not normalized:
        return None

    seconds = 0
    m12 = _CLOCK_12H_RE.match(normalized)
    if m12:
        hours, minutes = int(m12.group(1)), int(m12.group(2))
        if not 1 <= hours <= 12:
            return None
        if m12.group(3).upper() == "AM":
            hours = 0 if hours == 12 else hours
        else:
            hours = 12 if hours == 12 else hours + 12
    else:
        m24 = _CLOCK_24H_RE.match(normalized)
        if not m24:
            return None
        hours, minutes = int(m24.group(1)), int(m24.group(2))
        seconds = int(m24.group(3)) if m24.group(3) else 0

    if hours > 23 or minutes > 59 or seconds > 59:
        return None
    return datetime.combine(day, time(hours, minutes, seconds))


def format_clock_time(dt: datetime, fmt: Literal["12h", "24h"] = "24h") -> str:
    if fmt == "24h":
        return f"{dt.hour:02d}:{dt.minute:02d}"
    display = dt.hour % 12 or 12
    period = "AM" if dt.hour < 12 else "PM"
    return f"{display}:{dt.minute:02d} {period}"


# --- Timer display --------------------------------------------------------

def format_timer_ms(ms: int | float) -> str:
    """``MM:SS`` below an hour, ``H:MM:SS`` above, ``-`` prefix for overtime."""
    prefix = "-" if ms < 0 else ""
    total_seconds = int(abs(ms) // 1000)
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours:
        return f"{prefix}{hours}:{minutes:02d}:{seconds:02d}"
    return f"{prefix}{minutes:02d}:{seconds:02d}"


def format_lag(lag_sec: int) -> str:
    """Negative lag means ahead of plan, positive means behind."""
    if lag_sec == 0:
        return "On schedule"
    hours, rem = divmod(abs(int(lag_sec)), 3600)
    minutes = rem // 60
    direction = "ahead" if lag_sec < 0 else "behind"
    if hours:
        return f"{hours} hr {minutes} min {direction}"
    return f"{minutes} min {direction}"


__all__ = [
    "WallClock",
    "MonotonicClock",
    "wall_clock_ms",
    "monotonic_ms",
    "to_epoch_ms",
    "from_epoch_ms",
    "to_local_naive",
    "parse_duration",
    "format_duration",
    "parse_clock_time",
    "format_clock_time",
    "format_timer_ms",
    "format_lag",
]
