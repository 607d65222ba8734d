from __future__ import annotations

"""Recovery of active timed spans after an arbitrary gap in execution.

The timer and an open interruption are recovered the same way: a persisted
elapsed value plus the wall-clock instant it was written at. Whatever wall
time passed since that write is credited on top.

Validation order:
 1. no record / status not ``active``  -> nothing to recover (not an error)
 2. last sync in the future            -> invalid, caller resets
 3. negative result                    -> clamped to 0
 4. result above 24h                   -> clamped to 24h, still a success
"""

import logging
from dataclasses import dataclass
from collections.abc import Mapping
from typing import Any, Optional

from .logging_setup import json_extra
from .models import Interruption, TimerRecoveryResult

ACTIVE = "active"
STOPPED = "stopped"

MAX_RECOVERY_ELAPSED_MS = 24 * 60 * 60 * 1000

_log = logging.getLogger(__name__)


class CorruptRecordError(ValueError):
    """A persisted record is missing fields or carries the wrong types."""


@dataclass(slots=True, frozen=True)
class PersistedSpan:
    elapsed_ms: int
    last_sync_wall_clock: int
    status: str


def _int_field(raw: Mapping[str, Any], name: str) -> int:
    if name not in raw:
        raise CorruptRecordError(f"missing field {name!r}")
    value = raw[name]
    # bool is an int subclass; never a valid timestamp or elapsed value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CorruptRecordError(f"field {name!r} is not a number")
    if value != value:  # NaN
        raise CorruptRecordError(f"field {name!r} is NaN")
    return int(value)


def parse_span(raw: Any) -> PersistedSpan:
    if not isinstance(raw, Mapping):
        raise CorruptRecordError("record is not a mapping")
    status = raw.get("status")
    if not isinstance(status, str):
        raise CorruptRecordError("missing field 'status'")
    return PersistedSpan(
        elapsed_ms=_int_field(raw, "elapsed_ms"),
        last_sync_wall_clock=_int_field(raw, "last_sync_wall_clock"),
        status=status,
    )


def recover(persisted: Optional[PersistedSpan], now_ms: int) -> TimerRecoveryResult:
    if persisted is None or persisted.status != ACTIVE:
        return TimerRecoveryResult(success=False)

    if persisted.last_sync_wall_clock > now_ms:
        _log.warning(
            "recovery rejected: timestamp in future",
            extra=json_extra(last_sync=persisted.last_sync_wall_clock, now=now_ms),
        )
        return TimerRecoveryResult(success=False, is_valid=False, error="Future timestamp")

    away_ms = now_ms - persisted.last_sync_wall_clock
    recovered = persisted.elapsed_ms + away_ms
    if recovered < 0:
        recovered = 0
    if recovered > MAX_RECOVERY_ELAPSED_MS:
        _log.warning(
            "recovery elapsed exceeds cap; clamping",
            extra=json_extra(recovered_ms=recovered, cap_ms=MAX_RECOVERY_ELAPSED_MS),
        )
        recovered = MAX_RECOVERY_ELAPSED_MS
    return TimerRecoveryResult(success=True, recovered_elapsed_ms=recovered, away_ms=away_ms)


def recover_record(raw: Any, now_ms: int) -> TimerRecoveryResult:
    """Parse a raw persisted record and recover it; corrupt input is invalid, not fatal."""
    if raw is None:
        return TimerRecoveryResult(success=False)
    try:
        span = parse_span(raw)
    except CorruptRecordError as e:
        _log.warning("recovery rejected: corrupt record (%s)", e)
        return TimerRecoveryResult(success=False, is_valid=False, error=f"Corrupt record: {e}")
    return recover(span, now_ms)


def recover_interruption(interruption: Interruption, now_ms: int) -> TimerRecoveryResult:
    """An open interruption is a span with zero elapsed, synced at its start."""
    span = PersistedSpan(
        elapsed_ms=0,
        last_sync_wall_clock=interruption.started_at_wall_clock,
        status=ACTIVE if interruption.is_active else STOPPED,
    )
    return recover(span, now_ms)


__all__ = [
    "ACTIVE",
    "STOPPED",
    "MAX_RECOVERY_ELAPSED_MS",
    "CorruptRecordError",
    "PersistedSpan",
    "parse_span",
    "recover",
    "recover_record",
    "recover_interruption",
]
