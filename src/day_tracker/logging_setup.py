from __future__ import annotations

"""Logging configuration: rotating JSON-lines file plus a terse console.

Structured fields travel in ``extra`` with a ``_json_`` prefix; use
``json_extra(key=value)`` to build them.
"""

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Dict

LOG_DIR_NAME = "logs"
LOG_FILE_BASENAME = "day_tracker.log"
_EXTRA_PREFIX = "_json_"


def json_extra(**fields: Any) -> Dict[str, Any]:
    return {_EXTRA_PREFIX + k: v for k, v in fields.items()}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k.startswith(_EXTRA_PREFIX):
                payload[k[len(_EXTRA_PREFIX):]] = v
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(base_dir: Path, level: int = logging.INFO, console: bool = True) -> Path:
    log_dir = base_dir / LOG_DIR_NAME
    log_dir.mkdir(parents=True, exist_ok=True)
    logfile = log_dir / LOG_FILE_BASENAME
    root = logging.getLogger()
    root.setLevel(level)
    # avoid duplicate handlers when configured twice
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    file_handler = RotatingFileHandler(logfile, maxBytes=512_000, backupCount=5, encoding="utf-8")
    file_handler.setFormatter(JsonFormatter())
    root.addHandler(file_handler)
    if console:
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(ch)
    logging.getLogger(__name__).info("logging initialised", extra=json_extra(phase="startup", logfile=str(logfile)))
    return logfile


__all__ = ["configure_logging", "json_extra", "JsonFormatter"]
