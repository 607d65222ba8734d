import json
import logging

from day_tracker.logging_setup import configure_logging, json_extra


def test_json_lines_carry_extras(tmp_path):
    logfile = configure_logging(tmp_path, console=False)
    try:
        logging.getLogger("day_tracker.test").warning("recovery clamped", extra=json_extra(recovered_ms=5, task="t1"))
        for handler in logging.getLogger().handlers:
            handler.flush()
        lines = [json.loads(line) for line in logfile.read_text(encoding="utf-8").splitlines()]
    finally:
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
    entry = lines[-1]
    assert entry["msg"] == "recovery clamped"
    assert entry["level"] == "WARNING"
    assert entry["recovered_ms"] == 5
    assert entry["task"] == "t1"
    assert lines[0]["phase"] == "startup"
