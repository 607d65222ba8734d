from datetime import date, datetime, timezone

import pytest

from day_tracker.timeutil import (
    format_clock_time,
    format_duration,
    format_lag,
    format_timer_ms,
    from_epoch_ms,
    parse_clock_time,
    parse_duration,
    to_epoch_ms,
    to_local_naive,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("30m", 1800),
        ("45s", 45),
        ("2h", 7200),
        ("1h 30m", 5400),
        ("1h30m", 5400),
        ("1h 5m 10s", 3910),
        ("8m58s", 538),
        ("01:30:00", 5400),
        ("25:30", 1530),
        ("  1H  ", 3600),
        ("", None),
        ("soon", None),
        (None, None),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


def test_format_duration():
    assert format_duration(0) == "0s"
    assert format_duration(-5) == "0s"
    assert format_duration(90) == "1m 30s"
    assert format_duration(3600) == "1h"
    assert format_duration(3910) == "1h 5m 10s"


def test_parse_clock_time():
    day = date(2025, 12, 18)
    assert parse_clock_time("09:00", day) == datetime(2025, 12, 18, 9, 0)
    assert parse_clock_time("9:05:30", day) == datetime(2025, 12, 18, 9, 5, 30)
    assert parse_clock_time("12:15 AM", day) == datetime(2025, 12, 18, 0, 15)
    assert parse_clock_time("12:00 pm", day) == datetime(2025, 12, 18, 12, 0)
    assert parse_clock_time("9:00 PM", day) == datetime(2025, 12, 18, 21, 0)
    assert parse_clock_time("24:00", day) is None
    assert parse_clock_time("13:00 PM", day) is None
    assert parse_clock_time("noon", day) is None


def test_format_clock_time():
    dt = datetime(2025, 12, 18, 21, 5)
    assert format_clock_time(dt) == "21:05"
    assert format_clock_time(dt, "12h") == "9:05 PM"
    assert format_clock_time(datetime(2025, 12, 18, 0, 30), "12h") == "12:30 AM"


def test_format_timer_ms():
    assert format_timer_ms(0) == "00:00"
    assert format_timer_ms(59_999) == "00:59"
    assert format_timer_ms(3_725_000) == "1:02:05"
    assert format_timer_ms(-61_000) == "-01:01"


def test_format_lag():
    assert format_lag(0) == "On schedule"
    assert format_lag(-300) == "5 min ahead"
    assert format_lag(4500) == "1 hr 15 min behind"


def test_epoch_conversion():
    dt = datetime(2025, 12, 18, 9, 0, tzinfo=timezone.utc)
    ms = to_epoch_ms(dt)
    assert ms == 1_766_048_400_000
    assert from_epoch_ms(ms, timezone.utc) == dt


def test_to_local_naive():
    naive = datetime(2025, 12, 18, 9, 0)
    assert to_local_naive(naive) is naive
    aware = datetime(2025, 12, 18, 9, 0, tzinfo=timezone.utc)
    local = to_local_naive(aware)
    assert local.tzinfo is None
    assert to_epoch_ms(local) == to_epoch_ms(aware)
