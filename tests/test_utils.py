from datetime import datetime

import pytest

from worklog.utils import (
    clock,
    duration_minutes,
    format_duration,
    parse_clock,
    percent,
    smart_ljust,
    smart_truncate,
    weekday,
)

NOW = datetime(2024, 5, 15, 14, 7)


def test_clock_is_zero_padded_24h():
    assert clock(datetime(2024, 5, 15, 9, 5)) == "09:05"
    assert clock(datetime(2024, 5, 15, 23, 59)) == "23:59"
    assert clock(datetime(2024, 5, 15, 0, 0)) == "00:00"


def test_weekday():
    assert weekday(NOW) == "Wednesday"


@pytest.mark.parametrize("text, expected", [
    ("09:15", datetime(2024, 5, 15, 9, 15)),
    ("00:00", datetime(2024, 5, 15, 0, 0)),
    (" 23:59 ", datetime(2024, 5, 15, 23, 59)),
])
def test_parse_clock(text, expected):
    assert parse_clock(text, NOW) == expected


@pytest.mark.parametrize("text", ["9:15", "24:00", "12:60", "12-30", "ab:cd", "", "12:30:00"])
def test_parse_clock_rejects_bad_input(text):
    assert parse_clock(text, NOW) is None


def test_duration_minutes():
    assert duration_minutes("09:15", "17:30") == 495
    assert duration_minutes("09:15", "09:15") == 0
    assert duration_minutes("23:30", "00:15") == 45


def test_format_duration_and_percent():
    assert format_duration(495) == "8h15m"
    assert format_duration(5) == "0h05m"
    assert percent(0.5) == "50.00%"


def test_smart_width_helpers():
    assert smart_ljust("写周报", 8) == "写周报  "
    assert smart_truncate("a" * 20, 10) == "a" * 7 + "..."
    assert smart_truncate("short", 10) == "short"
