# tests/test_timeutil.py
import datetime

from ftl_engine.timeutil import (
    duty_length,
    elapsed_minutes,
    format_duration,
    hours_to_minutes,
    minutes_to_hhmm,
    minutes_to_time,
    parse_date,
    parse_instant,
    time_to_minutes,
    time_with_day_marker,
)


def test_time_to_minutes_valid():
    assert time_to_minutes("00:00") == 0
    assert time_to_minutes("07:30") == 450
    assert time_to_minutes("7:05") == 425
    assert time_to_minutes("23:59") == 1439


def test_time_to_minutes_rejects_bad_text():
    for bad in ("24:00", "12:60", "abc", "", "12:5", "1230", None, 730):
        assert time_to_minutes(bad) is None, bad


def test_minutes_to_time_wraps():
    assert minutes_to_time(1500) == "01:00"
    assert minutes_to_time(-60) == "23:00"
    assert minutes_to_time(None) == "--:--"


def test_day_marker():
    assert time_with_day_marker(480) == "08:00"
    assert time_with_day_marker(1920) == "08:00 (+1)"
    assert time_with_day_marker(3000) == "02:00 (+2)"


def test_format_duration():
    assert format_duration(0) == "0m"
    assert format_duration(45) == "45m"
    assert format_duration(60) == "1h"
    assert format_duration(810) == "13h 30m"
    assert format_duration(65) == "1h 05m"
    assert format_duration(-90) == "-1h 30m"


def test_minutes_to_hhmm():
    assert minutes_to_hhmm(3600) == "60:00"
    assert minutes_to_hhmm(-5) == "-0:05"
    assert minutes_to_hhmm(None) is None


def test_overnight_duty_length():
    # report 23:00, release 01:00
    assert duty_length(1380, 60) == 120
    assert duty_length(420, 900) == 480
    assert duty_length(600, 600) == 0


def test_hours_to_minutes():
    assert hours_to_minutes(8.5) == 510
    assert hours_to_minutes("1.25") == 75
    assert hours_to_minutes("abc") == 0
    assert hours_to_minutes(None) == 0
    assert hours_to_minutes(True) == 0


def test_parse_date_and_instant():
    assert parse_date("2025-11-25") == datetime.date(2025, 11, 25)
    assert parse_date("2025-11-25T06:00:00") == datetime.date(2025, 11, 25)
    assert parse_date(datetime.datetime(2025, 1, 2, 3, 4)) == datetime.date(2025, 1, 2)
    assert parse_date("not a date") is None
    assert parse_date("2025") is None
    assert parse_date("2025-06") is None
    assert parse_date("2025-06-15 08:00") == datetime.date(2025, 6, 15)
    assert parse_date("") is None
    inst = parse_instant("2025-11-25T06:00:00+05:30")
    assert inst.utcoffset() == datetime.timedelta(hours=5, minutes=30)
    assert parse_instant("garbage") is None


def test_elapsed_minutes_mixed_naive_aware():
    start = datetime.datetime(2025, 1, 1, 10, 0, tzinfo=datetime.timezone.utc)
    now = datetime.datetime(2025, 1, 1, 11, 30)
    assert elapsed_minutes(start, now) == 90


def test_elapsed_minutes_never_negative():
    start = datetime.datetime(2025, 1, 1, 10, 0)
    assert elapsed_minutes(start, start - datetime.timedelta(hours=1)) == 0
