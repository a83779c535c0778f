# tests/test_rest.py
from ftl_engine.rest import (
    check_rest_compliance,
    compute_min_rest,
    consecutive_duty_limit,
    get_constants,
)
from ftl_engine.results import ErrorKind


def min_rest(end, hours, tz=0):
    res = compute_min_rest(end, hours, tz)
    assert res.success, res
    return res.value


def test_rest_tiers():
    assert min_rest("22:00", 11.9).min_rest_minutes == 600
    assert min_rest("22:00", 12.0).min_rest_minutes == 720
    assert min_rest("22:00", 13.99).min_rest_minutes == 720
    assert min_rest("22:00", 14.0).min_rest_minutes == 840
    assert min_rest("22:00", 0).min_rest_minutes == 600


def test_rest_never_below_ten_hours():
    for hours in (0, 5, 11.9, 12, 14, 24):
        for tz in range(0, 25):
            assert min_rest("12:00", hours, tz).min_rest_minutes >= 600


def test_timezone_adjustments():
    three = min_rest("10:00", 8, 3)
    assert three.min_rest_minutes == 660
    assert three.timezone_band == "3-4"
    assert three.acclimatization_required_hours == 48
    assert any(c.reason == "Time zone crossing (3-4)" and c.amount == 60 for c in three.components)

    five = min_rest("10:00", 8, 5)
    assert five.min_rest_minutes == 720
    assert five.acclimatization_required_hours == 72

    two = min_rest("10:00", 8, 2)
    assert two.min_rest_minutes == 600
    assert [c.type for c in two.components] == ["base"]


def test_recommended_rest_and_next_report():
    r = min_rest("22:00", 8)
    assert r.recommended_rest_minutes == 750
    assert r.recommended_rest == "12h 30m"
    # 22:00 + 10h -> 08:00 next day
    assert r.next_report == "08:00 (+1)"
    assert r.next_report_minutes == 480
    assert r.days_later == 1
    assert r.crosses_midnight is True
    assert r.recommended_next_report == "10:30 (+1)"


def test_same_day_next_report():
    r = min_rest("06:00", 8)
    assert r.next_report == "16:00"
    assert r.crosses_midnight is False
    assert r.days_later == 0


def test_very_long_duty_recommended():
    assert min_rest("12:00", 15).recommended_rest_minutes == 1050


def test_invalid_rest_inputs():
    for end, hours, tz in (
        ("25:00", 8, 0),
        ("22:00", -1, 0),
        ("22:00", 25, 0),
        ("22:00", "abc", 0),
        ("22:00", 8, 2.5),
        ("22:00", 8, -1),
        ("22:00", 8, 25),
    ):
        res = compute_min_rest(end, hours, tz)
        assert not res.success, (end, hours, tz)
        assert res.kind == ErrorKind.INPUT_VALIDATION


def test_rest_compliance_deficit():
    res = check_rest_compliance(540, 600).value
    assert res.compliant is False
    assert res.required_minutes == 600
    assert res.deficit_minutes == 60
    assert res.message == "Rest period is 1h short of minimum requirement"


def test_rest_compliance_ok():
    res = check_rest_compliance(660, 600).value
    assert res.compliant is True
    assert res.surplus_minutes == 60
    assert res.message == "Rest period meets minimum requirements"


def test_rest_compliance_with_timezones():
    res = check_rest_compliance(700, 780, 5).value
    # 13h duty -> 720, +2h for 5+ zones
    assert res.required_minutes == 840
    assert res.deficit_minutes == 140


def test_rest_compliance_bad_input():
    assert check_rest_compliance(-5, 600).kind == ErrorKind.INPUT_VALIDATION
    assert check_rest_compliance(600, "x").kind == ErrorKind.INPUT_VALIDATION


def test_consecutive_duty_limit():
    five = consecutive_duty_limit(5)
    assert five.days_remaining == 2
    assert five.needs_time_off is False
    seven = consecutive_duty_limit(7)
    assert seven.days_remaining == 0
    assert seven.needs_time_off is True
    assert seven.required_time_off == "36h"


def test_constants():
    c = get_constants()
    assert c["standard_min_minutes"] == 600
    assert c["sleep_opportunity_floor_minutes"] == 600


def test_consecutive_duty_limit_bad_counts():
    negative = consecutive_duty_limit(-3)
    assert negative.current_days == 0
    assert negative.days_remaining == 7
    assert consecutive_duty_limit("x").current_days == 0
    assert consecutive_duty_limit("6").days_remaining == 1
