# ftl_engine/compliance.py
"""
Compliance aggregator: rolling-window duty and flight time totals against the
CAR 700.16 / 700.19 style ceilings, plus instantaneous checks for the duty in progress.

Key behaviour:
 - Windows are trailing calendar-day windows ending today, inclusive at both ends.
 - Every check is classified GOOD / WARNING (>=85%) / DANGER (>=95%) / EXCEEDED (>=100%).
 - A check is non-compliant only when current > limit.
 - evaluate_compliance never fails; unreadable records simply contribute nothing.
"""

import datetime
import logging
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from .load_rules import RULEBOOK, CumulativeWindow
from .models import ActiveDutySession, DutyRecord
from .timeutil import elapsed_minutes, format_duration, minutes_to_hhmm, parse_date

log = logging.getLogger(__name__)

LIMITS = RULEBOOK.cumulative

DUTY_7_DAY = LIMITS.window("duty_7_day")
DUTY_28_DAY = LIMITS.window("duty_28_day")
FLIGHT_TIME_28_DAY = LIMITS.window("flight_time_28_day")
FLIGHT_TIME_365_DAY = LIMITS.window("flight_time_365_day")

CURRENT_FDP_NAME = "Current FDP"
CURRENT_FLIGHT_TIME_NAME = "Current Flight Time"


class ComplianceStatus(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    DANGER = "danger"
    EXCEEDED = "exceeded"


class ComplianceCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    current: int
    current_formatted: str
    limit: int
    limit_formatted: str
    remaining: int
    remaining_formatted: str
    percentage: float
    status: ComplianceStatus
    compliant: bool
    period_days: Optional[int] = None
    crew_type: Optional[str] = None
    record_count: Optional[int] = None


class ActiveDutySnapshot(BaseModel):
    """Elapsed figures of the duty in progress, as fed to the instantaneous checks."""
    model_config = ConfigDict(frozen=True)

    elapsed_fdp_minutes: Optional[int] = None
    max_fdp_minutes: Optional[int] = None
    elapsed_flight_minutes: Optional[int] = None
    augmented: bool = False


class ComplianceReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    evaluated_at: datetime.date
    duty_7_day: ComplianceCheck
    duty_28_day: ComplianceCheck
    flight_time_28_day: ComplianceCheck
    flight_time_365_day: ComplianceCheck
    current_fdp: Optional[ComplianceCheck] = None
    current_flight_time: Optional[ComplianceCheck] = None
    overall_status: ComplianceStatus
    all_compliant: bool
    violations: List[ComplianceCheck]
    warnings: List[ComplianceCheck]

    def checks(self) -> List[ComplianceCheck]:
        out = [self.duty_7_day, self.duty_28_day, self.flight_time_28_day, self.flight_time_365_day]
        return out + [c for c in (self.current_fdp, self.current_flight_time) if c is not None]


class AvailabilityItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    available: int


class Availability(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_additional_minutes: int
    max_additional: str
    limiting_factor: str
    breakdown: List[AvailabilityItem]


# ---------- Classification ----------
def get_status(current: int, limit: int) -> ComplianceStatus:
    if limit <= 0:
        return ComplianceStatus.EXCEEDED if current > 0 else ComplianceStatus.GOOD
    ratio = current / limit
    if ratio >= 1:
        return ComplianceStatus.EXCEEDED
    if ratio >= LIMITS.danger_threshold:
        return ComplianceStatus.DANGER
    if ratio >= LIMITS.warning_threshold:
        return ComplianceStatus.WARNING
    return ComplianceStatus.GOOD


def _percentage(current: int, limit: int) -> float:
    if limit <= 0:
        return 100.0 if current > 0 else 0.0
    return min(100.0, (current / limit) * 100)


def _build_check(name: str, current: int, limit: int, **extra: Any) -> ComplianceCheck:
    remaining = limit - current
    return ComplianceCheck(
        name=name,
        current=current,
        current_formatted=minutes_to_hhmm(current),
        limit=limit,
        limit_formatted=minutes_to_hhmm(limit),
        remaining=remaining,
        remaining_formatted=format_duration(remaining),
        percentage=_percentage(current, limit),
        status=get_status(current, limit),
        compliant=current <= limit,
        **extra,
    )


# ---------- Record handling ----------
def _as_minutes(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        m = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, m)


def _read_record(rec: Any) -> Optional[Tuple[datetime.date, int, int]]:
    """(date, duty_minutes, flight_minutes) or None when the record has no usable date."""
    if isinstance(rec, DutyRecord):
        return rec.date, rec.duty_minutes, rec.flight_minutes
    if isinstance(rec, dict):
        get = rec.get
    else:
        def get(key, default=None):
            return getattr(rec, key, default)
    d = parse_date(get("date"))
    if d is None:
        return None
    duty = get("duty_minutes")
    if duty is None:
        duty = get("dutyMinutes")
    flight = get("flight_minutes")
    if flight is None:
        flight = get("flightMinutes")
    return d, _as_minutes(duty), _as_minutes(flight)


def _normalize_records(records: Optional[Iterable[Any]]) -> List[Tuple[datetime.date, int, int]]:
    if not records:
        return []
    out = []
    try:
        for rec in records:
            row = _read_record(rec)
            if row is None:
                log.debug("Skipping unreadable duty record: %r", rec)
                continue
            out.append(row)
    except TypeError:
        log.warning("Duty records are not iterable; treating as empty")
        return []
    return out


def _as_of(now: Optional[Union[datetime.date, datetime.datetime]]) -> datetime.date:
    if now is None:
        return datetime.date.today()
    if isinstance(now, datetime.datetime):
        return now.date()
    return now


def filter_by_window(rows: List[Tuple[datetime.date, int, int]], days: int,
                     today: datetime.date) -> List[Tuple[datetime.date, int, int]]:
    """Rows dated within [today - days, today], both ends included."""
    cutoff = today - datetime.timedelta(days=days)
    return [r for r in rows if cutoff <= r[0] <= today]


def _check_window(window: CumulativeWindow, rows, today: datetime.date) -> ComplianceCheck:
    in_window = filter_by_window(rows, window.window_days, today)
    idx = 1 if window.metric == "duty_minutes" else 2
    total = sum(r[idx] for r in in_window)
    return _build_check(
        window.name,
        total,
        window.max_minutes,
        period_days=window.window_days,
        record_count=len(in_window),
    )


# ---------- Individual checks ----------
def check_7_day_duty(records, now=None) -> ComplianceCheck:
    return _check_window(DUTY_7_DAY, _normalize_records(records), _as_of(now))


def check_28_day_duty(records, now=None) -> ComplianceCheck:
    return _check_window(DUTY_28_DAY, _normalize_records(records), _as_of(now))


def check_28_day_flight_time(records, now=None) -> ComplianceCheck:
    return _check_window(FLIGHT_TIME_28_DAY, _normalize_records(records), _as_of(now))


def check_365_day_flight_time(records, now=None) -> ComplianceCheck:
    return _check_window(FLIGHT_TIME_365_DAY, _normalize_records(records), _as_of(now))


def check_current_fdp(current_fdp_minutes: int, max_fdp_minutes: int) -> ComplianceCheck:
    return _build_check(CURRENT_FDP_NAME, int(current_fdp_minutes), int(max_fdp_minutes))


def check_current_flight_time(current_flight_minutes: int, augmented: bool = False) -> ComplianceCheck:
    limit = LIMITS.flight_time_augmented_minutes if augmented else LIMITS.flight_time_single_duty_minutes
    return _build_check(
        CURRENT_FLIGHT_TIME_NAME,
        int(current_flight_minutes),
        limit,
        crew_type="augmented" if augmented else "single",
    )


def snapshot_from_session(session: ActiveDutySession, now: Optional[datetime.datetime] = None,
                          elapsed_flight_minutes: Optional[int] = None,
                          augmented: bool = False) -> ActiveDutySnapshot:
    """Elapsed FDP of a live session at `now`, ready for evaluate_compliance."""
    if now is None:
        now = datetime.datetime.now(session.start_time.tzinfo)
    return ActiveDutySnapshot(
        elapsed_fdp_minutes=elapsed_minutes(session.start_time, now),
        max_fdp_minutes=session.max_fdp_minutes,
        elapsed_flight_minutes=elapsed_flight_minutes,
        augmented=augmented,
    )


# ---------- Aggregation ----------
def _overall_status(checks: List[ComplianceCheck], violations: List[ComplianceCheck],
                    warnings: List[ComplianceCheck]) -> ComplianceStatus:
    if violations:
        return ComplianceStatus.EXCEEDED
    # a check sitting exactly at its limit is compliant but counts as DANGER overall
    if any(c.status in (ComplianceStatus.DANGER, ComplianceStatus.EXCEEDED) for c in checks):
        return ComplianceStatus.DANGER
    if warnings:
        return ComplianceStatus.WARNING
    return ComplianceStatus.GOOD


def evaluate_compliance(records: Optional[Iterable[Any]] = None,
                        active_duty: Optional[ActiveDutySnapshot] = None,
                        now: Optional[Union[datetime.date, datetime.datetime]] = None) -> ComplianceReport:
    """
    Run all compliance checks over `records` as of `now` (default: today).
    `active_duty` adds the Current FDP / Current Flight Time checks when its figures are set.
    """
    today = _as_of(now)
    rows = _normalize_records(records)

    duty_7 = _check_window(DUTY_7_DAY, rows, today)
    duty_28 = _check_window(DUTY_28_DAY, rows, today)
    flight_28 = _check_window(FLIGHT_TIME_28_DAY, rows, today)
    flight_365 = _check_window(FLIGHT_TIME_365_DAY, rows, today)

    current_fdp = None
    current_flight = None
    if active_duty is not None:
        if active_duty.elapsed_fdp_minutes is not None and active_duty.max_fdp_minutes is not None:
            current_fdp = check_current_fdp(active_duty.elapsed_fdp_minutes, active_duty.max_fdp_minutes)
        if active_duty.elapsed_flight_minutes is not None:
            current_flight = check_current_flight_time(active_duty.elapsed_flight_minutes, active_duty.augmented)

    checks = [duty_7, duty_28, flight_28, flight_365]
    checks += [c for c in (current_fdp, current_flight) if c is not None]

    violations = [c for c in checks if not c.compliant]
    warnings = [c for c in checks if c.status == ComplianceStatus.WARNING]
    overall = _overall_status(checks, violations, warnings)

    if violations:
        log.info("Compliance violations: %s", ", ".join(c.name for c in violations))

    return ComplianceReport(
        evaluated_at=today,
        duty_7_day=duty_7,
        duty_28_day=duty_28,
        flight_time_28_day=flight_28,
        flight_time_365_day=flight_365,
        current_fdp=current_fdp,
        current_flight_time=current_flight,
        overall_status=overall,
        all_compliant=not violations,
        violations=violations,
        warnings=warnings,
    )


def availability_from_checks(checks: List[ComplianceCheck]) -> Availability:
    """
    Most restrictive headroom among the given checks. Ties go to the earlier check.
    """
    breakdown = [AvailabilityItem(name=c.name, available=c.remaining) for c in checks]
    most_restrictive = breakdown[0]
    for item in breakdown[1:]:
        if item.available < most_restrictive.available:
            most_restrictive = item
    available = max(0, most_restrictive.available)
    return Availability(
        max_additional_minutes=available,
        max_additional=format_duration(available),
        limiting_factor=most_restrictive.name,
        breakdown=breakdown,
    )


def calculate_availability(records: Optional[Iterable[Any]] = None,
                           now: Optional[Union[datetime.date, datetime.datetime]] = None) -> Availability:
    """How much more duty / flight time fits before the first rolling limit is hit."""
    report = evaluate_compliance(records, now=now)
    return availability_from_checks([report.duty_7_day, report.duty_28_day, report.flight_time_28_day])


def get_limits() -> dict:
    """Regulatory limits for reference."""
    data = LIMITS.model_dump()
    data.pop("type", None)
    return data
