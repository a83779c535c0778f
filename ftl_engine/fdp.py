# ftl_engine/fdp.py
"""
Flight Duty Period engine.

Maps a report time and sector count to the maximum FDP from the CAR 700.27 style
table, applies the unacclimatized reduction, clamps to the absolute limits and checks
the duty against the Window of Circadian Low (WOCL, 02:00-05:59 local).

All functions are pure. Fallible ones return Ok / Err from ftl_engine.results.
"""

import datetime
import logging
import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from .load_rules import RULEBOOK
from .results import Result, invalid, ok
from .timeutil import (
    MINUTES_PER_DAY,
    elapsed_minutes,
    format_duration,
    minutes_to_time,
    time_to_minutes,
)

log = logging.getLogger(__name__)

FDP_RULES = RULEBOOK.fdp

MAX_FDP_ABSOLUTE = FDP_RULES.max_fdp_minutes
MIN_FDP_ABSOLUTE = FDP_RULES.min_fdp_minutes
UNACCLIMATIZED_REDUCTION = FDP_RULES.unacclimatized_reduction_minutes
WOCL_START = FDP_RULES.wocl.start_minutes
WOCL_END = FDP_RULES.wocl.end_minutes

# Remaining-time bands for compute_remaining_fdp (minutes)
REMAINING_DANGER_MINUTES = 60
REMAINING_WARNING_MINUTES = 120

# Percentage bands for the live countdown
COUNTDOWN_CAUTION_PCT = 75
COUNTDOWN_CRITICAL_PCT = 90

NO_ENCROACHMENT = "No encroachment"
WOCL_ENCROACHMENT = "Duty encroaches WOCL (0200-0559)"
REPORT_IN_WOCL = "Report time is within WOCL"


class Acclimatization(str, Enum):
    ACCLIMATIZED = "acclimatized"
    UNACCLIMATIZED = "unacclimatized"


class Reduction(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str
    amount: int


class FDPResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_fdp_minutes: int
    max_fdp: str                  # HH:MM
    max_fdp_readable: str         # 13h 30m
    report_minutes: int
    end_of_duty_minutes: int      # time of day, [0, 1440)
    end_of_duty: str              # HH:MM, ' (+1)' when past midnight
    next_day: bool
    wocl_encroachment: bool
    wocl_overlap_minutes: int
    wocl_info: str
    report_time_range: str
    sector_range: str
    reductions: List[Reduction] = []


class RemainingFDP(BaseModel):
    model_config = ConfigDict(frozen=True)

    remaining_minutes: Optional[int]
    remaining: str
    percentage: float
    status: str
    max_fdp_minutes: Optional[int] = None


class CountdownStatus(str, Enum):
    OK = "OK"
    CAUTION = "CAUTION"
    CRITICAL = "CRITICAL"
    EXCEEDED = "EXCEEDED"


class DutyCountdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    elapsed_minutes: int
    elapsed: str                  # H:MM
    max_fdp_minutes: int
    remaining_minutes: int
    remaining: str
    percentage: float
    status: CountdownStatus


# ---------- Table lookup ----------
def get_report_time_range(report_minutes: int) -> str:
    for tr in FDP_RULES.time_ranges:
        if tr.contains(report_minutes % MINUTES_PER_DAY):
            return tr.id
    # time ranges are validated to tile the day at load time
    raise LookupError(f"no FDP time range for minute {report_minutes}")


def get_sector_range(sectors: int) -> str:
    for sr in FDP_RULES.sector_ranges:
        if sr.contains(sectors):
            return sr.id
    return FDP_RULES.sector_ranges[-1].id


def get_table() -> Dict[str, Dict[str, int]]:
    """FDP table for reference display (copy)."""
    return {k: dict(v) for k, v in FDP_RULES.table.items()}


def get_time_ranges() -> List[str]:
    return [tr.id for tr in FDP_RULES.time_ranges]


# ---------- WOCL helpers ----------
def is_in_wocl(minute_of_day: int) -> bool:
    return WOCL_START <= minute_of_day % MINUTES_PER_DAY < WOCL_END


def wocl_overlap_minutes(start_minutes: int, duration_minutes: int) -> int:
    """
    Minutes of the duty [start, start + duration) that fall inside WOCL on a 24h clock.
    Checks the WOCL of the report day and of the following day, so duties crossing
    midnight are handled without special cases.
    """
    if duration_minutes <= 0:
        return 0
    start = start_minutes % MINUTES_PER_DAY
    end = start + duration_minutes
    total = 0
    for day in (0, 1):
        ws = WOCL_START + day * MINUTES_PER_DAY
        we = WOCL_END + day * MINUTES_PER_DAY
        overlap = min(end, we) - max(start, ws)
        if overlap > 0:
            total += overlap
    return total


def encroaches_wocl(start_minutes: int, duration_minutes: int) -> bool:
    return wocl_overlap_minutes(start_minutes, duration_minutes) > 0


# ---------- Input coercion ----------
def _parse_sectors(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _parse_elapsed(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(v) or math.isinf(v):
        return None
    return max(0, int(v))


def parse_acclimatization(value: Any) -> Optional[Acclimatization]:
    if isinstance(value, Acclimatization):
        return value
    if isinstance(value, bool):
        return Acclimatization.ACCLIMATIZED if value else Acclimatization.UNACCLIMATIZED
    try:
        return Acclimatization(str(value).strip().lower())
    except ValueError:
        return None


# ---------- Main calculation ----------
def compute_max_fdp(report_time: Any, sectors: Any, acclimatization: Any = Acclimatization.ACCLIMATIZED) -> Result:
    """
    Calculate the maximum FDP for a duty.

    report_time: 'HH:MM' local report time
    sectors: number of flight sectors, 1-10
    acclimatization: 'acclimatized' / 'unacclimatized' (or a bool, True = acclimatized)

    Returns Ok(FDPResult) or Err(INPUT_VALIDATION).
    """
    report_minutes = time_to_minutes(report_time)
    if report_minutes is None:
        return invalid("Invalid report time format. Please use HH:MM.")

    num_sectors = _parse_sectors(sectors)
    if num_sectors is None or not FDP_RULES.min_sectors <= num_sectors <= FDP_RULES.max_sectors:
        return invalid(f"Invalid number of sectors. Please enter {FDP_RULES.min_sectors}-{FDP_RULES.max_sectors}.")

    status = parse_acclimatization(acclimatization)
    if status is None:
        return invalid("Invalid acclimatization status. Use 'acclimatized' or 'unacclimatized'.")

    time_range = get_report_time_range(report_minutes)
    sector_range = get_sector_range(num_sectors)
    max_fdp = FDP_RULES.table[time_range][sector_range]

    reductions: List[Reduction] = []
    if status is Acclimatization.UNACCLIMATIZED:
        max_fdp -= UNACCLIMATIZED_REDUCTION
        reductions.append(Reduction(reason="Unacclimatized crew", amount=UNACCLIMATIZED_REDUCTION))

    # deductions never take the FDP outside the absolute limits
    clamped = max(MIN_FDP_ABSOLUTE, min(MAX_FDP_ABSOLUTE, max_fdp))
    if clamped != max_fdp:
        log.debug("FDP %d clamped to %d (report %s, sectors %s)", max_fdp, clamped, report_time, num_sectors)
    max_fdp = clamped

    end_of_duty = report_minutes + max_fdp
    next_day = end_of_duty >= MINUTES_PER_DAY

    overlap = wocl_overlap_minutes(report_minutes, max_fdp)
    encroachment = overlap > 0
    if encroachment:
        info = WOCL_ENCROACHMENT
    elif is_in_wocl(report_minutes):
        info = REPORT_IN_WOCL
    else:
        info = NO_ENCROACHMENT

    end_text = minutes_to_time(end_of_duty)
    if next_day:
        end_text += " (+1)"

    return ok(FDPResult(
        max_fdp_minutes=max_fdp,
        max_fdp=minutes_to_time(max_fdp),
        max_fdp_readable=format_duration(max_fdp),
        report_minutes=report_minutes,
        end_of_duty_minutes=end_of_duty % MINUTES_PER_DAY,
        end_of_duty=end_text,
        next_day=next_day,
        wocl_encroachment=encroachment,
        wocl_overlap_minutes=overlap,
        wocl_info=info,
        report_time_range=time_range,
        sector_range=sector_range,
        reductions=reductions,
    ))


def compute_remaining_fdp(report_time: Any, elapsed: Any, sectors: Any,
                          acclimatization: Any = Acclimatization.ACCLIMATIZED) -> RemainingFDP:
    """
    Remaining FDP after `elapsed` minutes on duty.
    Status: 'danger' with <= 60 min left, 'warning' with <= 120 min, else 'good';
    'unknown' when the FDP or the elapsed time cannot be read. Negative elapsed counts as 0.
    """
    res = compute_max_fdp(report_time, sectors, acclimatization)
    spent = _parse_elapsed(elapsed)
    if not res.success or spent is None:
        return RemainingFDP(remaining_minutes=None, remaining="--:--", percentage=0.0, status="unknown")

    max_fdp = res.value.max_fdp_minutes
    remaining = max_fdp - spent
    percentage = min(100.0, (spent / max_fdp) * 100)

    if remaining <= REMAINING_DANGER_MINUTES:
        status = "danger"
    elif remaining <= REMAINING_WARNING_MINUTES:
        status = "warning"
    else:
        status = "good"

    return RemainingFDP(
        remaining_minutes=max(0, remaining),
        remaining=format_duration(max(0, remaining)),
        percentage=percentage,
        status=status,
        max_fdp_minutes=max_fdp,
    )


def duty_countdown(start_time: datetime.datetime, max_fdp_minutes: int,
                   now: Optional[datetime.datetime] = None) -> DutyCountdown:
    """
    Live FDP countdown for a duty that started at `start_time`.
    Each call is an independent evaluation against `now`.
    """
    if now is None:
        now = datetime.datetime.now(start_time.tzinfo)
    elapsed = elapsed_minutes(start_time, now)
    max_minutes = max_fdp_minutes or MAX_FDP_ABSOLUTE
    percentage = min(elapsed / max_minutes * 100, 100.0)
    remaining = max(max_minutes - elapsed, 0)

    if percentage >= 100:
        status = CountdownStatus.EXCEEDED
    elif percentage >= COUNTDOWN_CRITICAL_PCT:
        status = CountdownStatus.CRITICAL
    elif percentage >= COUNTDOWN_CAUTION_PCT:
        status = CountdownStatus.CAUTION
    else:
        status = CountdownStatus.OK

    return DutyCountdown(
        elapsed_minutes=elapsed,
        elapsed=f"{elapsed // 60}:{elapsed % 60:02d}",
        max_fdp_minutes=max_minutes,
        remaining_minutes=remaining,
        remaining=format_duration(remaining),
        percentage=percentage,
        status=status,
    )
