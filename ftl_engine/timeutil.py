# ftl_engine/timeutil.py
"""
Minute-of-day arithmetic shared by the FDP, rest and compliance engines.

All engine arithmetic is done in integer minutes; the helpers here convert between
minutes and the `HH:MM` / "Xh YYm" strings shown to crews.

Notes:
 - Times of day are flat local minutes in [0, 1440). No timezone math happens here.
 - Parsing helpers return None on bad input instead of raising; callers turn that into
   an error result.
"""

import datetime
import math
import re
from typing import Any, Optional

from dateutil import parser as _du_parser

MINUTES_PER_DAY = 1440

# Strict HH:MM, 24-hour clock
_TIME_HHMM = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*$')

# Full calendar date, optionally followed by a time part
_DATE_YMD = re.compile(r'^\d{4}-\d{2}-\d{2}(?:[T ]|$)')


def time_to_minutes(value: Any) -> Optional[int]:
    """
    Convert 'HH:MM' to minutes since midnight.
    Returns None when the text is not HH:MM or hour/minute are out of range.
    """
    if not isinstance(value, str):
        return None
    m = _TIME_HHMM.match(value)
    if not m:
        return None
    h = int(m.group(1)); mm = int(m.group(2))
    if h > 23 or mm > 59:
        return None
    return h * 60 + mm


def minutes_to_time(minutes: Optional[int]) -> str:
    """
    Convert minutes to 'HH:MM' on a 24h clock. Negative or >= 1440 values wrap.
    Use day_offset() for the '+N' indicator.
    """
    if minutes is None:
        return "--:--"
    m = int(minutes) % MINUTES_PER_DAY
    return f"{m // 60:02d}:{m % 60:02d}"


def day_offset(minutes: int) -> int:
    return int(minutes) // MINUTES_PER_DAY


def time_with_day_marker(minutes: int) -> str:
    """'HH:MM' plus ' (+N)' when the value rolls past midnight."""
    days = day_offset(minutes)
    text = minutes_to_time(minutes)
    if days > 0:
        text += f" (+{days})"
    return text


def format_duration(minutes: Optional[int]) -> str:
    """
    Render a duration as 'Xh', 'Ym' or 'Xh YYm'.
    Negative durations get a leading '-'.
    """
    if minutes is None:
        return "--"
    m = int(minutes)
    sign = "-" if m < 0 else ""
    m = abs(m)
    hh, mm = divmod(m, 60)
    if hh == 0:
        return f"{sign}{mm}m"
    if mm == 0:
        return f"{sign}{hh}h"
    return f"{sign}{hh}h {mm:02d}m"


def minutes_to_hhmm(minutes: Optional[int]) -> Optional[str]:
    """
    Convert integer minutes to 'H:MM' (hours unpadded, can exceed 24).
    - Negative values get a '-' prefix
    - Returns None if input is None
    """
    if minutes is None:
        return None
    m = int(minutes)
    sign = "-" if m < 0 else ""
    m = abs(m)
    return f"{sign}{m // 60}:{m % 60:02d}"


def duty_length(report_minutes: int, release_minutes: int) -> int:
    """Duty minutes from report to release; a release before report means next day."""
    duty = release_minutes - report_minutes
    if duty < 0:
        duty += MINUTES_PER_DAY
    return duty


def hours_to_minutes(value: Any) -> int:
    """
    Decimal hours (8.5, '8.5') -> whole minutes. Anything unparseable counts as 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        hours = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(hours) or math.isinf(hours):
        return 0
    return int(round(hours * 60))


def parse_date(value: Any) -> Optional[datetime.date]:
    """
    Calendar date from a date, datetime or ISO string ('2025-11-25', '2025-11-25T06:00').
    Returns None when it cannot be read or has no day part ('2025-06').
    """
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    s = str(value).strip()
    if not s:
        return None
    if not _DATE_YMD.match(s):
        return None
    try:
        return _du_parser.isoparse(s).date()
    except (ValueError, OverflowError):
        return None


def parse_instant(value: Any) -> Optional[datetime.datetime]:
    """
    Absolute timestamp from a datetime or ISO string. Naive inputs stay naive; they are
    compared against naive 'now' values by the caller.
    """
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return _du_parser.isoparse(s)
    except (ValueError, OverflowError):
        return None


def elapsed_minutes(start: datetime.datetime, now: datetime.datetime) -> int:
    """Whole minutes between two instants, never negative."""
    if (start.tzinfo is None) != (now.tzinfo is None):
        # mixed naive/aware: treat the naive side as UTC
        if start.tzinfo is None:
            start = start.replace(tzinfo=datetime.timezone.utc)
        else:
            now = now.replace(tzinfo=datetime.timezone.utc)
    delta = now - start
    return max(0, int(delta.total_seconds() // 60))


def clock_time(instant: datetime.datetime) -> str:
    """'HH:MM' wall-clock text of an instant."""
    return f"{instant.hour:02d}:{instant.minute:02d}"
