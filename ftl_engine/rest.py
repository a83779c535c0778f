# ftl_engine/rest.py
"""
Rest-period engine: minimum and recommended rest after a duty, compliance of a
proposed rest period, and the consecutive duty day limit.

Minimum rest is built up from itemized components:
 - base requirement from the preceding duty length (10h / 12h / 14h tiers)
 - time-zone crossing adjustment (+0 / +1h / +2h)
 - sleep-opportunity floor (8h sleep + 2h transition); totals below are raised to it
"""

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from .load_rules import RULEBOOK
from .results import Result, invalid, ok
from .timeutil import (
    MINUTES_PER_DAY,
    day_offset,
    format_duration,
    time_to_minutes,
    time_with_day_marker,
)


REST_RULES = RULEBOOK.rest

SLEEP_OPPORTUNITY_FLOOR = REST_RULES.min_sleep_opportunity_minutes + REST_RULES.transition_allowance_minutes

# anchor used when only the rest duration matters
_ANCHOR_TIME = "00:00"


class RestComponent(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str
    amount: int
    type: str  # 'base' | 'adjustment'


class RestResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_rest_minutes: int
    min_rest: str
    recommended_rest_minutes: int
    recommended_rest: str
    duty_end_minutes: int
    next_report_minutes: int      # time of day, [0, 1440)
    next_report: str              # HH:MM (+N)
    recommended_next_report: str
    crosses_midnight: bool
    days_later: int
    timezone_band: str
    acclimatization_required_hours: int
    components: List[RestComponent]


class RestCompliance(BaseModel):
    model_config = ConfigDict(frozen=True)

    compliant: bool
    required_minutes: int
    proposed_minutes: int
    deficit_minutes: Optional[int] = None
    surplus_minutes: Optional[int] = None
    message: str


class ConsecutiveDutyLimit(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_days: int
    current_days: int
    days_remaining: int
    required_time_off_minutes: int
    required_time_off: str
    needs_time_off: bool


def _timezone_band(zones: int):
    for band in REST_RULES.timezone_bands:
        if band.max_zones is None or zones <= band.max_zones:
            return band
    return REST_RULES.timezone_bands[-1]


def _parse_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(v) or math.isinf(v):
        return None
    return v


def _parse_zones(value: Any) -> Optional[int]:
    if value is None:
        return 0
    v = _parse_number(value)
    if v is None or not v.is_integer():
        return None
    return int(v)


def compute_min_rest(duty_end_time: Any, preceding_duty_hours: Any, timezones_crossed: Any = 0) -> Result:
    """
    Calculate minimum rest following a duty.

    duty_end_time: 'HH:MM' release time
    preceding_duty_hours: duty length in hours, 0-24
    timezones_crossed: whole number of zones crossed, 0-24

    Returns Ok(RestResult) or Err(INPUT_VALIDATION).
    """
    duty_end_minutes = time_to_minutes(duty_end_time)
    if duty_end_minutes is None:
        return invalid("Invalid duty end time format. Please use HH:MM.")

    hours = _parse_number(preceding_duty_hours)
    if hours is None or hours < 0 or hours > REST_RULES.max_preceding_duty_hours:
        return invalid("Invalid duty period length. Please enter 0-24 hours.")
    duty_minutes = hours * 60

    zones = _parse_zones(timezones_crossed)
    if zones is None or zones < 0 or zones > REST_RULES.max_timezones_crossed:
        return invalid(f"Invalid number of time zones crossed. Please enter 0-{REST_RULES.max_timezones_crossed}.")

    components: List[RestComponent] = []

    # base requirement from preceding duty length
    if duty_minutes >= REST_RULES.very_long_duty_threshold_minutes:
        min_rest = REST_RULES.very_long_duty_min_minutes
        components.append(RestComponent(reason="Very long duty (14h+)", amount=min_rest, type="base"))
    elif duty_minutes >= REST_RULES.extended_duty_threshold_minutes:
        min_rest = REST_RULES.extended_duty_min_minutes
        components.append(RestComponent(reason="Extended duty (12h+)", amount=min_rest, type="base"))
    else:
        min_rest = REST_RULES.standard_min_minutes
        components.append(RestComponent(reason="Standard rest requirement", amount=min_rest, type="base"))

    band = _timezone_band(zones)
    if band.adjustment_minutes > 0:
        min_rest += band.adjustment_minutes
        components.append(RestComponent(
            reason=f"Time zone crossing ({band.id})",
            amount=band.adjustment_minutes,
            type="adjustment",
        ))

    # raise to the sleep-opportunity floor, never add on top of it
    if min_rest < SLEEP_OPPORTUNITY_FLOOR:
        components.append(RestComponent(
            reason="Minimum sleep opportunity adjustment",
            amount=SLEEP_OPPORTUNITY_FLOOR - min_rest,
            type="adjustment",
        ))
        min_rest = SLEEP_OPPORTUNITY_FLOOR

    recommended = math.ceil(min_rest * REST_RULES.recommended_multiplier)

    next_report = duty_end_minutes + min_rest
    recommended_next = duty_end_minutes + recommended
    days_later = day_offset(next_report)

    return ok(RestResult(
        min_rest_minutes=min_rest,
        min_rest=format_duration(min_rest),
        recommended_rest_minutes=recommended,
        recommended_rest=format_duration(recommended),
        duty_end_minutes=duty_end_minutes,
        next_report_minutes=next_report % MINUTES_PER_DAY,
        next_report=time_with_day_marker(next_report),
        recommended_next_report=time_with_day_marker(recommended_next),
        crosses_midnight=days_later > 0,
        days_later=days_later,
        timezone_band=band.id,
        acclimatization_required_hours=band.acclimatization_hours,
        components=components,
    ))


def check_rest_compliance(proposed_rest_minutes: int, preceding_duty_minutes: int, timezones_crossed: Any = 0) -> Result:
    """
    Is a proposed rest period long enough after a duty of `preceding_duty_minutes`?
    Returns Ok(RestCompliance) or the Err from compute_min_rest.
    """
    proposed = _parse_number(proposed_rest_minutes)
    if proposed is None or proposed < 0:
        return invalid("Invalid proposed rest period. Please enter a non-negative number of minutes.")
    duty = _parse_number(preceding_duty_minutes)
    if duty is None:
        return invalid("Invalid duty period length. Please enter 0-24 hours.")

    required = compute_min_rest(_ANCHOR_TIME, duty / 60, timezones_crossed)
    if not required.success:
        return required

    proposed = int(proposed)
    required_minutes = required.value.min_rest_minutes
    deficit = required_minutes - proposed

    if deficit > 0:
        return ok(RestCompliance(
            compliant=False,
            required_minutes=required_minutes,
            proposed_minutes=proposed,
            deficit_minutes=deficit,
            message=f"Rest period is {format_duration(deficit)} short of minimum requirement",
        ))

    return ok(RestCompliance(
        compliant=True,
        required_minutes=required_minutes,
        proposed_minutes=proposed,
        surplus_minutes=abs(deficit),
        message="Rest period meets minimum requirements",
    ))


def consecutive_duty_limit(current_consecutive_days: Any) -> ConsecutiveDutyLimit:
    """Days left before mandatory time off. Unreadable or negative counts are taken as 0."""
    days = _parse_number(current_consecutive_days)
    current = max(0, int(days)) if days is not None else 0
    max_days = REST_RULES.max_consecutive_duty_days
    remaining = max_days - current
    return ConsecutiveDutyLimit(
        max_days=max_days,
        current_days=current,
        days_remaining=max(0, remaining),
        required_time_off_minutes=REST_RULES.required_time_off_minutes,
        required_time_off=format_duration(REST_RULES.required_time_off_minutes),
        needs_time_off=remaining <= 0,
    )


def get_constants() -> Dict[str, Any]:
    """Rest requirement constants for reference."""
    data = REST_RULES.model_dump()
    data.pop("type", None)
    data["sleep_opportunity_floor_minutes"] = SLEEP_OPPORTUNITY_FLOOR
    return data
