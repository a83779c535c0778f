# ftl_engine/models.py
"""
Duty records, the active duty session and user preferences.

These are the values the record store hands to the engines. DutyRecord always derives
duty_minutes from its report/release times; a supplied duty_minutes is ignored.
"""

import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .timeutil import duty_length, parse_date, time_to_minutes


class DutyRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    date: datetime.date
    report_time: str
    release_time: str
    duty_minutes: int = 0
    flight_minutes: int = Field(default=0, ge=0)
    sectors: int = Field(default=1, ge=1)
    notes: str = ""
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_duty_minutes(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        report = time_to_minutes(data.get("report_time"))
        release = time_to_minutes(data.get("release_time"))
        if report is None or release is None:
            raise ValueError("report_time and release_time must be HH:MM")
        data = dict(data)
        data["duty_minutes"] = duty_length(report, release)
        d = parse_date(data.get("date"))
        if d is None:
            raise ValueError("date must be an ISO date (YYYY-MM-DD)")
        data["date"] = d
        return data


class ActiveDutySession(BaseModel):
    """
    The duty in progress. Replaced wholesale on every change; never patched in place.
    """
    model_config = ConfigDict(frozen=True)

    start_time: datetime.datetime
    report_time: str
    sectors: int
    acclimatized: bool = True
    max_fdp_minutes: int
    date: datetime.date

    @property
    def acclimatization(self) -> str:
        return "acclimatized" if self.acclimatized else "unacclimatized"


class Preferences(BaseModel):
    model_config = ConfigDict(extra="ignore")

    default_sectors: int = Field(default=2, ge=1, le=10)
    default_acclimatization: Literal["acclimatized", "unacclimatized"] = "acclimatized"
    show_zulu_time: bool = True
    warning_threshold: int = Field(default=85, ge=0, le=100)
    danger_threshold: int = Field(default=95, ge=0, le=100)
    theme: str = "dark"
