# ftl_engine/load_rules.py
"""
Rule loader for the regulatory JSON files in ftl_engine/rules.

Provides:
 - VALID_RULES: validated rule objects (RuleSpec) keyed by id
 - INVALID_REPORTS: read/parse/validation errors, one dict per problem
 - RULEBOOK: typed, frozen FDP / rest / cumulative-limit data used by the engines

The rule files are read once at import. Engines treat RULEBOOK as static data.
"""
from pathlib import Path
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from .config import get_config
from .timeutil import time_to_minutes

log = logging.getLogger("rule_loader")


# ---------------------------------------------------------
# RuleSpec Model
# ---------------------------------------------------------
class RuleSpec(BaseModel):
    id: str
    title: str
    logic: Dict[str, Any]
    reference: Optional[Any] = None
    enabled: bool = True
    version: Optional[str] = None
    notes: Optional[Dict[str, Any]] = None

    @field_validator("id")
    @classmethod
    def _id_not_empty(cls, v):
        if not v or v.strip() == "":
            raise ValueError("id must be non-empty string")
        return v

    @field_validator("logic")
    @classmethod
    def _logic_has_type(cls, v):
        if not v.get("type"):
            raise ValueError("logic.type is required")
        return v


# ---------------------------------------------------------
# Typed logic blocks
# ---------------------------------------------------------
class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class TimeRange(_Frozen):
    id: str
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _hhmm(cls, v):
        if time_to_minutes(v) is None:
            raise ValueError(f"not an HH:MM time: {v!r}")
        return v

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end)

    def contains(self, minute_of_day: int) -> bool:
        """Half-open [start, end); a range with end <= start wraps past midnight."""
        s, e = self.start_minutes, self.end_minutes
        if s < e:
            return s <= minute_of_day < e
        return minute_of_day >= s or minute_of_day < e


class SectorRange(_Frozen):
    id: str
    min_sectors: int
    max_sectors: Optional[int] = None

    def contains(self, sectors: int) -> bool:
        if sectors < self.min_sectors:
            return False
        return self.max_sectors is None or sectors <= self.max_sectors


class WoclWindow(_Frozen):
    start: str
    end: str

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end)


class FdpTableLogic(_Frozen):
    type: str
    time_ranges: Tuple[TimeRange, ...]
    sector_ranges: Tuple[SectorRange, ...]
    table: Dict[str, Dict[str, int]]
    unacclimatized_reduction_minutes: int
    min_fdp_minutes: int
    max_fdp_minutes: int
    min_sectors: int = 1
    max_sectors: int = 10
    wocl: WoclWindow

    @model_validator(mode="after")
    def _table_is_complete(self):
        for tr in self.time_ranges:
            row = self.table.get(tr.id)
            if row is None:
                raise ValueError(f"fdp table has no row for time range {tr.id}")
            for sr in self.sector_ranges:
                if sr.id not in row:
                    raise ValueError(f"fdp table row {tr.id} has no value for sectors {sr.id}")
        # every minute of the day must land in exactly one bucket
        for minute in range(0, 1440, 30):
            hits = [tr.id for tr in self.time_ranges if tr.contains(minute)]
            if len(hits) != 1:
                raise ValueError(f"time ranges do not tile the day at minute {minute}: {hits}")
        if self.min_fdp_minutes > self.max_fdp_minutes:
            raise ValueError("min_fdp_minutes is larger than max_fdp_minutes")
        return self


class TimezoneBand(_Frozen):
    id: str
    max_zones: Optional[int] = None
    adjustment_minutes: int
    acclimatization_hours: int


class RestLogic(_Frozen):
    type: str
    standard_min_minutes: int
    extended_duty_threshold_minutes: int
    extended_duty_min_minutes: int
    very_long_duty_threshold_minutes: int
    very_long_duty_min_minutes: int
    min_sleep_opportunity_minutes: int
    transition_allowance_minutes: int
    recommended_multiplier: float
    max_preceding_duty_hours: float = 24
    max_timezones_crossed: int = 24
    timezone_bands: Tuple[TimezoneBand, ...]
    max_consecutive_duty_days: int
    required_time_off_minutes: int

    @model_validator(mode="after")
    def _bands_end_open(self):
        if not self.timezone_bands or self.timezone_bands[-1].max_zones is not None:
            raise ValueError("last timezone band must be open-ended (max_zones null)")
        if self.extended_duty_threshold_minutes > self.very_long_duty_threshold_minutes:
            raise ValueError("rest thresholds are not increasing")
        return self


class CumulativeWindow(_Frozen):
    key: str
    name: str
    metric: str
    window_days: int
    max_minutes: int

    @field_validator("metric")
    @classmethod
    def _known_metric(cls, v):
        if v not in ("duty_minutes", "flight_minutes"):
            raise ValueError(f"unknown metric {v!r}")
        return v


class CumulativeLogic(_Frozen):
    type: str
    windows: Tuple[CumulativeWindow, ...]
    fdp_single_day_max_minutes: int
    fdp_single_day_min_minutes: int
    flight_time_single_duty_minutes: int
    flight_time_augmented_minutes: int
    duty_365_day_minutes: int
    rest_weekly_minutes: int
    rest_monthly_minutes: int
    warning_threshold: float
    danger_threshold: float

    @model_validator(mode="after")
    def _thresholds_ordered(self):
        if not 0 < self.warning_threshold < self.danger_threshold < 1:
            raise ValueError("expected 0 < warning_threshold < danger_threshold < 1")
        return self

    def window(self, key: str) -> CumulativeWindow:
        for w in self.windows:
            if w.key == key:
                return w
        raise KeyError(key)


class RuleBook(_Frozen):
    fdp: FdpTableLogic
    rest: RestLogic
    cumulative: CumulativeLogic


LOGIC_MODELS = {
    "fdp_table": FdpTableLogic,
    "rest": RestLogic,
    "cumulative_windows": CumulativeLogic,
}


# ---------------------------------------------------------
# Helper: Extract rule objects from mixed JSON formats
# ---------------------------------------------------------
def _iter_rule_objects_from_raw(raw: Any) -> List[Dict[str, Any]]:
    if raw is None:
        return []

    # List of rules
    if isinstance(raw, list):
        return raw

    if isinstance(raw, dict):
        # wrapper { "rules": [ ... ] }
        if "rules" in raw and isinstance(raw["rules"], list):
            return raw["rules"]
        # Single rule
        return [raw]

    return []


# ---------------------------------------------------------
# Main Loader
# ---------------------------------------------------------
def load_rules_from_folder(folder: Path) -> Tuple[Dict[str, RuleSpec], List[Dict[str, Any]]]:
    """
    Loads all rule JSON files from folder.
    Returns:
        (valid rules keyed by id, invalid reports)
    A rule whose logic type is known is also checked against its typed model.
    """
    valid: Dict[str, RuleSpec] = {}
    invalid: List[Dict[str, Any]] = []

    folder = Path(folder)

    if not folder.exists() or not folder.is_dir():
        log.warning(f"Rules folder does not exist: {folder}")
        return valid, invalid

    # Load *.json files deterministically
    for f in sorted(folder.glob("*.json")):
        fname = f.name
        try:
            text = f.read_text(encoding="utf-8")
        except OSError as e:
            invalid.append({"file": fname, "error": f"read_error: {e}"})
            log.error(f"Failed to read {fname}: {e}")
            continue

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            invalid.append({"file": fname, "error": f"json_parse_error: {e}"})
            log.error(f"JSON parse error in {fname}: {e}")
            continue

        for idx, raw_rule in enumerate(_iter_rule_objects_from_raw(parsed)):
            try:
                r = RuleSpec.model_validate(raw_rule)
                model = LOGIC_MODELS.get(r.logic["type"])
                if model is not None:
                    model.model_validate(r.logic)
            except ValidationError as e:
                invalid.append({"file": fname, "index": idx, "error": f"validation_error: {e}"})
                log.error(f"Invalid rule #{idx} in {fname}")
                continue

            if not r.enabled:
                log.info(f"Skipping disabled rule {r.id} from {fname}")
                continue
            if r.id in valid:
                invalid.append({"file": fname, "index": idx, "error": f"duplicate rule id: {r.id}"})
                log.error(f"Duplicate rule id {r.id} in {fname}")
                continue
            valid[r.id] = r
            log.info(f"Loaded rule {r.id} from {fname}")

    log.info(f"Rule loader summary: {len(valid)} valid rules, {len(invalid)} invalid")
    return valid, invalid


def build_rulebook(rules: Dict[str, RuleSpec]) -> RuleBook:
    """
    Assemble the typed rule data the engines need. Raises RuntimeError when a rule
    type is missing, since the engines cannot run without it.
    """
    found: Dict[str, Any] = {}
    for rule in rules.values():
        ltype = rule.logic.get("type")
        model = LOGIC_MODELS.get(ltype)
        if model is None:
            continue
        if ltype in found:
            log.warning("More than one %s rule loaded; keeping the first", ltype)
            continue
        found[ltype] = model.model_validate(rule.logic)

    missing = [t for t in LOGIC_MODELS if t not in found]
    if missing:
        raise RuntimeError(f"Rules folder is missing required rule types: {', '.join(missing)}")

    return RuleBook(
        fdp=found["fdp_table"],
        rest=found["rest"],
        cumulative=found["cumulative_windows"],
    )


# ---------------------------------------------------------
# Eager load on import
# ---------------------------------------------------------
RULES_DIR = get_config().rules_dir

VALID_RULES, INVALID_REPORTS = load_rules_from_folder(RULES_DIR)
RULEBOOK = build_rulebook(VALID_RULES)

__all__ = [
    "load_rules_from_folder",
    "build_rulebook",
    "VALID_RULES",
    "INVALID_REPORTS",
    "RULEBOOK",
    "RuleSpec",
    "RuleBook",
]
