# ftl_engine/store.py
"""
Record store: duty history, user preferences and the active duty session.

In-memory by default. Given a path, the whole state is rewritten to that JSON file on
every change and read back on construction. There is no durability guarantee beyond
that; a file that cannot be read is logged and the store starts empty.

Every fallible call returns Ok / Err; a missing record id is Err(NOT_FOUND) and a duty
session in the wrong state is Err(STATE_CONFLICT).
"""

import datetime
import json
import logging
import threading
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from .config import DEFAULT_MAX_RECORDS
from .fdp import Acclimatization, compute_max_fdp, parse_acclimatization
from .models import ActiveDutySession, DutyRecord, Preferences
from .results import Result, conflict, invalid, not_found, ok
from .timeutil import clock_time, hours_to_minutes, parse_date, parse_instant, time_to_minutes

log = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"

# keys written by the browser version of the tracker
_CAMEL_KEYS = {
    "reportTime": "report_time",
    "releaseTime": "release_time",
    "dutyMinutes": "duty_minutes",
    "flightMinutes": "flight_minutes",
    "flightTime": "flight_time",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "defaultSectors": "default_sectors",
    "defaultAcclimatization": "default_acclimatization",
    "showZuluTime": "show_zulu_time",
    "warningThreshold": "warning_threshold",
    "dangerThreshold": "danger_threshold",
}

_UPDATABLE_FIELDS = {"date", "report_time", "release_time", "flight_time", "flight_minutes", "sectors", "notes"}


class EndedDuty(BaseModel):
    model_config = ConfigDict(frozen=True)

    session: ActiveDutySession
    release_time: str
    record: Optional[DutyRecord] = None


def _snake_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {_CAMEL_KEYS.get(k, k): v for k, v in raw.items()}


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def generate_id() -> str:
    return f"duty_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _parse_sector_count(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    return n if n >= 1 else None


def _validation_message(e: ValidationError) -> str:
    first = e.errors()[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first.get('msg')}" if loc else first.get("msg", str(e))


class RecordStore:
    def __init__(self, path: Optional[Union[str, Path]] = None, max_records: int = DEFAULT_MAX_RECORDS):
        if max_records < 1:
            raise ValueError(f"max_records must be at least 1, got {max_records}")
        self.path = Path(path) if path else None
        self.max_records = max_records
        self._lock = threading.RLock()
        self._records: List[DutyRecord] = []
        self._preferences = Preferences()
        self._active: Optional[ActiveDutySession] = None
        self.last_sync: Optional[datetime.datetime] = None
        if self.path is not None:
            self._load()

    # ---------- persistence ----------
    def _load(self) -> None:
        if not self.path.exists():
            log.info("Store file %s does not exist yet; starting empty", self.path)
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            log.error("Could not read store file %s: %s", self.path, e)
            return
        if not isinstance(raw, dict):
            log.warning("Store file %s has an unexpected shape; starting empty", self.path)
            return

        records = raw.get("records")
        if isinstance(records, list):
            self._records = self._coerce_records(records)
        elif records is not None:
            log.warning("Invalid duty records format in %s, resetting", self.path)

        prefs = raw.get("preferences")
        if isinstance(prefs, dict):
            try:
                self._preferences = Preferences.model_validate(_snake_keys(prefs))
            except ValidationError as e:
                log.warning("Stored preferences are invalid, using defaults: %s", _validation_message(e))

        active = raw.get("active_duty")
        if active:
            try:
                self._active = ActiveDutySession.model_validate(active)
            except ValidationError as e:
                log.warning("Stored active duty is invalid, discarding: %s", _validation_message(e))

        self.last_sync = parse_instant(raw.get("last_sync"))
        log.info("Loaded %d duty records from %s", len(self._records), self.path)

    def _save(self) -> None:
        self.last_sync = _utcnow()
        if self.path is None:
            return
        payload = {
            "records": [r.model_dump(mode="json") for r in self._records],
            "preferences": self._preferences.model_dump(mode="json"),
            "active_duty": self._active.model_dump(mode="json") if self._active else None,
            "last_sync": self.last_sync.isoformat(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            log.exception("Error saving store file %s", self.path)

    def _coerce_records(self, raw_records: List[Any]) -> List[DutyRecord]:
        out: List[DutyRecord] = []
        for idx, raw in enumerate(raw_records):
            if not isinstance(raw, dict):
                log.warning("Skipping record #%d: not an object", idx)
                continue
            data = _snake_keys(raw)
            data.setdefault("id", generate_id())
            if "flight_minutes" not in data and "flight_time" in data:
                data["flight_minutes"] = hours_to_minutes(data.pop("flight_time"))
            try:
                out.append(DutyRecord.model_validate(data))
            except ValidationError as e:
                log.warning("Skipping record #%d: %s", idx, _validation_message(e))
        return out

    def _set_records(self, records: List[DutyRecord]) -> None:
        # newest date first; insertion order kept within a date
        records = sorted(records, key=lambda r: r.date, reverse=True)
        if len(records) > self.max_records:
            log.info("Trimming duty history to %d records", self.max_records)
        self._records = records[:self.max_records]
        self._save()

    # ---------- duty records ----------
    def list_duty_records(self) -> List[DutyRecord]:
        with self._lock:
            return list(self._records)

    def get_record(self, record_id: str) -> Result:
        with self._lock:
            for r in self._records:
                if r.id == record_id:
                    return ok(r)
        return not_found(f"Record not found: {record_id}")

    def add_duty_record(self, date: Any = None, report_time: Any = None, release_time: Any = None,
                        flight_time: Any = 0, sectors: Any = 1, notes: Optional[str] = "") -> Result:
        """
        Log a completed duty. flight_time is decimal hours; duty minutes are derived
        from report/release (overnight duties wrap).
        """
        if not date or not report_time or not release_time:
            return invalid("Missing required fields (date, report_time, release_time)")
        if parse_date(date) is None:
            return invalid("Invalid date. Please use YYYY-MM-DD.")
        if time_to_minutes(report_time) is None or time_to_minutes(release_time) is None:
            return invalid("Invalid report or release time format. Please use HH:MM.")
        n_sectors = _parse_sector_count(sectors if sectors is not None else 1)
        if n_sectors is None:
            return invalid("Invalid number of sectors. Please enter 1 or more.")
        flight_minutes = hours_to_minutes(flight_time)
        if flight_minutes < 0:
            return invalid("Flight time cannot be negative.")

        try:
            record = DutyRecord(
                id=generate_id(),
                date=date,
                report_time=report_time,
                release_time=release_time,
                flight_minutes=flight_minutes,
                sectors=n_sectors,
                notes=notes or "",
                created_at=_utcnow(),
            )
        except ValidationError as e:
            return invalid(_validation_message(e))

        if record.flight_minutes > record.duty_minutes:
            log.warning("Record %s logs %d flight minutes in a %d minute duty",
                        record.id, record.flight_minutes, record.duty_minutes)

        with self._lock:
            self._set_records([record] + self._records)
        log.info("Logged duty %s on %s (%d min)", record.id, record.date, record.duty_minutes)
        return ok(record)

    def update_duty_record(self, record_id: str, **updates: Any) -> Result:
        """
        Apply field updates to a record. Duty minutes are re-derived from the (possibly
        new) report/release times; flight_time is taken as decimal hours.
        """
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            return invalid(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        with self._lock:
            idx = next((i for i, r in enumerate(self._records) if r.id == record_id), None)
            if idx is None:
                return not_found(f"Record not found: {record_id}")

            data = self._records[idx].model_dump()
            changes = dict(updates)
            if "flight_time" in changes:
                changes["flight_minutes"] = hours_to_minutes(changes.pop("flight_time"))
            if "notes" in changes and changes["notes"] is None:
                changes["notes"] = ""
            data.update(changes)
            data["updated_at"] = _utcnow()

            try:
                updated = DutyRecord.model_validate(data)
            except ValidationError as e:
                return invalid(_validation_message(e))

            if updated.flight_minutes > updated.duty_minutes:
                log.warning("Record %s logs %d flight minutes in a %d minute duty",
                            updated.id, updated.flight_minutes, updated.duty_minutes)

            records = list(self._records)
            records[idx] = updated
            self._set_records(records)
        return ok(updated)

    def delete_duty_record(self, record_id: str) -> Result:
        with self._lock:
            remaining = [r for r in self._records if r.id != record_id]
            if len(remaining) == len(self._records):
                return not_found(f"Record not found: {record_id}")
            self._set_records(remaining)
        log.info("Deleted duty record %s", record_id)
        return ok(record_id)

    def clear_all_records(self) -> Result:
        with self._lock:
            count = len(self._records)
            self._set_records([])
        log.info("Cleared %d duty records", count)
        return ok(count)

    def records_by_range(self, days: int, today: Optional[datetime.date] = None) -> List[DutyRecord]:
        """Records dated within the last `days` days, today included."""
        today = today or datetime.date.today()
        cutoff = today - datetime.timedelta(days=days)
        with self._lock:
            return [r for r in self._records if cutoff <= r.date <= today]

    def stats(self, today: Optional[datetime.date] = None) -> Dict[str, Any]:
        with self._lock:
            records = list(self._records)
        last_7 = self.records_by_range(7, today)
        last_28 = self.records_by_range(28, today)
        return {
            "total_records": len(records),
            "duty_7_day": sum(r.duty_minutes for r in last_7),
            "duty_28_day": sum(r.duty_minutes for r in last_28),
            "flight_7_day": sum(r.flight_minutes for r in last_7),
            "flight_28_day": sum(r.flight_minutes for r in last_28),
            "last_entry": records[0].date if records else None,
        }

    # ---------- preferences ----------
    def get_preferences(self) -> Preferences:
        with self._lock:
            return self._preferences.model_copy()

    def save_preferences(self, **prefs: Any) -> Result:
        """Merge `prefs` over the stored preferences."""
        with self._lock:
            merged = self._preferences.model_dump()
            merged.update(_snake_keys(prefs))
            try:
                new_prefs = Preferences.model_validate(merged)
            except ValidationError as e:
                return invalid(_validation_message(e))
            self._preferences = new_prefs
            self._save()
        return ok(new_prefs)

    # ---------- export / import ----------
    def export_data(self) -> str:
        with self._lock:
            data = {
                "records": [r.model_dump(mode="json") for r in self._records],
                "preferences": self._preferences.model_dump(mode="json"),
                "exported_at": _utcnow().isoformat(),
                "version": EXPORT_VERSION,
            }
        return json.dumps(data, indent=2)

    def import_data(self, text: str) -> Result:
        """
        Replace the duty history with the records of an export and merge its
        preferences. Records that do not validate are skipped.
        """
        try:
            data = json.loads(text)
        except (TypeError, json.JSONDecodeError) as e:
            return invalid(f"Invalid JSON format: {e}")
        if not isinstance(data, dict):
            return invalid("Invalid JSON format: expected an object")

        raw_records = data.get("records")
        imported = 0
        skipped = 0
        with self._lock:
            if isinstance(raw_records, list):
                records = self._coerce_records(raw_records)
                imported = len(records)
                skipped = len(raw_records) - imported
                self._set_records(records)

            prefs = data.get("preferences")
            if isinstance(prefs, dict):
                res = self.save_preferences(**prefs)
                if not res.success:
                    log.warning("Ignoring imported preferences: %s", res.error)

        log.info("Imported %d duty records (%d skipped)", imported, skipped)
        return ok({"records_imported": imported, "records_skipped": skipped})

    # ---------- active duty ----------
    def get_active_session(self) -> Optional[ActiveDutySession]:
        with self._lock:
            return self._active

    def start_duty(self, report_time: Optional[str] = None, sectors: Any = 2, acclimatized: Any = True,
                   start_time: Any = None) -> Result:
        """
        Begin a duty session. start_time defaults to now, report_time to its clock time.
        acclimatized takes a bool or 'acclimatized' / 'unacclimatized'.
        """
        if start_time is None:
            start = datetime.datetime.now()
        else:
            start = parse_instant(start_time)
            if start is None:
                return invalid("Invalid start time. Please use an ISO timestamp.")
        report = report_time or clock_time(start)
        status = parse_acclimatization(acclimatized)
        if status is None:
            return invalid("Invalid acclimatization status. Use 'acclimatized' or 'unacclimatized'.")

        with self._lock:
            if self._active is not None:
                return conflict("Already on duty. End current duty first.")

            fdp = compute_max_fdp(report, sectors, status)
            if not fdp.success:
                return fdp

            self._active = ActiveDutySession(
                start_time=start,
                report_time=report,
                sectors=int(sectors),
                acclimatized=status is Acclimatization.ACCLIMATIZED,
                max_fdp_minutes=fdp.value.max_fdp_minutes,
                date=start.date(),
            )
            self._save()
            session = self._active
        log.info("Duty started at %s (%d sectors, max FDP %d min)",
                 session.report_time, session.sectors, session.max_fdp_minutes)
        return ok(session)

    def change_sectors(self, sectors: Any) -> Result:
        with self._lock:
            if self._active is None:
                return conflict("Not currently on duty")
            fdp = compute_max_fdp(self._active.report_time, sectors, self._active.acclimatized)
            if not fdp.success:
                return fdp
            self._active = self._active.model_copy(update={
                "sectors": int(sectors),
                "max_fdp_minutes": fdp.value.max_fdp_minutes,
            })
            self._save()
            return ok(self._active)

    def end_duty(self, release_time: Optional[str] = None, flight_time: Any = 0, log_duty: bool = True,
                 end_time: Any = None) -> Result:
        """
        Finish the duty session. With log_duty the session becomes a DutyRecord using
        release_time (default: clock time of end_time, itself defaulting to now).
        """
        with self._lock:
            session = self._active
            if session is None:
                return conflict("Not currently on duty")

            if release_time is None:
                if end_time is None:
                    end = datetime.datetime.now(session.start_time.tzinfo)
                else:
                    end = parse_instant(end_time)
                    if end is None:
                        return invalid("Invalid end time. Please use an ISO timestamp.")
                release_time = clock_time(end)
            elif time_to_minutes(release_time) is None:
                return invalid("Invalid release time format. Please use HH:MM.")

            record = None
            if log_duty:
                res = self.add_duty_record(
                    date=session.date,
                    report_time=session.report_time,
                    release_time=release_time,
                    flight_time=flight_time,
                    sectors=session.sectors,
                )
                if not res.success:
                    return res
                record = res.value

            self._active = None
            self._save()
        log.info("Duty ended at %s%s", release_time, "" if record else " (not logged)")
        return ok(EndedDuty(session=session, release_time=release_time, record=record))

    def cancel_duty(self) -> Result:
        with self._lock:
            session = self._active
            if session is None:
                return conflict("Not currently on duty")
            self._active = None
            self._save()
        log.info("Duty started at %s cancelled", session.report_time)
        return ok(session)
