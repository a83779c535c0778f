# ftl_engine/api.py
"""
HTTP endpoints for the FDP, rest and compliance engines and the record store.

Engine results come back as Ok / Err; Err is turned into an HTTPException here:
 - INPUT_VALIDATION -> 422
 - STATE_CONFLICT   -> 409
 - NOT_FOUND        -> 404
The store lives on app.state.store (set up by the lifespan in main.py).
"""

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from . import compliance, fdp, rest
from .models import DutyRecord, Preferences
from .results import Err, ErrorKind, Result
from .store import RecordStore

log = logging.getLogger("uvicorn.error")
router = APIRouter()

_STATUS_CODES = {
    ErrorKind.INPUT_VALIDATION: 422,
    ErrorKind.STATE_CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
}


# ---------- Request Models ----------
class FdpRequest(BaseModel):
    report_time: Any
    sectors: Any
    acclimatization: Any = "acclimatized"


class FdpRemainingRequest(FdpRequest):
    elapsed_minutes: int


class RestRequest(BaseModel):
    duty_end_time: Any
    preceding_duty_hours: Any
    timezones_crossed: Any = 0


class RestComplianceRequest(BaseModel):
    proposed_rest_minutes: Any
    preceding_duty_minutes: Any
    timezones_crossed: Any = 0


class RecordCreate(BaseModel):
    date: Any
    report_time: Any
    release_time: Any
    flight_time: Any = 0
    sectors: Any = 1
    notes: Optional[str] = ""


class RecordUpdate(BaseModel):
    date: Optional[Any] = None
    report_time: Optional[Any] = None
    release_time: Optional[Any] = None
    flight_time: Optional[Any] = None
    sectors: Optional[Any] = None
    notes: Optional[str] = None


class DutyStartRequest(BaseModel):
    report_time: Optional[str] = None
    sectors: Any = 2
    acclimatized: Any = True
    start_time: Optional[str] = None


class SectorsRequest(BaseModel):
    sectors: Any


class DutyEndRequest(BaseModel):
    release_time: Optional[str] = None
    flight_time: Any = 0
    log_duty: bool = True
    end_time: Optional[str] = None


# ---------- helpers ----------
def _store(request: Request) -> RecordStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        log.error("Record store is not initialised on app.state")
        raise HTTPException(status_code=500, detail="Server internal error: record store unavailable")
    return store


def _unwrap(result: Result) -> Any:
    if isinstance(result, Err):
        raise HTTPException(status_code=_STATUS_CODES.get(result.kind, 400), detail=result.error)
    return result.value


# ---------- FDP ----------
@router.post("/fdp", response_model=fdp.FDPResult)
def calculate_fdp(payload: FdpRequest):
    return _unwrap(fdp.compute_max_fdp(payload.report_time, payload.sectors, payload.acclimatization))


@router.post("/fdp/remaining", response_model=fdp.RemainingFDP)
def remaining_fdp(payload: FdpRemainingRequest):
    return fdp.compute_remaining_fdp(payload.report_time, payload.elapsed_minutes,
                                     payload.sectors, payload.acclimatization)


@router.get("/fdp/table")
def fdp_table():
    return {"time_ranges": fdp.get_time_ranges(), "table": fdp.get_table()}


# ---------- Rest ----------
@router.post("/rest", response_model=rest.RestResult)
def calculate_rest(payload: RestRequest):
    return _unwrap(rest.compute_min_rest(payload.duty_end_time, payload.preceding_duty_hours,
                                         payload.timezones_crossed))


@router.post("/rest/compliance", response_model=rest.RestCompliance)
def rest_compliance(payload: RestComplianceRequest):
    return _unwrap(rest.check_rest_compliance(payload.proposed_rest_minutes, payload.preceding_duty_minutes,
                                              payload.timezones_crossed))


@router.get("/rest/consecutive/{days}", response_model=rest.ConsecutiveDutyLimit)
def consecutive_days(days: int):
    if days < 0:
        raise HTTPException(status_code=422, detail="Consecutive duty days cannot be negative")
    return rest.consecutive_duty_limit(days)


# ---------- Duty records ----------
@router.get("/records", response_model=List[DutyRecord])
def list_records(request: Request, days: Optional[int] = None):
    store = _store(request)
    if days is not None:
        return store.records_by_range(days)
    return store.list_duty_records()


@router.post("/records", response_model=DutyRecord, status_code=201)
def add_record(payload: RecordCreate, request: Request):
    return _unwrap(_store(request).add_duty_record(**payload.model_dump()))


@router.get("/records/stats")
def record_stats(request: Request):
    return _store(request).stats()


@router.patch("/records/{record_id}", response_model=DutyRecord)
def update_record(record_id: str, payload: RecordUpdate, request: Request):
    updates = payload.model_dump(exclude_unset=True)
    return _unwrap(_store(request).update_duty_record(record_id, **updates))


@router.delete("/records/{record_id}")
def delete_record(record_id: str, request: Request):
    return {"deleted": _unwrap(_store(request).delete_duty_record(record_id))}


@router.delete("/records")
def clear_records(request: Request):
    return {"cleared": _unwrap(_store(request).clear_all_records())}


# ---------- Preferences ----------
@router.get("/preferences", response_model=Preferences)
def get_preferences(request: Request):
    return _store(request).get_preferences()


@router.put("/preferences", response_model=Preferences)
def save_preferences(payload: Dict[str, Any], request: Request):
    return _unwrap(_store(request).save_preferences(**payload))


# ---------- Export / import ----------
@router.get("/export")
def export_data(request: Request):
    return json.loads(_store(request).export_data())


@router.post("/import")
def import_data(payload: Dict[str, Any], request: Request):
    return _unwrap(_store(request).import_data(json.dumps(payload)))


# ---------- Active duty ----------
@router.get("/duty")
def get_active_duty(request: Request):
    session = _store(request).get_active_session()
    return {"on_duty": session is not None, "session": session}


@router.post("/duty/start")
def start_duty(payload: DutyStartRequest, request: Request):
    return _unwrap(_store(request).start_duty(**payload.model_dump()))


@router.post("/duty/sectors")
def change_sectors(payload: SectorsRequest, request: Request):
    return _unwrap(_store(request).change_sectors(payload.sectors))


@router.post("/duty/end")
def end_duty(payload: DutyEndRequest, request: Request):
    return _unwrap(_store(request).end_duty(**payload.model_dump()))


@router.post("/duty/cancel")
def cancel_duty(request: Request):
    return {"cancelled": _unwrap(_store(request).cancel_duty())}


@router.get("/duty/countdown", response_model=fdp.DutyCountdown)
def duty_countdown(request: Request):
    session = _store(request).get_active_session()
    if session is None:
        raise HTTPException(status_code=409, detail="Not currently on duty")
    return fdp.duty_countdown(session.start_time, session.max_fdp_minutes)


# ---------- Compliance ----------
@router.get("/compliance", response_model=compliance.ComplianceReport)
def get_compliance(request: Request, flight_minutes: Optional[int] = None, augmented: bool = False):
    """
    Rolling-window compliance over the stored history. While on duty the report also
    carries the Current FDP check (and Current Flight Time when flight_minutes is given).
    """
    store = _store(request)
    session = store.get_active_session()
    snapshot = None
    if session is not None:
        snapshot = compliance.snapshot_from_session(session, elapsed_flight_minutes=flight_minutes,
                                                    augmented=augmented)
    elif flight_minutes is not None:
        snapshot = compliance.ActiveDutySnapshot(elapsed_flight_minutes=flight_minutes, augmented=augmented)
    return compliance.evaluate_compliance(store.list_duty_records(), snapshot)


@router.get("/availability", response_model=compliance.Availability)
def get_availability(request: Request):
    return compliance.calculate_availability(_store(request).list_duty_records())


@router.get("/limits")
def get_limits():
    return {"cumulative": compliance.get_limits(), "rest": rest.get_constants()}
