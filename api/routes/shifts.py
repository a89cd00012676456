"""
api/routes/shifts.py -- Shift scheduling and carer shift logs.

Routes:
  GET    /shift                     -- shifts the requester works or coordinates
  GET    /shift/{patient_id}        -- a patient's shifts (coordinator or carer)
  POST   /shift/{patient_id}        -- schedule a shift (coordinator only)
  PUT    /shift/{shift_id}          -- reschedule / reassign (coordinator only)
  DELETE /shift/{shift_id}          -- cancel (coordinator only)
  POST   /shift/notes/{shift_id}    -- replace shift notes (assigned carer only)
  POST   /shift/reports/{shift_id}  -- append an incident report (assigned carer only)

Note that the single-segment routes take a patient id for GET/POST and a
shift id for PUT/DELETE.

Times are accepted as ISO-8601 and stored as UTC "YYYY-MM-DDTHH:MM:SS+00:00"
strings; naive input is read as UTC. Stored strings sort chronologically.
"""

import logging

from fastapi import APIRouter, Depends, Request

from api.errors import api_error, shift_not_found
from api.guards import patient_for_coordinator, patient_for_reader, shift_for_carer, shift_for_coordinator
from api.models import (
    IncidentReportRequest,
    MessageResponse,
    ShiftCreate,
    ShiftNotesRequest,
    ShiftResponse,
    ShiftUpdate,
)
from auth.dependencies import get_current_user
from auth.models import User
from care import access
from care.models import IncidentReport, Shift
from care.store import CareStore, utc_iso

logger = logging.getLogger("carecoord.api.shifts")

router = APIRouter()


def _carer_not_assigned():
    return api_error(400, "carer_not_assigned", "Carer is not assigned to this patient")


def _reread(care: CareStore, shift_id: int) -> ShiftResponse:
    """Reload a shift after a write; it may have been deleted concurrently."""
    shift = care.get_shift(shift_id)
    if shift is None:
        raise shift_not_found()
    return ShiftResponse.from_shift(shift)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


@router.get("/shift", response_model=list[ShiftResponse])
def list_my_shifts(request: Request, current_user: User = Depends(get_current_user)) -> list[ShiftResponse]:
    """Every shift the requester works as carer or schedules as coordinator."""
    care: CareStore = request.app.state.care
    return [ShiftResponse.from_shift(s) for s in care.list_user_shifts(current_user.id)]


@router.get("/shift/{patient_id}", response_model=list[ShiftResponse])
def list_patient_shifts(
    request: Request,
    patient_id: int,
    current_user: User = Depends(get_current_user),
) -> list[ShiftResponse]:
    patient = patient_for_reader(request, patient_id, current_user)
    care: CareStore = request.app.state.care
    return [ShiftResponse.from_shift(s) for s in care.list_patient_shifts(patient.id)]


# ---------------------------------------------------------------------------
# Scheduling (coordinator)
# ---------------------------------------------------------------------------


@router.post("/shift/{patient_id}", response_model=ShiftResponse, status_code=201)
def create_shift(
    request: Request,
    patient_id: int,
    body: ShiftCreate,
    current_user: User = Depends(get_current_user),
) -> ShiftResponse:
    patient = patient_for_coordinator(request, patient_id, current_user)
    if not access.can_be_assigned(patient, body.carer_id):
        raise _carer_not_assigned()

    care: CareStore = request.app.state.care
    shift_id = care.create_shift(
        Shift(
            patient_id=patient.id,
            coordinator_id=current_user.id,
            carer_id=body.carer_id,
            start_time=utc_iso(body.shift_start_time),
            end_time=utc_iso(body.shift_end_time),
            coordinator_notes=body.coordinator_notes,
        )
    )
    logger.info("User %d scheduled shift %d for patient %d", current_user.id, shift_id, patient.id)
    return _reread(care, shift_id)


@router.put("/shift/{shift_id}", response_model=ShiftResponse)
def update_shift(
    request: Request,
    shift_id: int,
    body: ShiftUpdate,
    current_user: User = Depends(get_current_user),
) -> ShiftResponse:
    """Apply the fields present in the body. The result must still end after it starts."""
    shift, patient = shift_for_coordinator(request, shift_id, current_user)

    fields: dict = {}
    if body.carer_id is not None and body.carer_id != shift.carer_id:
        if not access.can_be_assigned(patient, body.carer_id):
            raise _carer_not_assigned()
        fields["carer_id"] = body.carer_id
    if body.shift_start_time is not None:
        fields["start_time"] = utc_iso(body.shift_start_time)
    if body.shift_end_time is not None:
        fields["end_time"] = utc_iso(body.shift_end_time)
    if body.coordinator_notes is not None:
        fields["coordinator_notes"] = body.coordinator_notes

    start = fields.get("start_time", shift.start_time)
    end = fields.get("end_time", shift.end_time)
    if end <= start:
        raise api_error(400, "invalid_times", "shiftEndTime must be after shiftStartTime")

    care: CareStore = request.app.state.care
    if not care.update_shift(shift.id, **fields):
        raise shift_not_found()
    return _reread(care, shift.id)


@router.delete("/shift/{shift_id}", response_model=MessageResponse)
def delete_shift(
    request: Request,
    shift_id: int,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    shift, _ = shift_for_coordinator(request, shift_id, current_user)
    care: CareStore = request.app.state.care
    if not care.delete_shift(shift.id):
        raise shift_not_found()
    logger.info("User %d deleted shift %d", current_user.id, shift.id)
    return MessageResponse(message=f"Deleted shift {shift.id}")


# ---------------------------------------------------------------------------
# Shift log (assigned carer)
# ---------------------------------------------------------------------------


@router.post("/shift/notes/{shift_id}", response_model=ShiftResponse)
def set_shift_notes(
    request: Request,
    shift_id: int,
    body: ShiftNotesRequest,
    current_user: User = Depends(get_current_user),
) -> ShiftResponse:
    shift = shift_for_carer(request, shift_id, current_user)
    care: CareStore = request.app.state.care
    if not care.set_shift_notes(shift.id, body.shift_notes):
        raise shift_not_found()
    return _reread(care, shift.id)


@router.post("/shift/reports/{shift_id}", response_model=ShiftResponse)
def add_incident_report(
    request: Request,
    shift_id: int,
    body: IncidentReportRequest,
    current_user: User = Depends(get_current_user),
) -> ShiftResponse:
    shift = shift_for_carer(request, shift_id, current_user)
    care: CareStore = request.app.state.care
    report = IncidentReport(shift_id=shift.id, author_id=current_user.id, text=body.incident_report)
    if care.add_incident_report(report) is None:
        raise shift_not_found()
    logger.warning("Incident reported on shift %d by carer %d", shift.id, current_user.id)
    return _reread(care, shift.id)
