"""
api/routes/patients.py -- Patient records owned by a coordinating user.

Routes:
  POST   /patient              -- create; requester becomes the coordinator
  GET    /patient              -- patients the requester coordinates or cares for
  GET    /patient/{patient_id} -- patient with named roster + its shifts
  PUT    /patient/{patient_id} -- rename (coordinator only)
  DELETE /patient/{patient_id} -- delete with roster and shifts (coordinator only)

Every route requires a session. Lookups go through api/guards.py so a missing
patient is always 400 and a non-member is always 401.
"""

from fastapi import APIRouter, Depends, Request

from api.errors import patient_not_found
from api.guards import patient_for_coordinator, patient_for_reader
from api.models import (
    MessageResponse,
    PatientCreate,
    PatientDetail,
    PatientDetailResponse,
    PatientResponse,
    PatientUpdate,
    ShiftResponse,
    UserSummary,
)
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from care.models import Patient
from care.store import CareStore

router = APIRouter()


@router.post("/patient", response_model=PatientResponse, status_code=201)
def create_patient(
    request: Request,
    body: PatientCreate,
    current_user: User = Depends(get_current_user),
) -> PatientResponse:
    care: CareStore = request.app.state.care
    patient_id = care.create_patient(
        Patient(first_name=body.first_name, last_name=body.last_name, coordinator_id=current_user.id)
    )
    return PatientResponse.from_patient(care.get_patient(patient_id))


@router.get("/patient", response_model=list[PatientResponse])
def list_patients(request: Request, current_user: User = Depends(get_current_user)) -> list[PatientResponse]:
    """Coordinated patients first, then those the requester is a carer for."""
    care: CareStore = request.app.state.care
    patients = care.list_coordinated(current_user.id) + care.list_cared_for(current_user.id)
    return [PatientResponse.from_patient(p) for p in patients]


@router.get("/patient/{patient_id}", response_model=PatientDetailResponse)
def get_patient(
    request: Request,
    patient_id: int,
    current_user: User = Depends(get_current_user),
) -> PatientDetailResponse:
    """Return the patient with coordinator and carers expanded to names.

    Carers whose accounts no longer exist are left out of the roster view.
    """
    patient = patient_for_reader(request, patient_id, current_user)
    care: CareStore = request.app.state.care
    user_store: UserStore = request.app.state.user_store

    people = user_store.get_many([patient.coordinator_id, *patient.carer_ids])
    coordinator = people.get(patient.coordinator_id)
    detail = PatientDetail(
        id=patient.id,
        first_name=patient.first_name,
        last_name=patient.last_name,
        coordinator=UserSummary.from_user(coordinator) if coordinator else None,
        carers=[UserSummary.from_user(people[cid]) for cid in patient.carer_ids if cid in people],
        created_at=patient.created_at,
    )
    shifts = [ShiftResponse.from_shift(s) for s in care.list_patient_shifts(patient.id)]
    return PatientDetailResponse(patient=detail, shifts=shifts)


@router.put("/patient/{patient_id}", response_model=PatientResponse)
def update_patient(
    request: Request,
    patient_id: int,
    body: PatientUpdate,
    current_user: User = Depends(get_current_user),
) -> PatientResponse:
    patient = patient_for_coordinator(request, patient_id, current_user)
    care: CareStore = request.app.state.care
    if not care.update_patient(patient.id, **body.model_dump(exclude_none=True)):
        raise patient_not_found()
    return PatientResponse.from_patient(care.get_patient(patient.id))


@router.delete("/patient/{patient_id}", response_model=MessageResponse)
def delete_patient(
    request: Request,
    patient_id: int,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    patient = patient_for_coordinator(request, patient_id, current_user)
    care: CareStore = request.app.state.care
    if not care.delete_patient(patient.id):
        raise patient_not_found()
    return MessageResponse(message=f"Deleted patient {patient.id}")
