"""
api/guards.py -- Load a patient or shift and enforce the access rule for it.

Order is always: look the resource up (400 if missing), then apply the
care.access rule (401 if the requester lacks the role). Checking existence
first means a not-found answer never depends on who is asking.
"""

from fastapi import Request

from api.errors import not_authorized, patient_not_found, shift_not_found
from auth.models import User
from care import access
from care.models import Patient, Shift
from care.store import CareStore


def _store(request: Request) -> CareStore:
    return request.app.state.care


def _get_patient(request: Request, patient_id: int) -> Patient:
    patient = _store(request).get_patient(patient_id)
    if patient is None:
        raise patient_not_found()
    return patient


def patient_for_reader(request: Request, patient_id: int, user: User) -> Patient:
    patient = _get_patient(request, patient_id)
    if not access.can_view_patient(patient, user.id):
        raise not_authorized()
    return patient


def patient_for_coordinator(request: Request, patient_id: int, user: User) -> Patient:
    patient = _get_patient(request, patient_id)
    if not access.can_manage_patient(patient, user.id):
        raise not_authorized()
    return patient


def _get_shift(request: Request, shift_id: int) -> Shift:
    shift = _store(request).get_shift(shift_id)
    if shift is None:
        raise shift_not_found()
    return shift


def shift_for_coordinator(request: Request, shift_id: int, user: User) -> tuple[Shift, Patient]:
    """Return the shift and its patient if the user coordinates that patient."""
    shift = _get_shift(request, shift_id)
    patient = _store(request).get_patient(shift.patient_id)
    if patient is None or not access.can_manage_shift(patient, user.id):
        raise not_authorized()
    return shift, patient


def shift_for_carer(request: Request, shift_id: int, user: User) -> Shift:
    shift = _get_shift(request, shift_id)
    if not access.can_log_shift(shift, user.id):
        raise not_authorized()
    return shift
