"""
api/routes/carers.py -- Carer roster: invite by email, accept, remove.

Routes:
  POST   /carer/invite/{patient_id}            -- coordinator mails an invitation
  POST   /carer/add/{token}                    -- redeem an invitation (no session)
  DELETE /carer/remove/{patient_id}/{carer_id} -- coordinator removes a carer

Invitation flow:
  The coordinator names a carer by email. The carer must already have an
  account; the invitation token binds that carer's id to the patient id, so
  the link cannot be used to add anyone else. Whoever holds the link adds
  exactly that carer. The token is the only credential on /carer/add.

Roster rules:
  A coordinator is never a carer on their own patient.
  Duplicates are rejected by the UNIQUE(patient_id, carer_id) constraint, so
  two concurrent redemptions of the same link add the carer once.
  Removing a carer also removes that carer's shifts for the patient.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError

from api.errors import api_error, patient_not_found
from api.guards import patient_for_coordinator
from api.models import CarerInvite, MessageResponse, PatientResponse
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_invitation_token, decode_invitation_token
from care import access
from care.store import CareStore
from notify.mailer import send_carer_invitation

logger = logging.getLogger("carecoord.api.carers")

router = APIRouter()


def _no_account():
    return api_error(400, "carer_not_registered", "Carer has not made an account yet")


def _carer_is_coordinator():
    return api_error(400, "carer_is_coordinator", "The coordinator cannot be added as a carer")


def _carer_exists():
    return api_error(400, "carer_exists", "Carer already exists")


@router.post("/carer/invite/{patient_id}", response_model=MessageResponse)
def invite_carer(
    request: Request,
    patient_id: int,
    body: CarerInvite,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Mail a registered user an invitation to join the patient's care team."""
    patient = patient_for_coordinator(request, patient_id, current_user)
    user_store: UserStore = request.app.state.user_store

    carer = user_store.get_by_email(body.email)
    if carer is None:
        raise _no_account()
    if access.is_coordinator(patient, carer.id):
        raise _carer_is_coordinator()
    if access.is_carer(patient, carer.id):
        raise _carer_exists()

    send_carer_invitation(
        request.app.state.mailer,
        carer.email,
        carer.first_name,
        current_user.full_name,
        f"{patient.first_name} {patient.last_name}",
        create_invitation_token(carer.id, patient.id),
    )
    logger.info("User %d invited carer %d to patient %d", current_user.id, carer.id, patient.id)
    return MessageResponse(message="Email Sent")


@router.post("/carer/add/{token}", response_model=PatientResponse)
def add_carer(request: Request, token: str) -> PatientResponse:
    """Put the invited carer on the patient's roster."""
    payload = decode_invitation_token(token)
    if payload is None:
        raise api_error(401, "invalid_token", "Invalid invitation token")

    care: CareStore = request.app.state.care
    user_store: UserStore = request.app.state.user_store
    patient = care.get_patient(payload["patient_id"])
    if patient is None:
        raise patient_not_found()
    carer = user_store.get_by_id(payload["carer_id"])
    if carer is None:
        raise _no_account()
    if access.is_coordinator(patient, carer.id):
        raise _carer_is_coordinator()

    try:
        care.add_carer(patient.id, carer.id)
    except IntegrityError as exc:
        raise _carer_exists() from exc
    logger.info("Carer %d joined patient %d", carer.id, patient.id)
    return PatientResponse.from_patient(care.get_patient(patient.id))


@router.delete("/carer/remove/{patient_id}/{carer_id}", response_model=PatientResponse)
def remove_carer(
    request: Request,
    patient_id: int,
    carer_id: int,
    current_user: User = Depends(get_current_user),
) -> PatientResponse:
    patient = patient_for_coordinator(request, patient_id, current_user)
    care: CareStore = request.app.state.care
    if not care.remove_carer(patient.id, carer_id):
        raise api_error(400, "carer_not_found", "Carer does not exist")
    return PatientResponse.from_patient(care.get_patient(patient.id))
