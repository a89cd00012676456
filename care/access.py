"""
care/access.py -- Role-membership rules for patients and shifts.

Every rule is a pure function of (resource, user_id) -> bool. Callers fetch
the resource first and decide what a missing resource means; these functions
only answer "may this identity do this to that?".

Rule set:
  read a patient or its shifts        -- coordinator or any carer on the roster
  change a patient or its roster      -- coordinator only
  create / update / delete a shift    -- the patient's coordinator only
  write shift notes / incident report -- the shift's assigned carer only
  be assigned a shift                 -- must be on the patient's roster

Keeping these rules out of the route handlers means the whole policy can be
read (and unit tested) in one place.
"""

from care.models import Patient, Shift


def is_coordinator(patient: Patient, user_id: int) -> bool:
    return patient.coordinator_id == user_id


def is_carer(patient: Patient, user_id: int) -> bool:
    return user_id in patient.carer_ids


def can_view_patient(patient: Patient, user_id: int) -> bool:
    """Coordinators and rostered carers may read the patient and its shifts."""
    return is_coordinator(patient, user_id) or is_carer(patient, user_id)


def can_manage_patient(patient: Patient, user_id: int) -> bool:
    """Only the coordinator may edit, delete, or change the carer roster."""
    return is_coordinator(patient, user_id)


def can_manage_shift(patient: Patient, user_id: int) -> bool:
    """Scheduling belongs to the coordinator of the shift's patient.

    The check is against the patient, not shift.coordinator_id, so the rule
    keeps holding if a patient's shifts predate the current coordinator.
    """
    return is_coordinator(patient, user_id)


def can_log_shift(shift: Shift, user_id: int) -> bool:
    """Only the carer who worked the shift may add notes or incident reports."""
    return shift.carer_id == user_id


def can_be_assigned(patient: Patient, carer_id: int) -> bool:
    """A shift's carer must already be on the patient's roster."""
    return is_carer(patient, carer_id)
