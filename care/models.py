"""
care/models.py -- Domain dataclasses for patients, shifts and incident reports.

These are pure data containers with zero logic. Who may act on them lives in
care/access.py; persistence lives in care/store.py.

Separation of concerns: users are auth/'s domain. Here a user is only ever an
integer id (coordinator_id, carer_ids, carer_id, author_id). The API layer
joins in names when it builds responses.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Patient:
    """A person receiving care.

    coordinator_id is set once, at creation, to the creating user. carer_ids
    is the carer roster. The store keeps it unique; the carer routes keep
    the coordinator off it.

    id is None before the record is written to the database.
    """

    first_name: str
    last_name: str
    coordinator_id: int
    id: Optional[int] = None
    carer_ids: list[int] = field(default_factory=list)
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class IncidentReport:
    """A carer's account of something that went wrong during a shift.

    Append-only: reports are never edited, only removed with their shift.
    """

    shift_id: int
    author_id: int
    text: str
    id: Optional[int] = None
    created_at: str = ""


@dataclass
class Shift:
    """A scheduled care period for one patient, worked by one carer.

    start_time / end_time are ISO 8601 strings in UTC so they sort
    lexicographically in SQL. coordinator_notes are written by the coordinator
    when scheduling; shift_notes and incident_reports by the carer afterwards.
    """

    patient_id: int
    coordinator_id: int
    carer_id: int
    start_time: str
    end_time: str
    coordinator_notes: str = ""
    shift_notes: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    incident_reports: list[IncidentReport] = field(default_factory=list)
