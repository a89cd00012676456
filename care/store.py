"""
care/store.py -- SQLAlchemy-backed persistence for patients, rosters and shifts.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in care/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. CareStore is the repository; the _row_to_*
functions are the mappers. Route handlers never touch SQL directly.

Integrity rules owned here:
  - UNIQUE(patient_id, carer_id) on patient_carers. The database, not a
    read-then-write check, decides the winner when two requests add the same
    carer at once; the loser gets IntegrityError.
  - Removing a carer deletes that carer's shifts for the patient, so every
    stored shift keeps a rostered carer.
  - Deleting a patient deletes its roster, shifts and incident reports in one
    transaction. Deleting a shift deletes its incident reports.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CareStore("sqlite:///:memory:")
    pid = store.create_patient(Patient(first_name="Ida", last_name="Moss", coordinator_id=1))
    store.add_carer(pid, 2)
    sid = store.create_shift(Shift(patient_id=pid, coordinator_id=1, carer_id=2,
                                   start_time=utc_iso(start), end_time=utc_iso(end)))
    store.close()
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    event,
    or_,
    select,
    text,
)
from sqlalchemy.engine import Engine

from care.models import IncidentReport, Patient, Shift
from core.config import get_settings

logger = logging.getLogger("carecoord.care.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_patients = Table(
    "patients",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("coordinator_id", Integer, nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
)

_patient_carers = Table(
    "patient_carers",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("patient_id", Integer, nullable=False),
    Column("carer_id", Integer, nullable=False, index=True),
    Column("added_at", String(32), nullable=False),
    UniqueConstraint("patient_id", "carer_id", name="uq_patient_carer"),
)

_shifts = Table(
    "shifts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("patient_id", Integer, nullable=False, index=True),
    Column("coordinator_id", Integer, nullable=False),
    Column("carer_id", Integer, nullable=False, index=True),
    Column("start_time", String(32), nullable=False),
    Column("end_time", String(32), nullable=False),
    Column("coordinator_notes", Text, nullable=False, server_default=""),
    Column("shift_notes", Text),
    Column("created_at", String(32), nullable=False),
)

_reports = Table(
    "incident_reports",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("shift_id", Integer, nullable=False, index=True),
    Column("author_id", Integer, nullable=False),
    Column("text", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

# Columns a caller may change through update_patient / update_shift.
_PATIENT_FIELDS = {"first_name", "last_name"}
_SHIFT_FIELDS = {"carer_id", "start_time", "end_time", "coordinator_notes"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def utc_iso(dt: datetime) -> str:
    """Normalize a datetime to a second-precision UTC ISO 8601 string.

    Naive datetimes are taken to be UTC already. A single format for every
    stored shift time is what makes ORDER BY start_time chronological.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety (per connection)."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CareStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            return False
        return True

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------

    def create_patient(self, patient: Patient) -> int:
        """Insert a new patient and return its assigned database ID.

        The roster starts empty; carer_ids on the argument is ignored.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _patients.insert().values(
                    first_name=patient.first_name,
                    last_name=patient.last_name,
                    coordinator_id=patient.coordinator_id,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_patient(self, patient_id: int) -> Optional[Patient]:
        """Return the patient with its carer roster, or None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_patients.select().where(_patients.c.id == patient_id)).fetchone()
            if row is None:
                return None
            rosters = self._rosters(conn, [patient_id])
        return _row_to_patient(row, rosters.get(patient_id, []))

    def list_coordinated(self, user_id: int) -> list[Patient]:
        """Patients the user coordinates, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _patients.select().where(_patients.c.coordinator_id == user_id).order_by(_patients.c.id)
            ).fetchall()
            rosters = self._rosters(conn, [r.id for r in rows])
        return [_row_to_patient(r, rosters.get(r.id, [])) for r in rows]

    def list_cared_for(self, user_id: int) -> list[Patient]:
        """Patients whose roster includes the user, oldest first."""
        rostered = select(_patient_carers.c.patient_id).where(_patient_carers.c.carer_id == user_id)
        with self.engine.connect() as conn:
            rows = conn.execute(
                _patients.select().where(_patients.c.id.in_(rostered)).order_by(_patients.c.id)
            ).fetchall()
            rosters = self._rosters(conn, [r.id for r in rows])
        return [_row_to_patient(r, rosters.get(r.id, [])) for r in rows]

    def update_patient(self, patient_id: int, **fields) -> bool:
        """Update mutable patient fields (first_name, last_name).

        Unknown keys raise ValueError rather than being silently ignored --
        coordinator_id in particular is never writable.
        Returns True if a row was updated, False if patient_id was not found.
        """
        unknown = set(fields) - _PATIENT_FIELDS
        if unknown:
            raise ValueError(f"Unknown patient fields: {unknown!r}")
        if not fields:
            return self.get_patient(patient_id) is not None
        with self.engine.connect() as conn:
            result = conn.execute(_patients.update().where(_patients.c.id == patient_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_patient(self, patient_id: int) -> bool:
        """Delete a patient with its roster, shifts and incident reports.

        Returns True if the patient existed.
        """
        shift_ids = select(_shifts.c.id).where(_shifts.c.patient_id == patient_id)
        with self.engine.begin() as conn:
            conn.execute(delete(_reports).where(_reports.c.shift_id.in_(shift_ids)))
            conn.execute(delete(_shifts).where(_shifts.c.patient_id == patient_id))
            conn.execute(delete(_patient_carers).where(_patient_carers.c.patient_id == patient_id))
            result = conn.execute(delete(_patients).where(_patients.c.id == patient_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Carer roster
    # ------------------------------------------------------------------

    def add_carer(self, patient_id: int, carer_id: int) -> None:
        """Add carer_id to the patient's roster.

        Raises sqlalchemy.exc.IntegrityError if the carer is already on the
        roster -- including when a concurrent request added them first.
        """
        with self.engine.connect() as conn:
            conn.execute(
                _patient_carers.insert().values(
                    patient_id=patient_id,
                    carer_id=carer_id,
                    added_at=_now_iso(),
                )
            )
            conn.commit()

    def remove_carer(self, patient_id: int, carer_id: int) -> bool:
        """Take a carer off the roster, deleting their shifts for this patient.

        Returns False (and changes nothing) if the carer was not rostered.
        """
        shift_ids = select(_shifts.c.id).where(
            (_shifts.c.patient_id == patient_id) & (_shifts.c.carer_id == carer_id)
        )
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(_patient_carers).where(
                    (_patient_carers.c.patient_id == patient_id) & (_patient_carers.c.carer_id == carer_id)
                )
            )
            if result.rowcount == 0:
                return False
            conn.execute(delete(_reports).where(_reports.c.shift_id.in_(shift_ids)))
            removed = conn.execute(
                delete(_shifts).where((_shifts.c.patient_id == patient_id) & (_shifts.c.carer_id == carer_id))
            )
        if removed.rowcount:
            logger.info(
                "Removed %d shift(s) for carer %d with patient %d",
                removed.rowcount,
                carer_id,
                patient_id,
            )
        return True

    def _rosters(self, conn, patient_ids: list[int]) -> dict[int, list[int]]:
        if not patient_ids:
            return {}
        rows = conn.execute(
            select(_patient_carers.c.patient_id, _patient_carers.c.carer_id)
            .where(_patient_carers.c.patient_id.in_(patient_ids))
            .order_by(_patient_carers.c.id)
        ).fetchall()
        rosters: dict[int, list[int]] = {}
        for r in rows:
            rosters.setdefault(r.patient_id, []).append(r.carer_id)
        return rosters

    # ------------------------------------------------------------------
    # Shifts
    # ------------------------------------------------------------------

    def create_shift(self, shift: Shift) -> int:
        """Insert a new shift and return its ID.

        The roster invariant (carer_id is rostered on patient_id) is checked
        by the caller through care.access before this is reached.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _shifts.insert().values(
                    patient_id=shift.patient_id,
                    coordinator_id=shift.coordinator_id,
                    carer_id=shift.carer_id,
                    start_time=shift.start_time,
                    end_time=shift.end_time,
                    coordinator_notes=shift.coordinator_notes or "",
                    shift_notes=shift.shift_notes,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_shift(self, shift_id: int) -> Optional[Shift]:
        """Return the shift with its incident reports, or None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_shifts.select().where(_shifts.c.id == shift_id)).fetchone()
            if row is None:
                return None
            reports = self._reports_for(conn, [shift_id])
        return _row_to_shift(row, reports.get(shift_id, []))

    def list_patient_shifts(self, patient_id: int) -> list[Shift]:
        """All shifts for a patient in chronological order."""
        query = _shifts.select().where(_shifts.c.patient_id == patient_id)
        return self._list_shifts(query)

    def list_user_shifts(self, user_id: int) -> list[Shift]:
        """Every shift the user works or coordinates, in chronological order."""
        query = _shifts.select().where(or_(_shifts.c.carer_id == user_id, _shifts.c.coordinator_id == user_id))
        return self._list_shifts(query)

    def _list_shifts(self, query) -> list[Shift]:
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_shifts.c.start_time, _shifts.c.id)).fetchall()
            reports = self._reports_for(conn, [r.id for r in rows])
        return [_row_to_shift(r, reports.get(r.id, [])) for r in rows]

    def update_shift(self, shift_id: int, **fields) -> bool:
        """Update mutable shift fields (carer_id, start_time, end_time, coordinator_notes).

        Returns True if a row was updated, False if shift_id was not found.
        """
        unknown = set(fields) - _SHIFT_FIELDS
        if unknown:
            raise ValueError(f"Unknown shift fields: {unknown!r}")
        if not fields:
            return self.get_shift(shift_id) is not None
        with self.engine.connect() as conn:
            result = conn.execute(_shifts.update().where(_shifts.c.id == shift_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_shift(self, shift_id: int) -> bool:
        """Delete a shift and its incident reports. Returns True if it existed."""
        with self.engine.begin() as conn:
            conn.execute(delete(_reports).where(_reports.c.shift_id == shift_id))
            result = conn.execute(delete(_shifts).where(_shifts.c.id == shift_id))
        return result.rowcount > 0

    def set_shift_notes(self, shift_id: int, notes: str) -> bool:
        """Replace the carer's shift notes. Returns False if the shift is gone."""
        with self.engine.connect() as conn:
            result = conn.execute(_shifts.update().where(_shifts.c.id == shift_id).values(shift_notes=notes))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Incident reports
    # ------------------------------------------------------------------

    def add_incident_report(self, report: IncidentReport) -> Optional[int]:
        """Append an incident report to a shift and return its ID.

        Returns None, writing nothing, if the shift no longer exists. The
        existence check and the insert share one transaction.
        """
        with self.engine.begin() as conn:
            shift = conn.execute(select(_shifts.c.id).where(_shifts.c.id == report.shift_id)).fetchone()
            if shift is None:
                return None
            result = conn.execute(
                _reports.insert().values(
                    shift_id=report.shift_id,
                    author_id=report.author_id,
                    text=report.text,
                    created_at=_now_iso(),
                )
            )
            return result.inserted_primary_key[0]

    def _reports_for(self, conn, shift_ids: list[int]) -> dict[int, list[IncidentReport]]:
        if not shift_ids:
            return {}
        rows = conn.execute(
            _reports.select().where(_reports.c.shift_id.in_(shift_ids)).order_by(_reports.c.id)
        ).fetchall()
        reports: dict[int, list[IncidentReport]] = {}
        for r in rows:
            reports.setdefault(r.shift_id, []).append(_row_to_report(r))
        return reports

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_patient(row, carer_ids: list[int]) -> Patient:
    return Patient(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        coordinator_id=row.coordinator_id,
        carer_ids=list(carer_ids),
        created_at=row.created_at,
    )


def _row_to_shift(row, reports: list[IncidentReport]) -> Shift:
    return Shift(
        id=row.id,
        patient_id=row.patient_id,
        coordinator_id=row.coordinator_id,
        carer_id=row.carer_id,
        start_time=row.start_time,
        end_time=row.end_time,
        coordinator_notes=row.coordinator_notes or "",
        shift_notes=row.shift_notes,
        created_at=row.created_at,
        incident_reports=list(reports),
    )


def _row_to_report(row) -> IncidentReport:
    return IncidentReport(
        id=row.id,
        shift_id=row.shift_id,
        author_id=row.author_id,
        text=row.text,
        created_at=row.created_at,
    )
