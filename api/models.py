"""
API request and response models for CareCoord REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
care/models.py, which own the internal domain representation. Route handlers
map between the two.

Wire format: JSON keys are camelCase (firstName, shiftStartTime, ...) because
the single-page client was written against that shape. Python code uses the
snake_case field names; populate_by_name lets handlers construct models with
either. FastAPI serializes response_model output by alias.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from care.models import IncidentReport, Patient, Shift

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ---------------------------------------------------------------------------
# Errors and service
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Every 4xx/5xx body. message is the human-readable string clients show."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Users -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(_ApiModel):
    """Request body for POST /user/register."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=1, max_length=255, pattern=EMAIL_PATTERN)
    # bcrypt only reads the first 72 bytes; refuse longer input instead of
    # silently ignoring the tail.
    password: str = Field(min_length=1, max_length=72)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class LoginRequest(_ApiModel):
    """Request body for POST /user/login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


class ResendVerificationRequest(_ApiModel):
    email: str = Field(min_length=1, max_length=255, pattern=EMAIL_PATTERN)


# ---------------------------------------------------------------------------
# Users -- responses
# ---------------------------------------------------------------------------


class UserSummary(_ApiModel):
    """The slice of a user shown to the rest of a care team."""

    model_config = ConfigDict(frozen=True)

    id: int
    first_name: str
    last_name: str
    email: str

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(id=user.id, first_name=user.first_name, last_name=user.last_name, email=user.email)


class UserResponse(_ApiModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    first_name: str
    last_name: str
    is_confirmed: bool
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            is_confirmed=user.is_confirmed,
            created_at=user.created_at or "",
        )


class LoginResponse(UserResponse):
    message: str = "Logged in Successfully"
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# ---------------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------------


class PatientCreate(_ApiModel):
    """Request body for POST /patient. The requester becomes the coordinator."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)


class PatientUpdate(_ApiModel):
    """Request body for PUT /patient/{id}. Omitted fields are left unchanged."""

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)


class PatientResponse(_ApiModel):
    """A patient with coordinator and carers as user ids."""

    model_config = ConfigDict(frozen=True)

    id: int
    first_name: str
    last_name: str
    coordinator: int
    carers: list[int]
    created_at: str

    @classmethod
    def from_patient(cls, patient: Patient) -> "PatientResponse":
        return cls(
            id=patient.id,
            first_name=patient.first_name,
            last_name=patient.last_name,
            coordinator=patient.coordinator_id,
            carers=patient.carer_ids,
            created_at=patient.created_at,
        )


class PatientDetail(_ApiModel):
    """A patient with coordinator and carers expanded to names, for rosters."""

    model_config = ConfigDict(frozen=True)

    id: int
    first_name: str
    last_name: str
    coordinator: Optional[UserSummary]
    carers: list[UserSummary]
    created_at: str


class MeResponse(UserResponse):
    """Response for GET /user: the account plus its patients grouped by role."""

    coordinator: list[PatientResponse] = Field(default_factory=list)
    carer: list[PatientResponse] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Carers
# ---------------------------------------------------------------------------


class CarerInvite(_ApiModel):
    """Request body for POST /carer/invite/{patient_id}."""

    email: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Shifts
# ---------------------------------------------------------------------------


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive shift times are UTC, so mixed naive/aware input still compares."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ShiftCreate(_ApiModel):
    """Request body for POST /shift/{patient_id}."""

    carer_id: int = Field(alias="carerID")
    shift_start_time: datetime
    shift_end_time: datetime
    coordinator_notes: str = Field(default="", max_length=5000)

    @field_validator("shift_start_time", "shift_end_time")
    @classmethod
    def assume_utc(cls, value):
        return _as_utc(value)

    @model_validator(mode="after")
    def end_after_start(self) -> "ShiftCreate":
        if self.shift_end_time <= self.shift_start_time:
            raise ValueError("shiftEndTime must be after shiftStartTime")
        return self


class ShiftUpdate(_ApiModel):
    """Request body for PUT /shift/{shift_id}. Omitted fields are left unchanged.

    The edit form posts the carer as "carer"; scripts use "carerID" like the
    create body. Both are accepted. The end-after-start check runs in the
    route because only one of the two times may be sent.
    """

    carer_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("carerID", "carer", "carer_id"))
    shift_start_time: Optional[datetime] = None
    shift_end_time: Optional[datetime] = None
    coordinator_notes: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("shift_start_time", "shift_end_time")
    @classmethod
    def assume_utc(cls, value):
        return _as_utc(value)


class ShiftNotesRequest(_ApiModel):
    shift_notes: str = Field(min_length=1, max_length=20000)


class IncidentReportRequest(_ApiModel):
    incident_report: str = Field(min_length=1, max_length=20000)


class IncidentReportResponse(_ApiModel):
    model_config = ConfigDict(frozen=True)

    id: int
    author: int
    report: str
    created_at: str

    @classmethod
    def from_report(cls, report: IncidentReport) -> "IncidentReportResponse":
        return cls(id=report.id, author=report.author_id, report=report.text, created_at=report.created_at)


class ShiftResponse(_ApiModel):
    model_config = ConfigDict(frozen=True)

    id: int
    patient: int
    coordinator: int
    carer: int
    shift_start_time: datetime
    shift_end_time: datetime
    coordinator_notes: str
    shift_notes: Optional[str]
    incident_reports: list[IncidentReportResponse]
    created_at: str

    @classmethod
    def from_shift(cls, shift: Shift) -> "ShiftResponse":
        """Factory Method -- the domain-to-wire mapping lives beside the wire model."""
        return cls(
            id=shift.id,
            patient=shift.patient_id,
            coordinator=shift.coordinator_id,
            carer=shift.carer_id,
            shift_start_time=shift.start_time,
            shift_end_time=shift.end_time,
            coordinator_notes=shift.coordinator_notes,
            shift_notes=shift.shift_notes,
            incident_reports=[IncidentReportResponse.from_report(r) for r in shift.incident_reports],
            created_at=shift.created_at,
        )


class PatientDetailResponse(_ApiModel):
    """Response for GET /patient/{id}."""

    model_config = ConfigDict(frozen=True)

    patient: PatientDetail
    shifts: list[ShiftResponse]
