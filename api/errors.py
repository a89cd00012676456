"""
api/errors.py -- HTTPException factory for the flat ErrorResponse envelope.

Route handlers raise api_error(...). The HTTPException handler in api/main.py
returns exc.detail verbatim, so every error body has the same
{"code", "message", "detail"} shape.

Status policy:
  400 -- validation failures, unknown ids, and state conflicts
         (already a carer, already confirmed, ...)
  401 -- no/invalid session token, and valid sessions lacking the role
         the action needs
"""

from typing import Optional

from fastapi import HTTPException

from api.models import ErrorResponse

NOT_AUTHORIZED = "User is not authorized"
MISSING_FIELDS = "Please fill out all fields"


def api_error(status_code: int, code: str, message: str, detail: Optional[str] = None) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ErrorResponse(code=code, message=message, detail=detail).model_dump(),
    )


def not_authorized() -> HTTPException:
    return api_error(401, "not_authorized", NOT_AUTHORIZED)


def patient_not_found() -> HTTPException:
    return api_error(400, "patient_not_found", "Patient not found")


def shift_not_found() -> HTTPException:
    return api_error(400, "shift_not_found", "Shift not found")
