"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two places are checked for the session JWT, in priority order:
  1. "access_token" cookie -- set by POST /user/login for the browser client.
  2. Authorization: Bearer <token> header -- scripts and API clients.

get_current_user() raises HTTP 401 with one of two codes so the client can
tell "log in first" from "your session is no longer valid":
  no_token       -- neither source carried a token
  invalid_token  -- a token was present but failed signature/expiry/typ
                    checks, or names a user that no longer exists

Layer rule: no imports from api/, care/, or notify/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import User
from auth.store import UserStore
from auth.tokens import AUTH_COOKIE, decode_access_token


def extract_token(request: Request) -> str | None:
    """Return the raw session token from the cookie or Bearer header, if any."""
    token: str | None = request.cookies.get(AUTH_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
    return token or None


def get_current_user(request: Request) -> User:
    """Require a valid session. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = extract_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "no_token", "message": "No authorization token found", "detail": None},
        )

    payload = decode_access_token(token)
    user = None
    if payload is not None:
        user_store: UserStore = request.app.state.user_store
        user = user_store.get_by_id(payload["user_id"])
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "invalid_token", "message": "Invalid authorization token", "detail": None},
        )
    return user
