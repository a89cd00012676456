"""
auth/tokens.py -- JWT, password hashing, and action-token utilities.

Security design decisions:
  JWT: python-jose with HS256. Every token carries a "typ" claim naming what
       it is for:
         session        -- issued at login, carried in the access_token cookie
         confirm_email  -- mailed at registration, confirms the address
         add_carer      -- mailed by a coordinator, adds a carer to a patient
       Decoding always names the expected typ, so a confirmation link can
       never be replayed as a session and a session can never add a carer.
       Verification returns None on any failure -- the route layer turns that
       into a 401.

  Passwords: bcrypt used directly. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether an email is registered [C1].

  Action tokens are stateless. "Single use" is enforced at redemption by
       checking current state (already confirmed, carer already present), not
       by a token ledger.

Layer rule: no imports from api/, care/, or notify/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("carecoord.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

SESSION = "session"
CONFIRM_EMAIL = "confirm_email"
ADD_CARER = "add_carer"

AUTH_COOKIE = "access_token"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt truncates at 72 bytes; the API layer caps passwords at 72
    characters before they reach this function.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash [C1]. Computed once at module load.
_DUMMY_HASH: str = hash_password("carecoord_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _encode(typ: str, claims: dict, duration: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "typ": typ,
        "iat": now,
        "exp": now + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def _decode(token: str, typ: str, required: tuple[str, ...]) -> dict | None:
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if payload.get("typ") != typ:
        logger.info("Rejected %s token presented as %s", payload.get("typ"), typ)
        return None
    if any(key not in payload for key in required):
        return None
    return payload


def create_access_token(user_id: int, email: str, expire_seconds: int = 0) -> str:
    """Encode a signed session JWT.

    Args:
        user_id:        Numeric user ID stored in the DB.
        email:          Stored as the subject claim.
        expire_seconds: Session duration. 0 (default) uses
                        Settings.token_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    return _encode(SESSION, {"sub": email, "user_id": user_id}, duration)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a session JWT. Returns the payload dict or None."""
    return _decode(token, SESSION, ("user_id",))


def create_verification_token(user: User) -> str:
    """Token mailed at registration; redeeming it confirms user.email."""
    return _encode(
        CONFIRM_EMAIL,
        {"sub": user.email, "user_id": user.id},
        _settings.verification_expire_seconds,
    )


def decode_verification_token(token: str) -> dict | None:
    return _decode(token, CONFIRM_EMAIL, ("user_id",))


def create_invitation_token(carer_id: int, patient_id: int) -> str:
    """Token mailed to a carer; redeeming it adds carer_id to patient_id's carers."""
    return _encode(
        ADD_CARER,
        {"carer_id": carer_id, "patient_id": patient_id},
        _settings.invitation_expire_seconds,
    )


def decode_invitation_token(token: str) -> dict | None:
    return _decode(token, ADD_CARER, ("carer_id", "patient_id"))


# ---------------------------------------------------------------------------
# User authentication (constant-time) [C1]
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists, so response time does
    not reveal which emails are registered.

    Returns the User when the password matches, None otherwise. Confirmation
    status is NOT checked here: the login route reports an unconfirmed email
    separately, and only after the password has been proven.
    """
    user = store.get_by_email(email)
    if user is None or user.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session JWT as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the JWT expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    response.set_cookie(
        AUTH_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(AUTH_COOKIE)
