"""
api/routes/users.py -- Account registration, login and email confirmation.

Routes (registration order matters: /user/verification/resend must come
before /user/verification/{token} or FastAPI captures "resend" as a token):
  POST /user/register               -- create account, mail confirmation link
  POST /user/login                  -- password login; sets JWT cookie
  POST /user/logout                 -- clears cookie
  POST /user/verification/resend    -- mail a fresh confirmation link
  POST /user/verification/{token}   -- redeem a confirmation link
  GET  /user                        -- current account + patients by role

Security:
  [H2] login, register and resend are rate-limited per client IP. @router.post
       must be the outer decorator: the route has to register the
       limiter-wrapped function, and SlowAPIMiddleware skips routes that
       carry their own @limiter.limit.
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses.
  Login checks the password before confirmation status, so "Please confirm
  your email" is only ever shown to someone who knows the password.
  Resend answers identically whether or not the email is registered.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.errors import api_error
from api.limiter import limiter
from api.models import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    PatientResponse,
    RegisterRequest,
    ResendVerificationRequest,
    UserResponse,
)
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from auth.tokens import (
    authenticate_user,
    clear_auth_cookie,
    create_access_token,
    create_verification_token,
    decode_verification_token,
    hash_password,
    set_auth_cookie,
)
from care.store import CareStore
from core.config import get_settings
from notify.mailer import send_verification

logger = logging.getLogger("carecoord.api.users")

_settings = get_settings()

# Auth policy:
# - POST /user/register, /user/login, /user/logout, /user/verification/*: public
# - GET  /user: requires a session (get_current_user)
router = APIRouter()


def _no_store(resp: JSONResponse) -> JSONResponse:
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.post("/user/register", response_model=UserResponse, status_code=201)
@limiter.limit(_settings.register_rate_limit)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create an unconfirmed account and mail its confirmation link."""
    user_store: UserStore = request.app.state.user_store

    new_user = User(
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        hashed_password=hash_password(body.password),
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        raise api_error(400, "email_taken", "This email is associated with an account already.") from exc

    created = user_store.get_by_id(user_id)
    send_verification(request.app.state.mailer, created.email, created.first_name, create_verification_token(created))
    logger.info("Registered user %d", user_id)
    return UserResponse.from_user(created)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@router.post("/user/login", response_model=LoginResponse)
@limiter.limit(_settings.login_rate_limit)  # [H2]
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the JWT cookie."""
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None:
        return _no_store(
            JSONResponse(
                status_code=400,
                content=ErrorResponse(code="bad_credentials", message="Invalid credentials").model_dump(),
            )
        )
    if not user.is_confirmed:
        return _no_store(
            JSONResponse(
                status_code=400,
                content=ErrorResponse(code="email_unconfirmed", message="Please confirm your email").model_dump(),
            )
        )

    token = create_access_token(user.id, user.email)
    user_store.update_last_login(user.id)
    user = user_store.get_by_id(user.id)
    body_out = LoginResponse(
        **UserResponse.from_user(user).model_dump(),
        access_token=token,
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=_settings.token_expire_seconds,
    )
    resp = JSONResponse(status_code=200, content=body_out.model_dump(mode="json", by_alias=True))
    set_auth_cookie(resp, token)
    return _no_store(resp)


@router.post("/user/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the JWT cookie and end the session."""
    resp = JSONResponse(content={"message": "Logged out."})
    clear_auth_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Email confirmation
# ---------------------------------------------------------------------------


@router.post("/user/verification/resend", response_model=MessageResponse)
@limiter.limit(_settings.register_rate_limit)
def resend_verification(request: Request, body: ResendVerificationRequest) -> MessageResponse:
    """Mail a new confirmation link to an unconfirmed account.

    The reply is the same for unknown, unconfirmed and confirmed emails so
    this endpoint cannot be used to probe which addresses are registered.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_email(body.email)
    if user is not None and not user.is_confirmed:
        send_verification(request.app.state.mailer, user.email, user.first_name, create_verification_token(user))
    return MessageResponse(message="If that account needs confirming, an email is on its way.")


@router.post("/user/verification/{token}", response_model=MessageResponse)
def verify_email(request: Request, token: str) -> MessageResponse:
    """Redeem a confirmation link. The token is the only credential."""
    payload = decode_verification_token(token)
    if payload is None:
        raise api_error(401, "invalid_token", "Invalid verification token")

    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(payload["user_id"])
    # An account deleted and re-registered gets a new id; the email check
    # stops an old link from confirming someone else's address.
    if user is None or user.email != payload.get("sub"):
        raise api_error(401, "user_not_found", "User not found")
    if not user_store.confirm_user(user.id):
        raise api_error(400, "already_confirmed", "Email already confirmed.")
    logger.info("User %d confirmed email", user.id)
    return MessageResponse(message="Email successfully confirmed.")


# ---------------------------------------------------------------------------
# Current account
# ---------------------------------------------------------------------------


@router.get("/user", response_model=MeResponse)
def me(request: Request, current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return the current account and the patients it coordinates or cares for."""
    care: CareStore = request.app.state.care
    return MeResponse(
        **UserResponse.from_user(current_user).model_dump(),
        coordinator=[PatientResponse.from_patient(p) for p in care.list_coordinated(current_user.id)],
        carer=[PatientResponse.from_patient(p) for p in care.list_cared_for(current_user.id)],
    )
