"""
api/main.py -- FastAPI application entry point for CareCoord.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- lets the single-page client send its cookie
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan opens the user and care stores and the mailer on startup and closes
the stores on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.errors import MISSING_FIELDS
from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.carers import router as carers_router
from api.routes.patients import router as patients_router
from api.routes.shifts import router as shifts_router
from api.routes.users import router as users_router
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from care.store import CareStore
from core.config import get_settings
from notify.mailer import LogMailer

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("carecoord.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores before the first request and close them on shutdown.

    Both stores share one database URL; each creates its own tables if they
    are missing.
    """
    logger.info("CareCoord API starting up")
    app.state.user_store = UserStore(_settings.database_url)
    app.state.care = CareStore(_settings.database_url)
    app.state.mailer = LogMailer()
    logger.info("Stores initialized (debug=%s)", _settings.debug)

    yield

    app.state.care.close()
    app.state.user_store.close()
    logger.info("CareCoord API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="CareCoord API",
    description="Care coordination: patients, carer rosters, shifts and shift logs.",
    version=__version__,
    lifespan=lifespan,
    # Built-in docs are replaced by auth-protected routes below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    # The client authenticates with the access_token cookie.
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(users_router, tags=["Users"])
app.include_router(patients_router, tags=["Patients"])
app.include_router(carers_router, tags=["Carers"])
app.include_router(shifts_router, tags=["Shifts"])


# ---------------------------------------------------------------------------
# Auth-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
async def docs(user: User = Depends(get_current_user)):
    """Swagger UI -- requires authentication."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="CareCoord API")


@app.get("/redoc", include_in_schema=False)
async def redoc(user: User = Depends(get_current_user)):
    """ReDoc UI -- requires authentication."""
    return get_redoc_html(openapi_url="/openapi.json", title="CareCoord API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error body is the flat ErrorResponse {"code", "message", "detail"}.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(code="rate_limited", message="Too many requests.", detail=str(exc)).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


_VALUE_ERROR_PREFIX = "Value error, "


def _is_missing(error: dict) -> bool:
    if error.get("type") == "missing":
        return True
    return error.get("type") == "string_too_short" and error.get("input") == ""


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400. An absent or blank field reads "Please fill out all fields";
    any other failure surfaces the first validator message.
    """
    errors = exc.errors()
    if any(_is_missing(e) for e in errors):
        message = MISSING_FIELDS
    else:
        message = errors[0].get("msg", "") if errors else ""
        message = message.removeprefix(_VALUE_ERROR_PREFIX) or "Invalid request."
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(code="validation_error", message=message, detail=str(errors)).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Route handlers raise api_error(...), whose detail is already an
    ErrorResponse dict; anything else (404 from routing, 405, ...) is wrapped.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(code=f"http_{exc.status_code}", message=str(exc.detail)).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(code="internal_error", message="An unexpected error occurred.").model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Not rate limited; load balancers poll it.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> JSONResponse:
    """Return liveness and a per-component status. 503 if a store is unreachable."""
    components = {
        "app": "ok",
        "database": "ok" if request.app.state.user_store.ping() and request.app.state.care.ping() else "error",
    }
    healthy = all(v == "ok" for v in components.values())
    body = HealthResponse(status="healthy" if healthy else "degraded", version=__version__, components=components)
    return JSONResponse(status_code=200 if healthy else 503, content=body.model_dump())
