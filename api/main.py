"""
api/main.py -- FastAPI application entry point for OpenDiary.

Run with:      python main.py
               uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan builds the object graph once per process: engine -> stores ->
hasher -> registry -> session authority, all hung off app.state. Nothing in
auth/ reaches for a global connection; each component gets its collaborators
at construction.

Every response, including framework-level errors (unknown route, body
validation, rate limiting, unhandled exceptions), uses the same envelope.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import HealthResponse
from api.responses import error_response
from api.routes.v1.students import router as students_router
from auth.passwords import PasswordHasher
from auth.registry import AccountRegistry
from auth.sessions import SessionAuthority
from auth.store import AccountStore, SessionStore, create_store_engine
from core.config import get_settings
from core.result import Error, InternalErrorKind

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("opendiary.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def wire_services(app: FastAPI, engine) -> None:
    """Attach stores and services built on engine to app.state."""
    settings = get_settings()
    registry = AccountRegistry(AccountStore(engine), PasswordHasher(rounds=settings.bcrypt_rounds))
    app.state.engine = engine
    app.state.registry = registry
    app.state.sessions = SessionAuthority(
        SessionStore(engine),
        registry,
        lifetime=timedelta(seconds=settings.session_lifetime_seconds),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the engine on startup and dispose of its pool on shutdown."""
    settings = get_settings()
    logger.info("OpenDiary API starting up")
    engine = create_store_engine(settings.database_url, max_connections=settings.db_max_connections)
    wire_services(app, engine)
    logger.info("Auth initialized (session lifetime %ss)", settings.session_lifetime_seconds)

    yield

    app.state.engine.dispose()
    logger.info("OpenDiary API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="OpenDiary API",
    description="Student accounts and session authentication.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
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


app.include_router(students_router, prefix="/api/v1", tags=["Students"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same envelope as the routes so API clients can
# branch on `success` without inspecting status codes.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with an AuthenticationFailure envelope.

    Retry-After is the length of the limit window (60 for "10/minute").
    """
    retry_after = exc.limit.limit.get_expiry()
    response = error_response(
        Error.authentication_failure(f"Too many login attempts: {exc.detail}"),
        status_code=429,
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or incomplete request bodies are InvalidPayload."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
    )
    return error_response(Error.invalid_payload(f"Request validation failed. {details}"))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes and methods become NotFound; anything else keeps its status."""
    if exc.status_code in (404, 405):
        return error_response(Error.not_found(f"Invalid path: {request.url.path}"), status_code=exc.status_code)
    if exc.status_code >= 500:
        return error_response(
            Error.internal(InternalErrorKind.UNKNOWN_BOXED, str(exc.detail)), status_code=exc.status_code
        )
    return error_response(Error.invalid_payload(str(exc.detail)), status_code=exc.status_code)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for anything the services did not convert.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(Error.internal(InternalErrorKind.UNKNOWN_BOXED, "An unexpected error occurred."))


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit -- health checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    database = "ok"
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database", exc_info=True)
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=__version__,
        components={"app": "ok", "database": database},
    )
