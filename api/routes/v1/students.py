"""
api/routes/v1/students.py -- Account and session REST endpoints.

Routes:
  POST /api/v1/student/register             -- create an account
  GET  /api/v1/student/get_id/{username}    -- resolve username to student_id
  POST /api/v1/student/login                -- password login; issues or reuses a session
  POST /api/v1/student/session              -- validate a session token
  POST /api/v1/student/logout               -- end a session (token + owner)

Every response body is the success/error envelope from api/responses.py.

Handlers are plain `def` on purpose: FastAPI runs them in its threadpool, so
bcrypt and the blocking SQLAlchemy calls never stall the event loop.

Security:
  POST /login is rate-limited (LOGIN_RATE_LIMIT, default 10/minute per IP).
  Login responses carry Cache-Control: no-store.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    CreatedStudent,
    CreateStudent,
    DropSession,
    EnsureSession,
    LoggedInStudent,
    LoginStudent,
    SessionDropped,
    SessionStatus,
)
from api.responses import envelope_response, error_response
from auth.models import DisplayName
from auth.registry import AccountRegistry
from auth.sessions import SessionAuthority
from core.result import Failure

router = APIRouter()


@router.post("/student/register", response_model=CreatedStudent, status_code=201)
def register_student(request: Request, body: CreateStudent) -> JSONResponse:
    """Create an account. Returns the new student_id."""
    registry: AccountRegistry = request.app.state.registry
    result = registry.register(
        body.username,
        DisplayName(name=body.name, surname=body.surname, patronymic=body.patronymic),
        body.email,
        body.password,
    )
    return envelope_response(result, lambda account: CreatedStudent(student_id=account.uuid), status_code=201)


@router.get("/student/get_id/{username}", response_model=CreatedStudent)
def query_student_id(request: Request, username: str) -> JSONResponse:
    """Resolve a username to its student_id."""
    registry: AccountRegistry = request.app.state.registry
    result = registry.find_by_username(username)
    return envelope_response(result, lambda account: CreatedStudent(student_id=account.uuid))


@router.post("/student/login", response_model=LoggedInStudent)
@limiter.limit(login_rate_limit)
def login_student(request: Request, body: LoginStudent) -> JSONResponse:
    """Verify the password and return the account's session.

    If the account already holds a session, that same session is returned.
    """
    registry: AccountRegistry = request.app.state.registry
    authority: SessionAuthority = request.app.state.sessions

    identity = body.uuid
    if identity is None:
        found = registry.find_by_username(body.username)
        if isinstance(found, Failure):
            resp = error_response(found.error)
            resp.headers["Cache-Control"] = "no-store"
            return resp
        identity = found.value.uuid

    result = authority.login(identity, body.password)
    resp = envelope_response(
        result,
        lambda session: LoggedInStudent(
            session_id=session.ssid,
            student_id=session.belongs_to,
            expires_at=session.expires_at,
        ),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/student/session", response_model=SessionStatus)
def ensure_session(request: Request, body: EnsureSession) -> JSONResponse:
    """Report whether a session token is valid. Expired tokens are deleted."""
    authority: SessionAuthority = request.app.state.sessions
    result = authority.validate(body.ssid)
    return envelope_response(result, lambda auth_result: SessionStatus(auth_result=auth_result))


@router.post("/student/logout", response_model=SessionDropped)
def drop_session(request: Request, body: DropSession) -> JSONResponse:
    """End a session. Only removes the row if the token belongs to body.uuid."""
    authority: SessionAuthority = request.app.state.sessions
    result = authority.logout(body.ssid, body.uuid)

    def render(outcome) -> SessionDropped:
        if outcome.value is None:
            return SessionDropped(auth_result=outcome.auth_result)
        return SessionDropped(
            auth_result=outcome.auth_result,
            student_id=outcome.value.student_id,
            drop_success=outcome.value.drop_success,
        )

    return envelope_response(result, render)
