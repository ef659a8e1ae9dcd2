"""
API request and response models for the OpenDiary REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Every response model carries the `success` discriminant, so clients can branch
on it without looking at the status code first. No model has a password hash
field.
"""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from auth.models import AuthResult
from core.result import ErrorKind, InternalErrorKind

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CreateStudent(BaseModel):
    """Request body for POST /api/v1/student/register.

    Empty strings are accepted here on purpose: the registry reports an empty
    password as MissingCredentials, which a min_length check would hide.
    """

    username: str = Field(max_length=255)
    name: str = Field(max_length=255)
    surname: str = Field(max_length=255)
    patronymic: Optional[str] = Field(default=None, max_length=255)
    email: str = Field(max_length=255)
    password: str = Field(max_length=1024)


class LoginStudent(BaseModel):
    """Request body for POST /api/v1/student/login.

    The account is named either by its uuid or by its username, not both.
    """

    uuid: Optional[UUID] = None
    username: Optional[str] = Field(default=None, max_length=255)
    password: str = Field(max_length=1024)

    @model_validator(mode="after")
    def exactly_one_identity(self) -> "LoginStudent":
        if (self.uuid is None) == (self.username is None):
            raise ValueError("Provide exactly one of `uuid` or `username`.")
        return self


class EnsureSession(BaseModel):
    """Request body for POST /api/v1/student/session."""

    ssid: Optional[str] = Field(default=None, max_length=128)


class DropSession(BaseModel):
    """Request body for POST /api/v1/student/logout."""

    ssid: str = Field(max_length=128)
    uuid: UUID


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ErrorEnvelope(BaseModel):
    """Body of every failed operation. `kind` is set only for InternalError."""

    model_config = ConfigDict(frozen=True)

    success: Literal[False] = False
    error: ErrorKind
    message: str
    kind: Optional[InternalErrorKind] = None


class CreatedStudent(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: Literal[True] = True
    student_id: UUID


class LoggedInStudent(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: Literal[True] = True
    session_id: str
    student_id: UUID
    expires_at: datetime


class SessionStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: Literal[True] = True
    auth_result: AuthResult


class SessionDropped(BaseModel):
    """Logout response. student_id and drop_success are omitted unless auth_result is Success."""

    model_config = ConfigDict(frozen=True)

    success: Literal[True] = True
    auth_result: AuthResult
    student_id: Optional[UUID] = None
    drop_success: Optional[bool] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
