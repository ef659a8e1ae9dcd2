"""
core/result.py -- Uniform success/error envelope returned by every auth operation.

Pattern: tagged union. A public operation returns either Success(value) or
Failure(error). Both carry a `success` discriminant; a Failure never carries a
payload. The transport layer (api/) turns the union into JSON and picks the
HTTP status -- nothing in here knows about HTTP.

The error taxonomy is closed: ErrorKind lists every failure a client can see,
InternalErrorKind sub-classifies InternalError. Raised exceptions are converted
at the service boundary by reports_errors(), which logs and returns a Failure.
Nothing is retried here; nothing is silently dropped.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

import functools
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, ClassVar, Generic, Optional, TypeVar, Union

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger("opendiary.result")

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "NotFound"
    INVALID_PAYLOAD = "InvalidPayload"
    MISSING_CREDENTIALS = "MissingCredentials"
    USER_ALREADY_EXISTS = "UserAlreadyExists"
    USER_DOES_NOT_EXIST = "UserDoesNotExist"
    AUTHENTICATION_FAILURE = "AuthenticationFailure"
    INTERNAL_ERROR = "InternalError"
    UNKNOWN = "Unknown"


class InternalErrorKind(str, Enum):
    DATABASE = "DatabaseError"
    CRYPTO = "CryptoError"
    IO = "IOError"
    SERIALIZATION = "SerializationError"
    UUID = "UUIDError"
    UNKNOWN_BOXED = "UnknownBoxed"


# ---------------------------------------------------------------------------
# Exceptions with a dedicated InternalErrorKind
# ---------------------------------------------------------------------------


class CryptoError(Exception):
    """A stored password hash could not be parsed."""


class IdentityError(ValueError):
    """A value that should be an account identity is not a valid UUID."""


# ---------------------------------------------------------------------------
# Error value
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Error:
    kind: ErrorKind
    message: str
    internal_kind: Optional[InternalErrorKind] = None

    def __post_init__(self) -> None:
        if (self.kind is ErrorKind.INTERNAL_ERROR) != (self.internal_kind is not None):
            raise ValueError("internal_kind is required for InternalError and forbidden otherwise")

    @classmethod
    def not_found(cls, message: str) -> Error:
        return cls(ErrorKind.NOT_FOUND, message)

    @classmethod
    def invalid_payload(cls, message: str) -> Error:
        return cls(ErrorKind.INVALID_PAYLOAD, message)

    @classmethod
    def missing_credentials(cls, message: str) -> Error:
        return cls(ErrorKind.MISSING_CREDENTIALS, message)

    @classmethod
    def user_already_exists(cls, message: str) -> Error:
        return cls(ErrorKind.USER_ALREADY_EXISTS, message)

    @classmethod
    def user_does_not_exist(cls, message: str) -> Error:
        return cls(ErrorKind.USER_DOES_NOT_EXIST, message)

    @classmethod
    def authentication_failure(cls, message: str) -> Error:
        return cls(ErrorKind.AUTHENTICATION_FAILURE, message)

    @classmethod
    def internal(cls, internal_kind: InternalErrorKind, message: str) -> Error:
        return cls(ErrorKind.INTERNAL_ERROR, message, internal_kind)

    @classmethod
    def unknown(cls, message: str) -> Error:
        return cls(ErrorKind.UNKNOWN, message)

    @classmethod
    def from_exception(cls, exc: BaseException) -> Error:
        """Classify an exception into the nearest taxonomy entry.

        Order matters: JSONDecodeError and IdentityError are ValueErrors, and
        several library errors subclass OSError.
        """
        if isinstance(exc, SQLAlchemyError):
            return cls.internal(InternalErrorKind.DATABASE, str(exc))
        if isinstance(exc, CryptoError):
            return cls.internal(InternalErrorKind.CRYPTO, str(exc))
        if isinstance(exc, IdentityError):
            return cls.internal(InternalErrorKind.UUID, str(exc))
        if isinstance(exc, (json.JSONDecodeError, UnicodeError)):
            return cls.internal(InternalErrorKind.SERIALIZATION, str(exc))
        if isinstance(exc, OSError):
            return cls.internal(InternalErrorKind.IO, str(exc))
        return cls.unknown(str(exc) or type(exc).__name__)


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    success: ClassVar[bool] = True


@dataclass(frozen=True)
class Failure:
    error: Error
    success: ClassVar[bool] = False


Result = Union[Success[T], Failure]


def reports_errors(func: Callable[..., Result]) -> Callable[..., Result]:
    """Convert exceptions raised by a service operation into a Failure.

    The exception is logged with its traceback so operators still see the
    root cause; the caller receives a classified Error it can branch on.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Result:
        try:
            return func(*args, **kwargs)
        except Exception as exc:
            error = Error.from_exception(exc)
            logger.exception("%s failed (%s)", func.__qualname__, (error.internal_kind or error.kind).value)
            return Failure(error)

    return wrapper
