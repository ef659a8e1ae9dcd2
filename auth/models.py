"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores map rows
into these; the registry and session authority do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from core.result import IdentityError

V = TypeVar("V")


class AuthResult(str, Enum):
    """Outcome of presenting a session token.

    SessionExpired is part of the declared contract, but validation reports
    an expired token as InvalidSession after deleting it.
    """

    SUCCESS = "Success"
    SESSION_EXPIRED = "SessionExpired"
    INVALID_SESSION = "InvalidSession"


@dataclass(frozen=True)
class DisplayName:
    name: str
    surname: str
    patronymic: Optional[str] = None


@dataclass
class Account:
    """A registered student.

    password_hash is the opaque bcrypt record. It is kept out of repr() so it
    cannot end up in logs, and no API response model has a field for it.
    """

    uuid: uuid.UUID
    username: str
    name: str
    surname: str
    email: str
    created_at: datetime
    password_hash: str = field(repr=False)
    patronymic: Optional[str] = None

    @property
    def display(self) -> DisplayName:
        return DisplayName(name=self.name, surname=self.surname, patronymic=self.patronymic)


@dataclass(frozen=True)
class Session:
    ssid: str
    belongs_to: uuid.UUID
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@dataclass(frozen=True)
class LogoutReceipt:
    student_id: uuid.UUID
    drop_success: bool


@dataclass(frozen=True)
class SessionOutcome(Generic[V]):
    """Result of an operation that first requires a valid session.

    value is only populated when auth_result is SUCCESS.
    """

    auth_result: AuthResult
    value: Optional[V] = None


def parse_identity(value: uuid.UUID | str) -> uuid.UUID:
    """Coerce a stored or client-supplied identity into a UUID."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise IdentityError(f"`{value}` is not a valid account identity") from exc
