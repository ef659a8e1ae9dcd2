"""
auth/registry.py -- Account registration and lookup.

Every public method returns a core.result envelope. Raised store and crypto
exceptions are converted by @reports_errors at this boundary.

Uniqueness: registration does one combined username-OR-email lookup before
inserting. The check and the insert are not atomic, so two concurrent
registrations can both pass the check; the loser then hits the UNIQUE
constraint on insert, which is reported as UserAlreadyExists too.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.exc import IntegrityError

from auth.models import Account, DisplayName
from auth.passwords import PasswordHasher
from auth.store import AccountStore
from core.result import Error, Failure, InternalErrorKind, Result, Success, reports_errors

logger = logging.getLogger("opendiary.auth")

_ALREADY_EXISTS = "User with provided email/username already exists!"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountRegistry:
    """Creates accounts and answers identity lookups.

    Usage:
        registry = AccountRegistry(AccountStore(engine), PasswordHasher())
        result = registry.register("alice", DisplayName("Alice", "Smith"), "alice@x.com", "pw1")
    """

    def __init__(
        self,
        accounts: AccountStore,
        hasher: PasswordHasher,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.accounts = accounts
        self.hasher = hasher
        self.clock = clock

    @reports_errors
    def register(self, username: str, display: DisplayName, email: str, password: str) -> Result[Account]:
        if not password:
            return Failure(Error.missing_credentials("Provided password was empty!"))
        if not username:
            return Failure(Error.invalid_payload("`username` parameter was empty"))
        if not email:
            return Failure(Error.invalid_payload("`email` parameter was empty"))

        if self.accounts.find_by_username_or_email(username, email) is not None:
            return Failure(Error.user_already_exists(_ALREADY_EXISTS))

        account = Account(
            uuid=uuid.uuid4(),
            username=username,
            name=display.name,
            surname=display.surname,
            patronymic=display.patronymic,
            email=email,
            password_hash=self.hasher.hash(password),
            created_at=self.clock(),
        )
        try:
            affected = self.accounts.insert(account)
        except IntegrityError:
            logger.info("Registration for %r lost a race on the unique constraint", username)
            return Failure(Error.user_already_exists(_ALREADY_EXISTS))
        if affected < 1:
            return Failure(Error.internal(InternalErrorKind.DATABASE, "Could not save data to database!"))

        logger.info("Registered account %s (%s)", account.uuid, username)
        return Success(account)

    @reports_errors
    def find_by_username(self, username: str) -> Result[Account]:
        if not username:
            return Failure(Error.invalid_payload("`username` parameter was empty"))
        account = self.accounts.get_by_username(username)
        if account is None:
            return Failure(Error.user_does_not_exist(f"User with name `{username}` does not exist!"))
        return Success(account)

    @reports_errors
    def find_by_id(self, identity: uuid.UUID) -> Result[Account]:
        account = self.accounts.get_by_uuid(identity)
        if account is None:
            return Failure(Error.user_does_not_exist(f"User with uuid `{identity}` does not exist!"))
        return Success(account)

    @reports_errors
    def verify_credentials(self, identity: uuid.UUID, password: str) -> Result[Account]:
        """Look up identity and check password against its stored hash.

        A malformed stored hash raises CryptoError, which surfaces as
        InternalError(CryptoError) rather than AuthenticationFailure.
        """
        found = self.find_by_id(identity)
        if isinstance(found, Failure):
            return found
        if not self.hasher.verify(password, found.value.password_hash):
            return Failure(Error.authentication_failure("Passwords do not match!"))
        return found
