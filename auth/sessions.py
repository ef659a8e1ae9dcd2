"""
auth/sessions.py -- Session issuance, validation, and revocation.

A session row moves through three states:

  absent  --login-->   live       (one row per account; re-login reuses it)
  live    --validate--> absent    (only once now > expires_at: lazy expiry)
  live    --logout-->  absent     (token and owner must both match)

Lazy expiry is two explicit steps: is_expired() decides, purge() deletes.
validate() runs both, so an expired session is never reported as valid and
is removed the first time anyone presents it. There is no background sweep.

Sessions are never cached in memory. Every validation re-reads the store so
a logout from another process is seen immediately.

Tokens: SHA-256 hex digest of 32 bytes from the secrets CSPRNG -- 64 opaque
hex characters, 256 bits of entropy.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError

from auth.models import AuthResult, LogoutReceipt, Session, SessionOutcome
from auth.registry import AccountRegistry, utcnow
from auth.store import SessionStore
from core.result import Error, Failure, InternalErrorKind, Result, Success, reports_errors

logger = logging.getLogger("opendiary.auth")

SESSION_LIFETIME = timedelta(days=2)


def generate_token() -> str:
    return hashlib.sha256(secrets.token_bytes(32)).hexdigest()


class SessionAuthority:
    """Owns the user_sessions relation.

    Usage:
        authority = SessionAuthority(SessionStore(engine), registry)
        issued = authority.login(student_id, "pw1")
        authority.validate(issued.value.ssid)   # Success(AuthResult.SUCCESS)
    """

    def __init__(
        self,
        sessions: SessionStore,
        registry: AccountRegistry,
        lifetime: timedelta = SESSION_LIFETIME,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.sessions = sessions
        self.registry = registry
        self.lifetime = lifetime
        self.clock = clock

    @reports_errors
    def login(self, identity: uuid.UUID, password: str) -> Result[Session]:
        """Verify the password and return the account's session.

        An existing session row is returned unchanged, without re-checking its
        expiry, so logging in while a session is outstanding is idempotent.
        """
        if not password:
            return Failure(Error.invalid_payload("`password` parameter was empty"))

        verified = self.registry.verify_credentials(identity, password)
        if isinstance(verified, Failure):
            return verified
        account = verified.value

        existing = self.sessions.get_by_owner(account.uuid)
        if existing is not None:
            return Success(existing)

        session = Session(
            ssid=generate_token(),
            belongs_to=account.uuid,
            expires_at=self.clock() + self.lifetime,
        )
        try:
            affected = self.sessions.insert(session)
        except IntegrityError:
            winner = self.sessions.get_by_owner(account.uuid)
            if winner is None:
                raise
            logger.info("Concurrent login for %s; returning the session that was stored first", account.uuid)
            return Success(winner)
        if affected < 1:
            return Failure(Error.internal(InternalErrorKind.DATABASE, "Could not update session ids!"))

        logger.info("Issued session for %s (expires %s)", account.uuid, session.expires_at.isoformat())
        return Success(session)

    @reports_errors
    def validate(self, token: Optional[str]) -> Result[AuthResult]:
        if not token:
            return Success(AuthResult.INVALID_SESSION)

        session = self.sessions.get_by_token(token)
        if session is None:
            return Success(AuthResult.INVALID_SESSION)

        if self.is_expired(session):
            self.purge(token)
            return Success(AuthResult.INVALID_SESSION)
        return Success(AuthResult.SUCCESS)

    @reports_errors
    def logout(self, token: Optional[str], claimed_owner: uuid.UUID) -> Result[SessionOutcome[LogoutReceipt]]:
        validated = self.validate(token)
        if isinstance(validated, Failure):
            return validated
        if validated.value is not AuthResult.SUCCESS:
            return Success(SessionOutcome(auth_result=validated.value))

        dropped = self.sessions.delete_owned(token, claimed_owner) >= 1
        if dropped:
            logger.info("Session for %s ended by logout", claimed_owner)
        return Success(
            SessionOutcome(
                auth_result=AuthResult.SUCCESS,
                value=LogoutReceipt(student_id=claimed_owner, drop_success=dropped),
            )
        )

    def is_expired(self, session: Session, now: Optional[datetime] = None) -> bool:
        return session.is_expired(now if now is not None else self.clock())

    def purge(self, token: str) -> bool:
        """Delete an expired session row. Returns True if a row was removed."""
        removed = self.sessions.delete(token) >= 1
        if removed:
            logger.info("Purged expired session")
        return removed
