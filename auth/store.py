"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts and sessions.

Pattern: Repository + Data Mapper. AccountStore and SessionStore are the
repositories; _row_to_account / _row_to_session are the mappers. Services and
route code never touch SQL directly.

Both stores receive an Engine at construction. The engine (and its connection
pool) is created once per process by create_store_engine() and injected -- no
module-level connection state.

Security:
  All queries use bound parameters. No f-strings in SQL.

Portability:
  Timestamps are ISO 8601 UTC strings and UUIDs canonical strings, so the same
  schema runs on SQLite (dev, tests) and PostgreSQL (production).

Errors:
  SQLAlchemyError propagates to the caller. The services convert it into
  InternalError(DatabaseError) at their boundary; nothing is retried here.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, MetaData, String, Table, Text, create_engine, event, or_
from sqlalchemy.engine import Engine

from auth.models import Account, Session, parse_identity

logger = logging.getLogger("opendiary.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("uuid", String(36), primary_key=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("name", Text, nullable=False),
    Column("surname", Text, nullable=False),
    Column("patronymic", Text),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_user_sessions = Table(
    "user_sessions",
    metadata,
    Column("ssid", String(64), primary_key=True),
    Column("expires_at", String(32), nullable=False),
    Column("belongs_to", String(36), ForeignKey("users.uuid"), nullable=False, unique=True),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journaling and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. Foreign keys are off by default in SQLite.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def create_store_engine(db_url: str, max_connections: int = 5) -> Engine:
    """Create the process-wide engine and make sure both tables exist."""
    connect_args: dict = {}
    engine_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    else:
        engine_args["pool_size"] = max_connections
        engine_args["max_overflow"] = 0
    engine = create_engine(db_url, connect_args=connect_args, **engine_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    metadata.create_all(engine)
    logger.info("Store ready (%s)", engine.url.render_as_string(hide_password=True))
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat()


def _from_iso(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account rows."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def find_by_username_or_email(self, username: str, email: str) -> Account | None:
        """Return any account holding either the username or the email.

        One combined lookup backs the registration uniqueness check.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(or_(_users.c.username == username, _users.c.email == email)).limit(1)
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_username(self, username: str) -> Account | None:
        """Exact, case-sensitive match."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username).limit(1)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_uuid(self, identity: uuid.UUID) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.uuid == str(identity)).limit(1)).fetchone()
        return _row_to_account(row) if row is not None else None

    def insert(self, account: Account) -> int:
        """Insert all eight account fields. Returns the affected row count.

        Raises sqlalchemy.exc.IntegrityError if the username or email is already
        taken -- callers treat that as a concurrent duplicate registration.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    uuid=str(account.uuid),
                    username=account.username,
                    name=account.name,
                    surname=account.surname,
                    patronymic=account.patronymic,
                    email=account.email,
                    password_hash=account.password_hash,
                    created_at=_to_iso(account.created_at),
                )
            )
            conn.commit()
        return result.rowcount


class SessionStore:
    """Repository for Session rows. Only the session authority writes here."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def get_by_token(self, ssid: str) -> Session | None:
        with self.engine.connect() as conn:
            row = conn.execute(_user_sessions.select().where(_user_sessions.c.ssid == ssid).limit(1)).fetchone()
        return _row_to_session(row) if row is not None else None

    def get_by_owner(self, owner: uuid.UUID) -> Session | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _user_sessions.select().where(_user_sessions.c.belongs_to == str(owner)).limit(1)
            ).fetchone()
        return _row_to_session(row) if row is not None else None

    def insert(self, session: Session) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                _user_sessions.insert().values(
                    ssid=session.ssid,
                    expires_at=_to_iso(session.expires_at),
                    belongs_to=str(session.belongs_to),
                )
            )
            conn.commit()
        return result.rowcount

    def delete(self, ssid: str) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(_user_sessions.delete().where(_user_sessions.c.ssid == ssid))
            conn.commit()
        return result.rowcount

    def delete_owned(self, ssid: str, owner: uuid.UUID) -> int:
        """Delete a session only if it belongs to owner.

        Both conditions must match, so a token presented with someone else's
        identity removes nothing.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _user_sessions.delete().where(
                    (_user_sessions.c.ssid == ssid) & (_user_sessions.c.belongs_to == str(owner))
                )
            )
            conn.commit()
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        uuid=parse_identity(row.uuid),
        username=row.username,
        name=row.name,
        surname=row.surname,
        patronymic=row.patronymic,
        email=row.email,
        password_hash=row.password_hash,
        created_at=_from_iso(row.created_at),
    )


def _row_to_session(row) -> Session:
    return Session(
        ssid=row.ssid,
        belongs_to=parse_identity(row.belongs_to),
        expires_at=_from_iso(row.expires_at),
    )
