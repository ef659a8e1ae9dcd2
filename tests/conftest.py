"""
tests/conftest.py -- Shared test fixtures for OpenDiary.

This module provides:
  - engine: a fresh named shared-memory SQLite store per test
  - clock: a controllable UTC clock injected into the services
  - hasher / registry / authority: the auth services wired the way api/main.py does
  - api_client: TestClient whose lifespan wires an isolated store into app.state

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.

Environment must be set before any core/api import so get_settings() sees it:
DEBUG for the dev-mode config, a cheap bcrypt cost, and a login rate limit
high enough that the suite never trips it.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app, wire_services
from auth.passwords import PasswordHasher
from auth.registry import AccountRegistry
from auth.sessions import SessionAuthority
from auth.store import AccountStore, SessionStore, create_store_engine


def memory_url(name: str) -> str:
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


class FrozenClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = create_store_engine(memory_url(f"test_{uuid.uuid4().hex}"))
    yield eng
    eng.dispose()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def account_store(engine: Engine) -> AccountStore:
    return AccountStore(engine)


@pytest.fixture
def session_store(engine: Engine) -> SessionStore:
    return SessionStore(engine)


@pytest.fixture
def registry(account_store: AccountStore, hasher: PasswordHasher, clock: FrozenClock) -> AccountRegistry:
    return AccountRegistry(account_store, hasher, clock=clock)


@pytest.fixture
def authority(session_store: SessionStore, registry: AccountRegistry, clock: FrozenClock) -> SessionAuthority:
    return SessionAuthority(session_store, registry, clock=clock)


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(engine: Engine):
    """Return a lifespan that wires the test engine instead of DATABASE_URL."""

    @asynccontextmanager
    async def test_lifespan(app):
        wire_services(app, engine)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient backed by an isolated in-memory store.

    State persists across the tests of one module, so tests use distinct
    usernames.
    """
    eng = create_store_engine(memory_url(f"test_api_{uuid.uuid4().hex}"))
    app.router.lifespan_context = _patch_lifespan(eng)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    eng.dispose()
