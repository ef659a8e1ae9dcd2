"""Unit tests for core/config.py -- Settings validation.

Covers:
- production mode refuses to start without DATABASE_URL
- debug mode falls back to a local SQLite database
- defaults: 2-day sessions, bcrypt cost 12, 10/minute login limit
- out-of-range BCRYPT_ROUNDS and non-positive lifetimes are rejected
"""

import pytest
from pydantic import ValidationError

from core.config import Settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("DEBUG", "DATABASE_URL", "BCRYPT_ROUNDS", "LOGIN_RATE_LIMIT", "SESSION_LIFETIME_SECONDS"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_production_requires_database_url(clean_env):
    with pytest.raises(ValidationError, match="DATABASE_URL is required"):
        Settings(_env_file=None)


def test_debug_falls_back_to_sqlite(clean_env):
    clean_env.setenv("DEBUG", "true")
    settings = Settings(_env_file=None)
    assert settings.database_url.startswith("sqlite:///")


def test_defaults(clean_env):
    clean_env.setenv("DATABASE_URL", "postgresql://diary@localhost/diary")
    settings = Settings(_env_file=None)
    assert settings.session_lifetime_seconds == 2 * 24 * 60 * 60
    assert settings.bcrypt_rounds == 12
    assert settings.login_rate_limit == "10/minute"
    assert settings.db_max_connections == 5
    assert settings.port == 3000


@pytest.mark.parametrize("rounds", ["3", "32"])
def test_bcrypt_rounds_bounds(clean_env, rounds):
    clean_env.setenv("DATABASE_URL", "sqlite://")
    clean_env.setenv("BCRYPT_ROUNDS", rounds)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_session_lifetime_must_be_positive(clean_env):
    clean_env.setenv("DATABASE_URL", "sqlite://")
    clean_env.setenv("SESSION_LIFETIME_SECONDS", "0")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
