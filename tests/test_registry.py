"""Unit tests for auth/registry.py -- account registration and lookup.

Covers:
- register() then find_by_username() returns the same identity
- duplicate username or email -> UserAlreadyExists
- a unique-constraint violation on insert (lost race) -> UserAlreadyExists
- empty password -> MissingCredentials; empty username/email -> InvalidPayload
- zero affected rows and store failures -> InternalError(DatabaseError)
- verify_credentials() distinguishes unknown identity from wrong password
"""

import uuid

import pytest
from sqlalchemy.exc import OperationalError

from auth.models import DisplayName
from core.result import ErrorKind, Failure, InternalErrorKind, Success

ALICE = DisplayName(name="Alice", surname="Smith")


def _register(registry, username="alice", email="alice@x.com", password="pw1"):
    return registry.register(username, ALICE, email, password)


class TestRegister:
    def test_register_then_lookup_returns_same_identity(self, registry):
        created = _register(registry)
        assert isinstance(created, Success)

        found = registry.find_by_username("alice")
        assert isinstance(found, Success)
        assert found.value.uuid == created.value.uuid
        assert isinstance(created.value.uuid, uuid.UUID)

    def test_register_persists_display_fields_and_timestamp(self, registry, clock):
        display = DisplayName(name="Ivan", surname="Petrov", patronymic="Sergeevich")
        created = registry.register("ivan", display, "ivan@x.com", "pw")
        found = registry.find_by_id(created.value.uuid)
        assert found.value.display == display
        assert found.value.created_at == clock.now

    def test_password_is_stored_hashed(self, registry, hasher):
        created = _register(registry, password="s3cret")
        record = created.value.password_hash
        assert record != "s3cret"
        assert hasher.verify("s3cret", record)
        assert record not in repr(created.value)

    def test_duplicate_username_rejected(self, registry):
        _register(registry)
        result = _register(registry, email="other@x.com")
        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.USER_ALREADY_EXISTS

    def test_duplicate_email_rejected(self, registry):
        _register(registry)
        result = _register(registry, username="alice2")
        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.USER_ALREADY_EXISTS

    def test_constraint_violation_on_insert_is_already_exists(self, registry, monkeypatch):
        """Simulate a concurrent registration that slipped past the lookup."""
        _register(registry)
        monkeypatch.setattr(registry.accounts, "find_by_username_or_email", lambda username, email: None)
        result = _register(registry)
        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.USER_ALREADY_EXISTS

    def test_empty_password_is_missing_credentials(self, registry):
        result = _register(registry, password="")
        assert result.error.kind is ErrorKind.MISSING_CREDENTIALS

    @pytest.mark.parametrize("field", ["username", "email"])
    def test_empty_identity_fields_are_invalid_payload(self, registry, field):
        result = _register(registry, **{field: ""})
        assert result.error.kind is ErrorKind.INVALID_PAYLOAD

    def test_zero_rows_inserted_is_database_error(self, registry, monkeypatch):
        monkeypatch.setattr(registry.accounts, "insert", lambda account: 0)
        result = _register(registry)
        assert result.error.kind is ErrorKind.INTERNAL_ERROR
        assert result.error.internal_kind is InternalErrorKind.DATABASE

    def test_store_failure_is_database_error(self, registry, monkeypatch):
        def broken(username, email):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        monkeypatch.setattr(registry.accounts, "find_by_username_or_email", broken)
        result = _register(registry)
        assert result.error.kind is ErrorKind.INTERNAL_ERROR
        assert result.error.internal_kind is InternalErrorKind.DATABASE


class TestLookup:
    def test_find_by_username_empty_is_invalid_payload(self, registry):
        assert registry.find_by_username("").error.kind is ErrorKind.INVALID_PAYLOAD

    def test_find_by_username_unknown(self, registry):
        result = registry.find_by_username("nobody")
        assert result.error.kind is ErrorKind.USER_DOES_NOT_EXIST
        assert "nobody" in result.error.message

    def test_find_by_username_is_case_sensitive(self, registry):
        _register(registry)
        assert registry.find_by_username("ALICE").error.kind is ErrorKind.USER_DOES_NOT_EXIST

    def test_find_by_id_unknown(self, registry):
        assert registry.find_by_id(uuid.uuid4()).error.kind is ErrorKind.USER_DOES_NOT_EXIST


class TestVerifyCredentials:
    def test_correct_password(self, registry):
        created = _register(registry)
        result = registry.verify_credentials(created.value.uuid, "pw1")
        assert isinstance(result, Success)
        assert result.value.username == "alice"

    def test_wrong_password(self, registry):
        created = _register(registry)
        result = registry.verify_credentials(created.value.uuid, "pw2")
        assert result.error.kind is ErrorKind.AUTHENTICATION_FAILURE

    def test_unknown_identity(self, registry):
        result = registry.verify_credentials(uuid.uuid4(), "pw1")
        assert result.error.kind is ErrorKind.USER_DOES_NOT_EXIST
