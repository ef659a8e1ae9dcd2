"""Unit tests for api/responses.py -- envelope to HTTP mapping.

Covers:
- every ErrorKind has a status code (exhaustive mapping)
- success and failure bodies share the `success` discriminant
- InternalError bodies carry their sub-kind; other errors omit it
"""

import json
import uuid

import pytest

from api.models import CreatedStudent
from api.responses import STATUS_BY_KIND, envelope_response, error_response
from core.result import Error, ErrorKind, Failure, InternalErrorKind, Success


def _body(response) -> dict:
    return json.loads(response.body)


def test_every_error_kind_has_a_status() -> None:
    assert set(STATUS_BY_KIND) == set(ErrorKind)


def test_success_envelope() -> None:
    student_id = uuid.uuid4()
    resp = envelope_response(Success(student_id), lambda value: CreatedStudent(student_id=value), status_code=201)
    assert resp.status_code == 201
    assert _body(resp) == {"success": True, "student_id": str(student_id)}


def test_failure_envelope_has_no_payload() -> None:
    resp = envelope_response(Failure(Error.user_does_not_exist("nobody")), lambda value: pytest.fail("rendered"))
    assert resp.status_code == 404
    assert _body(resp) == {"success": False, "error": "UserDoesNotExist", "message": "nobody"}


def test_internal_error_includes_sub_kind() -> None:
    resp = error_response(Error.internal(InternalErrorKind.DATABASE, "Could not save data to database!"))
    assert resp.status_code == 500
    assert _body(resp) == {
        "success": False,
        "error": "InternalError",
        "kind": "DatabaseError",
        "message": "Could not save data to database!",
    }


def test_status_override() -> None:
    resp = error_response(Error.authentication_failure("slow down"), status_code=429)
    assert resp.status_code == 429
    assert _body(resp)["error"] == "AuthenticationFailure"


def test_non_result_is_rejected() -> None:
    with pytest.raises(TypeError):
        envelope_response("not a result", lambda value: value)
