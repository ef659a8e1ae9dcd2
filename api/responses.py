"""
api/responses.py -- Turn core.result envelopes into HTTP responses.

This is the only place that decides HTTP status codes for auth outcomes. The
JSON body has the same shape whatever the status: {"success": true, ...} or
{"success": false, "error": ..., "message": ...}.
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.models import ErrorEnvelope
from core.result import Error, ErrorKind, Failure, Result, Success

T = TypeVar("T")

# Must cover every ErrorKind; tests/test_responses.py checks this.
STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_PAYLOAD: 422,
    ErrorKind.MISSING_CREDENTIALS: 400,
    ErrorKind.USER_ALREADY_EXISTS: 409,
    ErrorKind.USER_DOES_NOT_EXIST: 404,
    ErrorKind.AUTHENTICATION_FAILURE: 401,
    ErrorKind.INTERNAL_ERROR: 500,
    ErrorKind.UNKNOWN: 500,
}


def to_error_envelope(error: Error) -> ErrorEnvelope:
    return ErrorEnvelope(error=error.kind, message=error.message, kind=error.internal_kind)


def error_response(error: Error, status_code: Optional[int] = None) -> JSONResponse:
    """Render an Error. status_code overrides the per-kind default (e.g. 429)."""
    return JSONResponse(
        status_code=status_code if status_code is not None else STATUS_BY_KIND[error.kind],
        content=to_error_envelope(error).model_dump(mode="json", exclude_none=True),
    )


def envelope_response(
    result: Result[T],
    render: Callable[[T], BaseModel],
    status_code: int = 200,
) -> JSONResponse:
    """Render a Success through render(), or a Failure as an error envelope."""
    if isinstance(result, Failure):
        return error_response(result.error)
    if isinstance(result, Success):
        return JSONResponse(
            status_code=status_code,
            content=render(result.value).model_dump(mode="json", exclude_none=True),
        )
    raise TypeError(f"Expected Success or Failure, got {type(result).__name__}")
