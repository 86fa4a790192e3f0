"""Tests for the failure envelope and the exception translation table.

Every failure response has the shape:
{
    "success": false,
    "message": "<human_readable>",
    "errors": ["<detail>", ...],
    "data": {"correlationId": "<id>", "timestamp": "<iso8601>"}
}
"""

import pytest

from staffapi.api.error_handling import ErrorTranslator, error_envelope, error_response
from staffapi.service.errors import (
    AuthError,
    AuthorizationError,
    ConflictError,
    InputError,
    MissingValueError,
    NotFoundError,
    OperationTimeoutError,
)
from staffapi.storage.errors import ConstraintViolation

# (exception, status, message, generic detail, detail outside production)
CASES = [
    (
        MissingValueError("employee id is required"),
        400,
        "Invalid input: required value is missing",
        "Required parameter is null",
        "employee id is required",
    ),
    (
        InputError("page must be positive"),
        400,
        "Invalid input provided",
        "Invalid parameter value",
        "page must be positive",
    ),
    (
        ValueError("bad number"),
        400,
        "Invalid input provided",
        "Invalid parameter value",
        "bad number",
    ),
    (
        AuthError("no session"),
        401,
        "Access denied",
        "You are not authorized to access this resource",
        "You are not authorized to access this resource",
    ),
    (
        AuthorizationError("Administrator role required"),
        401,
        "Access denied",
        "You are not authorized to access this resource",
        "You are not authorized to access this resource",
    ),
    (
        PermissionError("denied"),
        401,
        "Access denied",
        "You are not authorized to access this resource",
        "You are not authorized to access this resource",
    ),
    (
        NotFoundError("employee 7 missing"),
        404,
        "Resource not found",
        "The requested resource was not found",
        "employee 7 missing",
    ),
    (
        KeyError("employee-7"),
        404,
        "Resource not found",
        "The requested resource was not found",
        "employee-7",
    ),
    (
        FileNotFoundError("roster.csv"),
        404,
        "Resource not found",
        "The requested resource was not found",
        "roster.csv",
    ),
    (
        ConflictError("state changed"),
        409,
        "Operation failed",
        "The requested operation could not be completed",
        "state changed",
    ),
    (
        ConstraintViolation("duplicate email", field="email"),
        409,
        "Operation failed",
        "The requested operation could not be completed",
        "duplicate email",
    ),
    (
        OperationTimeoutError("report took too long"),
        408,
        "Request timeout",
        "The request took too long to process",
        "The request took too long to process",
    ),
    (
        TimeoutError(),
        408,
        "Request timeout",
        "The request took too long to process",
        "The request took too long to process",
    ),
    (
        RuntimeError("segfault in payroll"),
        500,
        "Internal server error",
        "An unexpected error occurred",
        "segfault in payroll",
    ),
]


@pytest.mark.parametrize("exc,status,message,generic,detail", CASES)
def test_translation_outside_production(settings_factory, exc, status, message, generic, detail):
    translator = ErrorTranslator(settings_factory(app_env="Development"))
    status_code, envelope = translator.translate(exc, "cid-dev")

    assert status_code == status
    assert envelope.success is False
    assert envelope.message == message
    assert envelope.errors == [detail]
    assert envelope.data.correlation_id == "cid-dev"


@pytest.mark.parametrize("exc,status,message,generic,detail", CASES)
def test_translation_in_production(settings_factory, exc, status, message, generic, detail):
    translator = ErrorTranslator(settings_factory(app_env="Production"))
    status_code, envelope = translator.translate(exc, "cid-prod")

    assert status_code == status
    assert envelope.message == message
    assert envelope.errors == [generic]


def test_missing_value_matches_before_input_error(settings):
    translator = ErrorTranslator(settings)
    rule = translator.rule_for(MissingValueError("x"))
    assert rule.message == "Invalid input: required value is missing"


def test_envelope_wire_shape():
    envelope = error_envelope("Unauthorized", ["Missing Authorization header"], "cid-1")
    wire = envelope.to_wire()

    assert set(wire) == {"success", "message", "data", "errors"}
    assert wire["success"] is False
    assert wire["errors"] == ["Missing Authorization header"]
    assert set(wire["data"]) == {"correlationId", "timestamp"}
    assert wire["data"]["correlationId"] == "cid-1"


def test_envelopes_are_not_shared():
    first = error_envelope("Unauthorized", ["a"], "cid-1")
    second = error_envelope("Unauthorized", ["a"], "cid-2")

    first.errors.append("mutated")
    assert second.errors == ["a"]
    assert first.data is not second.data


def test_error_response_is_json():
    response = error_response(409, "Operation failed", None, "cid-9")
    assert response.status_code == 409
    assert response.headers["content-type"] == "application/json"
    assert b'"correlationId":"cid-9"' in response.body
