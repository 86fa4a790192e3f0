from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from staffapi.api.schemas import ErrorData, ErrorEnvelope
from staffapi.config import Settings
from staffapi.logging import get_correlation_id, get_logger, set_correlation_id
from staffapi.service.errors import (
    AuthError,
    ConflictError,
    InputError,
    MissingValueError,
    NotFoundError,
    ServiceError,
)
from staffapi.storage.errors import ConstraintViolation

logger = get_logger(__name__)


@dataclass(frozen=True)
class ErrorRule:
    exc_types: Tuple[Type[BaseException], ...]
    status_code: int
    message: str
    generic_detail: str
    # Some details are never worth exposing, even in development
    always_generic: bool = False


# First match wins; subclasses must come before their bases
ERROR_RULES: Tuple[ErrorRule, ...] = (
    ErrorRule(
        (MissingValueError,),
        400,
        "Invalid input: required value is missing",
        "Required parameter is null",
    ),
    ErrorRule(
        (InputError, ValueError),
        400,
        "Invalid input provided",
        "Invalid parameter value",
    ),
    ErrorRule(
        (AuthError, PermissionError),
        401,
        "Access denied",
        "You are not authorized to access this resource",
        always_generic=True,
    ),
    ErrorRule(
        (NotFoundError, KeyError, FileNotFoundError),
        404,
        "Resource not found",
        "The requested resource was not found",
    ),
    ErrorRule(
        (ConflictError, ConstraintViolation),
        409,
        "Operation failed",
        "The requested operation could not be completed",
    ),
    ErrorRule(
        (TimeoutError,),
        408,
        "Request timeout",
        "The request took too long to process",
        always_generic=True,
    ),
)

FALLBACK_RULE = ErrorRule(
    (Exception,),
    500,
    "Internal server error",
    "An unexpected error occurred",
)

_HTTP_MESSAGES = {
    400: "Bad request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Resource not found",
    405: "Method not allowed",
    406: "Not acceptable",
    413: "Request entity too large",
    415: "Unsupported media type",
}


def error_envelope(
    message: str, errors: Optional[List[str]], correlation_id: str
) -> ErrorEnvelope:
    """Build a fresh failure envelope; never reuse one across requests."""
    return ErrorEnvelope(
        message=message,
        errors=list(errors or []),
        data=ErrorData(correlation_id=correlation_id),
    )


def error_response(
    status_code: int,
    message: str,
    errors: Optional[List[str]],
    correlation_id: str,
) -> JSONResponse:
    envelope = error_envelope(message, errors, correlation_id)
    return JSONResponse(status_code=status_code, content=envelope.to_wire())


def _exception_detail(exc: BaseException) -> str:
    if isinstance(exc, ServiceError):
        return exc.message
    if isinstance(exc, KeyError) and exc.args:
        return str(exc.args[0])
    return str(exc) or type(exc).__name__


class ErrorTranslator:
    """Maps an escaped exception to an HTTP status and failure envelope.

    In production-like environments the detail list carries a generic
    sentence instead of the exception text, so internals never leak.
    """

    def __init__(self, settings: Settings, rules: Tuple[ErrorRule, ...] = ERROR_RULES) -> None:
        self.expose_details = not settings.is_production_like
        self.rules = rules

    def rule_for(self, exc: BaseException) -> ErrorRule:
        for rule in self.rules:
            if isinstance(exc, rule.exc_types):
                return rule
        return FALLBACK_RULE

    def translate(
        self, exc: BaseException, correlation_id: str
    ) -> Tuple[int, ErrorEnvelope]:
        rule = self.rule_for(exc)
        if self.expose_details and not rule.always_generic:
            detail = _exception_detail(exc)
        else:
            detail = rule.generic_detail
        return rule.status_code, error_envelope(rule.message, [detail], correlation_id)


def _request_correlation_id(request: Request) -> str:
    cid = getattr(request.state, "correlation_id", None) or get_correlation_id()
    return cid or set_correlation_id()


def _format_validation_error(error: dict) -> str:
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    message = error.get("msg", "invalid value")
    return f"{'.'.join(loc)}: {message}" if loc else message


def register_exception_handlers(app: FastAPI) -> None:
    """Render FastAPI's own failures in the common envelope.

    Everything else propagates to the pipeline's exception boundary.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [_format_validation_error(err) for err in exc.errors()]
        logger.warning(
            "request_validation_failed",
            path=request.url.path,
            method=request.method,
            errors=errors,
        )
        return error_response(400, "Validation failed", errors, _request_correlation_id(request))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = _HTTP_MESSAGES.get(exc.status_code)
        if message is None:
            message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "http_error",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            message=message,
        )
        response = error_response(
            exc.status_code, message, [], _request_correlation_id(request)
        )
        if exc.headers:
            response.headers.update(exc.headers)
        return response
