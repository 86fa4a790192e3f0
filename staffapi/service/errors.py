from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for failures that reach the HTTP boundary.

    Each subclass fixes the HTTP status it is translated to:
    - InputError / MissingValueError (400)
    - AuthError / AuthorizationError (401)
    - NotFoundError (404)
    - OperationTimeoutError (408)
    - ConflictError (409)
    """

    status_code: int = 500

    def __init__(self, message: str, *, detail: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class InputError(ServiceError):
    """An argument was malformed or out of range (400)."""
    status_code = 400


class MissingValueError(InputError):
    """A required value was absent (400)."""
    pass


class AuthError(ServiceError):
    """Caller is not authenticated (401)."""
    status_code = 401


class AuthorizationError(AuthError):
    """Authenticated caller lacks the required role claim (401)."""
    pass


class NotFoundError(ServiceError):
    """Requested resource does not exist (404)."""
    status_code = 404


class ConflictError(ServiceError):
    """Operation conflicts with current state, e.g. a duplicate unique field (409)."""
    status_code = 409


class OperationTimeoutError(ServiceError, TimeoutError):
    """Operation did not finish in time (408)."""
    status_code = 408


__all__ = [
    "ServiceError",
    "InputError",
    "MissingValueError",
    "AuthError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "OperationTimeoutError",
]
