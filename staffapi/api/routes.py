from __future__ import annotations

from typing import Any, Callable, List
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from staffapi.api.error_handling import error_response
from staffapi.api.pipeline import client_address
from staffapi.api.schemas import (
    CurrentUserResponse,
    EmployeeRequest,
    EmployeeResponse,
    Envelope,
    ErrorEnvelope,
    LoginRequest,
    LoginResponse,
)
from staffapi.logging import get_logger
from staffapi.service.auth import Identity, LoginFailure, LoginFailureReason
from staffapi.service.employees import FailureKind, ServiceResult
from staffapi.service.errors import AuthError, AuthorizationError
from staffapi.service.runtime import Runtime

logger = get_logger(__name__)

ADMIN_ROLE = "Administrator"

_FAILURE_STATUS = {
    FailureKind.INVALID_INPUT: 400,
    FailureKind.NOT_FOUND: 404,
    FailureKind.CONFLICT: 409,
    FailureKind.UNEXPECTED: 500,
}

_ERROR_RESPONSES = {
    401: {"model": ErrorEnvelope, "description": "Missing or invalid bearer token"},
}

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])
employees_router = APIRouter(prefix="/api/users", tags=["users"], responses=_ERROR_RESPONSES)


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_identity(request: Request) -> Identity:
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise AuthError("authentication required")
    return identity


def require_role(role: str) -> Callable[..., Identity]:
    def _dependency(identity: Identity = Depends(get_identity)) -> Identity:
        if identity.role != role:
            logger.warning(
                "role_check_failed",
                user=identity.username,
                role=identity.role,
                required_role=role,
            )
            raise AuthorizationError(f"{role} role required")
        return identity

    return _dependency


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "")


def _ok(data: Any, message: str, status_code: int = 200) -> JSONResponse:
    envelope = Envelope(success=True, message=message, data=data)
    return JSONResponse(status_code=status_code, content=envelope.to_wire())


def _failure(request: Request, result: ServiceResult[Any]) -> JSONResponse:
    status_code = _FAILURE_STATUS.get(result.failure, 500)
    return error_response(status_code, result.message, result.errors, _correlation_id(request))


# ---------------------------------------------------------------------------
# auth


@auth_router.post("/login", response_model=Envelope)
async def login(
    body: LoginRequest, request: Request, runtime: Runtime = Depends(get_runtime)
):
    """Exchange demo credentials for a bearer token."""
    outcome = runtime.issuer.issue(
        body.username or "",
        body.password or "",
        client_address=client_address(request),
        correlation_id=_correlation_id(request),
    )
    if isinstance(outcome, LoginFailure):
        if outcome.reason is LoginFailureReason.MISSING_CREDENTIALS:
            return error_response(
                400, "Username and password are required", [], _correlation_id(request)
            )
        # Unknown user and wrong password are indistinguishable to the caller
        return error_response(
            401, "Invalid username or password", [], _correlation_id(request)
        )
    data = LoginResponse(
        token=outcome.token,
        token_type=outcome.token_type,
        expires_in=outcome.expires_in,
        username=outcome.username,
        role=outcome.role,
    )
    return _ok(data.to_wire(), "Login successful")


@auth_router.get("/me", response_model=Envelope, responses=_ERROR_RESPONSES)
async def current_user(identity: Identity = Depends(get_identity)):
    data = CurrentUserResponse(
        user_id=identity.subject_id,
        username=identity.username,
        role=identity.role,
    )
    return _ok(data.to_wire(), "User information retrieved successfully")


# ---------------------------------------------------------------------------
# employees


def _employee_data(employee) -> dict:
    return EmployeeResponse.from_employee(employee).to_wire()


@employees_router.get("", response_model=Envelope)
async def list_employees(request: Request, runtime: Runtime = Depends(get_runtime)):
    result = runtime.employees.list_employees()
    if not result.ok:
        return _failure(request, result)
    data: List[dict] = [_employee_data(e) for e in result.data or []]
    return _ok(data, result.message)


@employees_router.get("/{employee_id}", response_model=Envelope)
async def get_employee(
    employee_id: UUID, request: Request, runtime: Runtime = Depends(get_runtime)
):
    result = runtime.employees.get_employee(employee_id)
    if not result.ok:
        return _failure(request, result)
    return _ok(_employee_data(result.data), result.message)


@employees_router.post("", response_model=Envelope, status_code=201)
async def create_employee(
    body: EmployeeRequest,
    request: Request,
    runtime: Runtime = Depends(get_runtime),
    identity: Identity = Depends(get_identity),
):
    result = runtime.employees.create_employee(body.to_input())
    if not result.ok:
        return _failure(request, result)
    logger.info("employee_created", employee_id=str(result.data.id), user=identity.username)
    response = _ok(_employee_data(result.data), result.message, status_code=201)
    response.headers["Location"] = f"/api/users/{result.data.id}"
    return response


@employees_router.put("/{employee_id}", response_model=Envelope)
async def update_employee(
    employee_id: UUID,
    body: EmployeeRequest,
    request: Request,
    runtime: Runtime = Depends(get_runtime),
    identity: Identity = Depends(get_identity),
):
    result = runtime.employees.update_employee(employee_id, body.to_input())
    if not result.ok:
        return _failure(request, result)
    logger.info("employee_updated", employee_id=str(employee_id), user=identity.username)
    return _ok(_employee_data(result.data), result.message)


@employees_router.delete("/{employee_id}", response_model=Envelope)
async def delete_employee(
    employee_id: UUID,
    request: Request,
    runtime: Runtime = Depends(get_runtime),
    identity: Identity = Depends(require_role(ADMIN_ROLE)),
):
    result = runtime.employees.delete_employee(employee_id)
    if not result.ok:
        return _failure(request, result)
    logger.info("employee_deleted", employee_id=str(employee_id), user=identity.username)
    return _ok(True, result.message)
