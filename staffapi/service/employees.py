from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

from staffapi.logging import get_logger
from staffapi.service.errors import NotFoundError
from staffapi.service.validation import (
    EmployeeInput,
    validate_create_employee,
    validate_update_employee,
)
from staffapi.storage.errors import ConstraintViolation
from staffapi.storage.memory import MemoryStore
from staffapi.storage.models import Employee

logger = get_logger(__name__)

T = TypeVar("T")

_EMPTY_ID = uuid.UUID(int=0)


class FailureKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNEXPECTED = "unexpected"


@dataclass
class ServiceResult(Generic[T]):
    """Outcome of a business operation: either data or a typed failure."""

    ok: bool
    message: str
    data: Optional[T] = None
    errors: List[str] = field(default_factory=list)
    failure: Optional[FailureKind] = None

    @classmethod
    def success(cls, data: T, message: str) -> "ServiceResult[T]":
        return cls(ok=True, message=message, data=data)

    @classmethod
    def fail(
        cls, kind: FailureKind, message: str, errors: Optional[List[str]] = None
    ) -> "ServiceResult[Any]":
        return cls(ok=False, message=message, errors=list(errors or []), failure=kind)


class EmployeeService:
    """Employee use cases on top of the repository.

    Business failures come back as ``ServiceResult`` values; only faults the
    service cannot classify are left for the HTTP exception boundary.
    """

    def __init__(self, store: MemoryStore) -> None:
        self.store = store
        self.logger = logger

    def list_employees(self) -> ServiceResult[List[Employee]]:
        employees = self.store.list_employees()
        self.logger.info("employees_listed", count=len(employees))
        return ServiceResult.success(
            employees, f"Retrieved {len(employees)} employees successfully"
        )

    def get_employee(self, employee_id: uuid.UUID) -> ServiceResult[Employee]:
        if employee_id == _EMPTY_ID:
            return ServiceResult.fail(
                FailureKind.INVALID_INPUT, "Invalid employee ID", ["Employee ID cannot be empty"]
            )
        employee = self.store.get_employee(employee_id)
        if employee is None:
            self.logger.warning("employee_not_found", employee_id=str(employee_id))
            return ServiceResult.fail(FailureKind.NOT_FOUND, "Employee not found")
        return ServiceResult.success(employee, "Employee retrieved successfully")

    def create_employee(self, data: EmployeeInput) -> ServiceResult[Employee]:
        violations = validate_create_employee(data)
        if violations:
            return ServiceResult.fail(FailureKind.INVALID_INPUT, "Validation failed", violations)
        if self.store.get_employee_by_email(data.email) is not None:
            self.logger.warning("employee_duplicate_email")
            return ServiceResult.fail(
                FailureKind.CONFLICT,
                "Employee creation failed",
                ["An employee with this email already exists"],
            )
        try:
            employee = self.store.create_employee(
                first_name=data.first_name,
                last_name=data.last_name,
                email=data.email,
                department=data.department,
                position=data.position,
                phone_number=data.phone_number or None,
            )
        except ConstraintViolation as exc:
            # Lost a race with a concurrent create using the same email
            return ServiceResult.fail(
                FailureKind.CONFLICT, "Employee creation failed", [exc.message]
            )
        return ServiceResult.success(employee, "Employee created successfully")

    def update_employee(
        self, employee_id: uuid.UUID, data: EmployeeInput
    ) -> ServiceResult[Employee]:
        if employee_id == _EMPTY_ID:
            return ServiceResult.fail(
                FailureKind.INVALID_INPUT, "Invalid employee ID", ["Employee ID cannot be empty"]
            )
        violations = validate_update_employee(data)
        if violations:
            return ServiceResult.fail(FailureKind.INVALID_INPUT, "Validation failed", violations)
        existing = self.store.get_employee(employee_id)
        if existing is None:
            self.logger.warning("employee_update_missing", employee_id=str(employee_id))
            return ServiceResult.fail(FailureKind.NOT_FOUND, "Employee not found")
        if existing.email.lower() != data.email.lower():
            other = self.store.get_employee_by_email(data.email)
            if other is not None and other.id != employee_id:
                return ServiceResult.fail(
                    FailureKind.CONFLICT,
                    "Employee update failed",
                    ["Another employee with this email already exists"],
                )
        try:
            employee = self.store.update_employee(
                employee_id,
                first_name=data.first_name,
                last_name=data.last_name,
                email=data.email,
                department=data.department,
                position=data.position,
                phone_number=data.phone_number or None,
                is_active=data.is_active,
            )
        except NotFoundError:
            return ServiceResult.fail(FailureKind.NOT_FOUND, "Employee not found")
        except ConstraintViolation as exc:
            return ServiceResult.fail(FailureKind.CONFLICT, "Employee update failed", [exc.message])
        return ServiceResult.success(employee, "Employee updated successfully")

    def delete_employee(self, employee_id: uuid.UUID) -> ServiceResult[bool]:
        if employee_id == _EMPTY_ID:
            return ServiceResult.fail(
                FailureKind.INVALID_INPUT, "Invalid employee ID", ["Employee ID cannot be empty"]
            )
        if not self.store.exists(employee_id):
            self.logger.warning("employee_delete_missing", employee_id=str(employee_id))
            return ServiceResult.fail(FailureKind.NOT_FOUND, "Employee not found")
        if not self.store.delete_employee(employee_id):
            # Removed by a concurrent request between the check and the delete
            return ServiceResult.fail(FailureKind.NOT_FOUND, "Employee not found")
        return ServiceResult.success(True, "Employee deleted successfully")
