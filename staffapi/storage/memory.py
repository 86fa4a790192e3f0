from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from staffapi.logging import get_logger
from staffapi.service.errors import InputError, NotFoundError
from staffapi.storage.errors import ConstraintViolation
from staffapi.storage.models import Employee

_EMPTY_ID = uuid.UUID(int=0)

SAMPLE_EMPLOYEES = (
    {
        "first_name": "John",
        "last_name": "Doe",
        "email": "john.doe@techhive.com",
        "phone_number": "+1-555-555-0101",
        "department": "Engineering",
        "position": "Senior Software Engineer",
    },
    {
        "first_name": "Jane",
        "last_name": "Smith",
        "email": "jane.smith@techhive.com",
        "phone_number": "+1-555-555-0102",
        "department": "Human Resources",
        "position": "HR Manager",
    },
    {
        "first_name": "Mike",
        "last_name": "Johnson",
        "email": "mike.johnson@techhive.com",
        "phone_number": "+1-555-555-0103",
        "department": "IT",
        "position": "System Administrator",
    },
)


class MemoryStore:
    """Thread-safe in-memory employee repository.

    Records are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, *, seed: bool = True) -> None:
        self.logger = get_logger(__name__)
        self.employees: Dict[uuid.UUID, Employee] = {}
        # RLock so helpers can be called while a public method holds the lock
        self._data_lock = threading.RLock()
        if seed:
            self._seed()

    def _seed(self) -> None:
        for record in SAMPLE_EMPLOYEES:
            employee = Employee(**record)
            self.employees[employee.id] = employee
        self.logger.info("memory_store_seeded", count=len(SAMPLE_EMPLOYEES))

    @staticmethod
    def _check_id(employee_id: uuid.UUID) -> None:
        if employee_id == _EMPTY_ID:
            raise InputError("Employee ID cannot be empty")

    def _find_by_email(self, email: str) -> Optional[Employee]:
        needle = email.strip().lower()
        for employee in self.employees.values():
            if employee.email.lower() == needle:
                return employee
        return None

    def list_employees(self, *, include_inactive: bool = False) -> List[Employee]:
        with self._data_lock:
            employees = [
                e.copy() for e in self.employees.values() if include_inactive or e.is_active
            ]
        employees.sort(key=lambda e: e.created_at)
        return employees

    def get_employee(self, employee_id: uuid.UUID) -> Optional[Employee]:
        self._check_id(employee_id)
        with self._data_lock:
            employee = self.employees.get(employee_id)
            return employee.copy() if employee else None

    def get_employee_by_email(self, email: str) -> Optional[Employee]:
        if not email or not email.strip():
            raise InputError("Email cannot be null or empty")
        with self._data_lock:
            employee = self._find_by_email(email)
            return employee.copy() if employee else None

    def create_employee(
        self,
        first_name: str,
        last_name: str,
        email: str,
        department: str,
        position: str,
        phone_number: Optional[str] = None,
    ) -> Employee:
        employee = Employee(
            first_name=first_name,
            last_name=last_name,
            email=email,
            department=department,
            position=position,
            phone_number=phone_number,
        )
        with self._data_lock:
            if self._find_by_email(email):
                raise ConstraintViolation(
                    f"An employee with email '{email}' already exists",
                    field="email",
                    value=email,
                )
            self.employees[employee.id] = employee
        self.logger.info("employee_created", employee_id=str(employee.id))
        return employee.copy()

    def update_employee(
        self,
        employee_id: uuid.UUID,
        *,
        first_name: str,
        last_name: str,
        email: str,
        department: str,
        position: str,
        phone_number: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Employee:
        self._check_id(employee_id)
        with self._data_lock:
            current = self.employees.get(employee_id)
            if current is None:
                raise NotFoundError(f"Employee with ID '{employee_id}' not found")
            clash = self._find_by_email(email)
            if clash is not None and clash.id != employee_id:
                raise ConstraintViolation(
                    f"Another employee with email '{email}' already exists",
                    field="email",
                    value=email,
                )
            updated = current.copy()
            updated.first_name = first_name
            updated.last_name = last_name
            updated.email = email
            updated.department = department
            updated.position = position
            updated.phone_number = phone_number
            if is_active is not None:
                updated.is_active = is_active
            updated.updated_at = datetime.now(timezone.utc)
            self.employees[employee_id] = updated
        self.logger.info("employee_updated", employee_id=str(employee_id))
        return updated.copy()

    def delete_employee(self, employee_id: uuid.UUID) -> bool:
        self._check_id(employee_id)
        with self._data_lock:
            removed = self.employees.pop(employee_id, None)
        if removed is None:
            self.logger.warning("employee_delete_missing", employee_id=str(employee_id))
            return False
        self.logger.info("employee_deleted", employee_id=str(employee_id))
        return True

    def exists(self, employee_id: uuid.UUID) -> bool:
        if employee_id == _EMPTY_ID:
            return False
        with self._data_lock:
            return employee_id in self.employees

    def count(self) -> int:
        with self._data_lock:
            return len(self.employees)
