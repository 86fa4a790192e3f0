from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from staffapi.service.validation import EmployeeInput
from staffapi.storage.models import Employee


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Envelope(ApiModel):
    """Uniform wrapper for every API response."""

    success: bool
    message: str = ""
    data: Optional[Any] = None
    errors: List[str] = Field(default_factory=list)


class ErrorData(ApiModel):
    correlation_id: str
    timestamp: datetime = Field(default_factory=_utcnow)


class ErrorEnvelope(Envelope):
    """Failure envelope; built fresh for every failed request."""

    success: bool = False
    data: ErrorData


class LoginRequest(ApiModel):
    # Optional so a missing field yields the 400 envelope rather than a schema error
    username: Optional[str] = Field(default=None, max_length=256)
    password: Optional[str] = Field(default=None, max_length=1024)


class LoginResponse(ApiModel):
    token: str
    token_type: str = "Bearer"
    expires_in: int
    username: str
    role: str


class CurrentUserResponse(ApiModel):
    user_id: str
    username: str
    role: str
    is_authenticated: bool = True


class EmployeeRequest(ApiModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    is_active: Optional[bool] = None

    def to_input(self) -> EmployeeInput:
        return EmployeeInput(
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email.strip() if self.email else self.email,
            department=self.department,
            position=self.position,
            phone_number=self.phone_number,
            is_active=self.is_active,
        )


class EmployeeResponse(ApiModel):
    id: UUID
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str] = None
    department: str
    position: str
    created_at: datetime
    updated_at: datetime
    is_active: bool
    full_name: str

    @classmethod
    def from_employee(cls, employee: Employee) -> "EmployeeResponse":
        return cls(
            id=employee.id,
            first_name=employee.first_name,
            last_name=employee.last_name,
            email=employee.email,
            phone_number=employee.phone_number,
            department=employee.department,
            position=employee.position,
            created_at=employee.created_at,
            updated_at=employee.updated_at,
            is_active=employee.is_active,
            full_name=employee.full_name,
        )
