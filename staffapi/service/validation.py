"""Field rules for employee input.

Each ``validate_*`` function returns the list of violation messages for one
input type; an empty list means the input is acceptable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-'\.]+$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+1-\d{3}-\d{3}-\d{4}$")

MAX_EMAIL_LENGTH = 254

BUSINESS_DOMAINS = frozenset({"techhive.com", "company.com", "business.org", "corp.net"})
BUSINESS_TLDS = (".com", ".org", ".net")

DEPARTMENTS = (
    "Engineering",
    "Human Resources",
    "IT",
    "Marketing",
    "Sales",
    "Finance",
    "Operations",
    "Legal",
    "Customer Service",
    "Research and Development",
    "Quality Assurance",
    "Product Management",
    "Design",
    "Security",
    "Administration",
)
_DEPARTMENTS_LOWER = frozenset(d.lower() for d in DEPARTMENTS)


@dataclass
class EmployeeInput:
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    phone_number: Optional[str] = None
    is_active: Optional[bool] = None


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _check_name(value: Optional[str], label: str) -> List[str]:
    if _blank(value):
        return [f"{label} is required"]
    errors = []
    if not 2 <= len(value) <= 50:
        errors.append(f"{label} must be between 2 and 50 characters")
    if not NAME_PATTERN.match(value):
        errors.append(
            f"{label} can only contain letters, spaces, hyphens, apostrophes, and periods"
        )
    return errors


def is_business_email(email: str) -> bool:
    domain = email.rsplit("@", 1)[-1].lower()
    return domain in BUSINESS_DOMAINS or domain.endswith(BUSINESS_TLDS)


def _check_email(value: Optional[str]) -> List[str]:
    if _blank(value):
        return ["Email is required"]
    errors = []
    if not EMAIL_PATTERN.match(value):
        errors.append("Invalid email format")
    elif not is_business_email(value):
        errors.append("Email must be from a valid business domain")
    if len(value) > MAX_EMAIL_LENGTH:
        errors.append(f"Email cannot exceed {MAX_EMAIL_LENGTH} characters")
    return errors


def _check_phone(value: Optional[str]) -> List[str]:
    if _blank(value):
        return []
    if not PHONE_PATTERN.match(value):
        return ["Phone number must be in format +1-XXX-XXX-XXXX"]
    return []


def _check_department(value: Optional[str]) -> List[str]:
    if _blank(value):
        return ["Department is required"]
    errors = []
    if not 2 <= len(value) <= 100:
        errors.append("Department must be between 2 and 100 characters")
    if value.lower() not in _DEPARTMENTS_LOWER:
        errors.append("Department must be a valid business department")
    return errors


def _check_position(value: Optional[str]) -> List[str]:
    if _blank(value):
        return ["Position is required"]
    if not 2 <= len(value) <= 100:
        return ["Position must be between 2 and 100 characters"]
    return []


def validate_create_employee(data: EmployeeInput) -> List[str]:
    errors: List[str] = []
    errors += _check_name(data.first_name, "First name")
    errors += _check_name(data.last_name, "Last name")
    errors += _check_email(data.email)
    errors += _check_phone(data.phone_number)
    errors += _check_department(data.department)
    errors += _check_position(data.position)
    return errors


def validate_update_employee(data: EmployeeInput) -> List[str]:
    # Updates replace the whole record, so the same field rules apply
    return validate_create_employee(data)
