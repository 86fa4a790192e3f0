from __future__ import annotations

from typing import Optional


class ConstraintViolation(Exception):
    """A write would break a storage uniqueness rule (e.g. two employees sharing an email)."""

    def __init__(self, message: str, *, field: str, value: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value


__all__ = ["ConstraintViolation"]
