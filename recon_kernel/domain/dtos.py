"""
Validation DTOs shared by every engine and boundary.

A business-rule failure is a value, not an exception: it carries a
machine-readable code, a human-readable message and the field it belongs
to, so the calling form can render it inline next to the offending input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Contract:
        Carries a machine-readable code, human-readable message, optional field
        path, and optional details dict.

    Guarantees:
        - Immutable (frozen dataclass)
        - code is always present

    Non-goals:
        - Does NOT raise exceptions -- it IS the error representation.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validation.

    Contract:
        Aggregates zero or more ValidationErrors. is_valid is True only when
        there are no errors.

    Guarantees:
        - Immutable (frozen dataclass)
        - errors is always a tuple (never None)
        - bool(result) == result.is_valid for convenience
    """

    is_valid: bool
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        """Create a successful validation result."""
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: ValidationError) -> ValidationResult:
        """Create a failed validation result."""
        return cls(is_valid=False, errors=tuple(errors))

    def __bool__(self) -> bool:
        return self.is_valid
