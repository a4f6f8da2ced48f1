"""
Typed exception hierarchy for the reconciliation kernel.

Business-rule outcomes (out-of-range percentages, regressions, missing
progress, clamped amounts) are NOT exceptions: engines return them as
structured data so a form can attribute each one to the input that
caused it.  The classes below are for programming and wiring errors only:
a caller handing the engine something it can never accept.

Every exception carries a machine-readable ``code`` and its structured
fields as attributes, so logs and API layers never parse messages.

    ReconKernelError (base)
    |
    +-- InvalidSubmissionError     INVALID_SUBMISSION
    +-- UnknownEngineError         UNKNOWN_ENGINE
    +-- UnknownFieldError          UNKNOWN_FIELD
    +-- ConfigurationError         CONFIGURATION_ERROR
"""

from __future__ import annotations

from typing import Any


class ReconKernelError(Exception):
    """Base exception for all reconciliation kernel errors."""

    code: str = "RECON_KERNEL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidSubmissionError(ReconKernelError):
    """A payment application payload was requested from a failed validation."""

    code: str = "INVALID_SUBMISSION"

    def __init__(self, error_count: int, error_codes: tuple[str, ...] = ()):
        self.error_count = error_count
        self.error_codes = error_codes
        super().__init__(
            f"Cannot build a submission from an invalid application "
            f"({error_count} validation error(s): {', '.join(error_codes) or 'none'})"
        )


class UnknownEngineError(ReconKernelError):
    """An engine name has no registered contract."""

    code: str = "UNKNOWN_ENGINE"

    def __init__(self, engine_name: str):
        self.engine_name = engine_name
        super().__init__(f"No engine contract registered for '{engine_name}'")


class UnknownFieldError(ReconKernelError):
    """A record referenced a field the engine does not know."""

    code: str = "UNKNOWN_FIELD"

    def __init__(self, field_name: str, allowed: tuple[str, ...]):
        self.field_name = field_name
        self.allowed = allowed
        super().__init__(
            f"Unknown field '{field_name}'; expected one of {', '.join(allowed)}"
        )


class ConfigurationError(ReconKernelError):
    """Configuration could not be translated into engine parameters."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.details = details or {}
        super().__init__(message)
