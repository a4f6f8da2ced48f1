"""Pure domain primitives: validation DTOs and value coercion. Zero I/O."""

from recon_kernel.domain.dtos import ValidationError, ValidationResult
from recon_kernel.domain.values import (
    NonNegativeViolation,
    coerce_non_negative,
    parse_amount,
    parse_percent,
    quantize_money,
)

__all__ = [
    "NonNegativeViolation",
    "ValidationError",
    "ValidationResult",
    "coerce_non_negative",
    "parse_amount",
    "parse_percent",
    "quantize_money",
]
