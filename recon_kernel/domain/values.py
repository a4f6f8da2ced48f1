"""
Values -- Decimal coercion at the engine boundary.

Responsibility:
    Turns whatever a form, a store row or a pasted spreadsheet cell hands
    us into a Decimal.  Monetary inputs are clamped to non-negative values
    and every clamp is reported as a ``NonNegativeViolation`` record rather
    than silently absorbed.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by the engines and the ingestion mapper.

Invariants enforced:
    - Decimal-only arithmetic: floats are converted through ``str`` so
      ``0.1`` becomes ``Decimal("0.1")``, never its binary expansion.
    - Non-finite values (NaN, Infinity) are never returned.
    - Magnitudes are bounded (amounts below 10^15, percents below 10^6) so
      every product quantized to cents fits the default 28-digit context.

Failure modes:
    - ``parse_amount`` / ``parse_percent`` raise ValueError on text that is
      not a number or lies beyond those bounds.  ``coerce_non_negative``
      converts that into a violation record and a zero amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_TWO_PLACES = Decimal("0.01")
_ZERO = Decimal("0")

_AMOUNT_LIMIT = Decimal("1e15")
_PERCENT_LIMIT = Decimal("1e6")

# Spreadsheet placeholders for "nothing here"
_EMPTY_MARKERS = frozenset({"", "-", "—", "–"})


@dataclass(frozen=True)
class NonNegativeViolation:
    """
    A monetary input that would have been negative (or unreadable) and was
    clamped to zero at the boundary.

    UI numeric inputs transiently produce such values while the user is
    typing, so they are recorded, not rejected.
    """

    field: str
    raw_value: str
    coerced_to: Decimal
    reason: str = "negative"  # "negative" | "unparseable"

    code: str = "NON_NEGATIVE_VIOLATION"

    @property
    def message(self) -> str:
        if self.reason == "unparseable":
            return f"{self.field}: '{self.raw_value}' is not an amount; using {self.coerced_to}"
        return f"{self.field}: {self.raw_value} cannot be negative; using {self.coerced_to}"


def _to_decimal(value: Any, limit: Decimal = _AMOUNT_LIMIT) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"Invalid number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid number: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Invalid number: {value!r}")
    if abs(result) >= limit:
        raise ValueError(f"Number out of range: {value!r}")
    return result


def parse_amount(value: Any) -> Decimal:
    """
    Parse a monetary value.

    Accepts Decimal, int, float and text such as ``"$1,250.00"``,
    ``" 300 "`` or the accounting form ``"(1,200)"`` for a negative.
    ``None`` and spreadsheet placeholders (blank, "-", em dash) are zero.

    Raises:
        ValueError: if the text is not a number or is out of range.
    """
    if value is None:
        return _ZERO
    if not isinstance(value, str):
        return _to_decimal(value)

    text = value.strip()
    if text in _EMPTY_MARKERS:
        return _ZERO
    negative = text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1].strip()
    text = text.replace("$", "").replace(",", "").replace(" ", "")
    if text in _EMPTY_MARKERS:
        return _ZERO
    amount = _to_decimal(text)
    return -amount if negative else amount


def parse_percent(value: Any) -> Decimal:
    """
    Parse a percent-complete value (``50``, ``"50"``, ``"50%"``, ``"12.5 %"``).

    ``None`` and blank text are zero.  No range check happens here; range
    rules belong to the caller.

    Raises:
        ValueError: if the text is not a number or is out of range.
    """
    if value is None:
        return _ZERO
    if isinstance(value, str):
        text = value.strip().rstrip("%").strip()
        if not text:
            return _ZERO
        return _to_decimal(text, _PERCENT_LIMIT)
    return _to_decimal(value, _PERCENT_LIMIT)


def coerce_non_negative(
    value: Any, field: str
) -> tuple[Decimal, NonNegativeViolation | None]:
    """
    Coerce a monetary input to a non-negative Decimal.

    Postconditions:
        - Returned amount is always >= 0.
        - A violation record is returned whenever the input was negative
          or unreadable; ``None`` otherwise.
    """
    try:
        amount = parse_amount(value)
    except ValueError:
        return _ZERO, NonNegativeViolation(
            field=field, raw_value=str(value), coerced_to=_ZERO, reason="unparseable",
        )
    if amount < _ZERO:
        return _ZERO, NonNegativeViolation(
            field=field, raw_value=str(amount), coerced_to=_ZERO, reason="negative",
        )
    return amount, None


def quantize_money(amount: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return amount.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def coerce_int(value: Any, default: int = 0) -> int:
    """
    Whole number from a store column such as ``display_order``.

    Fractions truncate toward zero; anything that is not a number gives
    ``default``.
    """
    try:
        return int(parse_amount(value))
    except ValueError:
        return default
