"""
recon_engines.formatting -- Display strings for derived amounts.

Accounting conventions used by every table built on the engines:
a missing value renders as ``-``, a zero amount as ``$-``, and whole
dollars are the default (cents on request).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

_NO_CENTS = Decimal("1")
_CENTS = Decimal("0.01")


def format_currency(amount: Decimal | int | None, show_cents: bool = False) -> str:
    """Format a USD amount: ``$12,500``, ``-$40.25``, ``$-`` for zero."""
    if amount is None:
        return "-"
    value = Decimal(str(amount)) if not isinstance(amount, Decimal) else amount
    if value == 0:
        return "$-"
    quantum = _CENTS if show_cents else _NO_CENTS
    rounded = abs(value).quantize(quantum, rounding=ROUND_HALF_UP)
    body = f"{rounded:,.2f}" if show_cents else f"{rounded:,.0f}"
    sign = "-" if value < 0 else ""
    return f"{sign}${body}"


def format_percent(value: Decimal | int, decimals: int = 1) -> str:
    """Format a percentage with a fixed number of decimals: ``87.5%``."""
    value = Decimal(str(value)) if not isinstance(value, Decimal) else value
    quantum = Decimal(1).scaleb(-decimals)
    return f"{value.quantize(quantum, rounding=ROUND_HALF_UP)}%"
