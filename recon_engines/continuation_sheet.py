"""
recon_engines.continuation_sheet -- G703-style continuation sheet figures.

Responsibility:
    Lay out a payment application as continuation-sheet rows: scheduled
    value, work completed from the previous application, work completed
    this period, materials presently stored, total completed and stored to
    date, percent complete, balance to finish and retainage.  Rendering is
    the caller's job; this module produces the numbers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Builds on
    ``payment_application.compute_line_billing`` for the per-line money.

Invariants enforced:
    - total_completed = previous + this_period + materials_stored.
    - balance_to_finish = scheduled_value - total_completed.
    - retainage = total_completed * retainage_percent / 100.
    - percent_complete is 0 when the scheduled value is 0.
    - Grand totals are straight sums of the row columns; the grand
      percent complete is recomputed from the summed columns.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from recon_engines.budget import RecordId
from recon_engines.payment_application import (
    LineBilling,
    ScheduleOfValuesLine,
    compute_line_billing,
)
from recon_engines.tracer import traced_engine
from recon_kernel.domain.values import coerce_non_negative, parse_percent, quantize_money
from recon_kernel.logging_config import get_logger

logger = get_logger("engines.continuation_sheet")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_PERCENT_PLACES = Decimal("0.1")


@dataclass(frozen=True)
class ContinuationRow:
    """One line of the continuation sheet."""

    line_id: RecordId
    item_no: str
    description_of_work: str
    scheduled_value: Decimal
    from_previous_application: Decimal
    this_period: Decimal
    materials_stored: Decimal
    total_completed: Decimal
    percent_complete: Decimal
    balance_to_finish: Decimal
    retainage: Decimal


@dataclass(frozen=True)
class ContinuationTotals:
    scheduled_value: Decimal
    from_previous_application: Decimal
    this_period: Decimal
    materials_stored: Decimal
    total_completed: Decimal
    percent_complete: Decimal
    balance_to_finish: Decimal
    retainage: Decimal


@dataclass(frozen=True)
class ContinuationSheet:
    rows: tuple[ContinuationRow, ...]
    totals: ContinuationTotals
    retainage_percent: Decimal
    period: str | None = None
    contractor_name: str | None = None


def _percent_complete(completed: Decimal, scheduled: Decimal) -> Decimal:
    if scheduled <= _ZERO:
        return _ZERO
    return (completed / scheduled * _HUNDRED).quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP)


def build_row(
    line: ScheduleOfValuesLine,
    billing: LineBilling,
    retainage_percent: Decimal = _ZERO,
    materials_stored: Any = _ZERO,
) -> ContinuationRow:
    """Continuation-sheet row for one line, given its billing."""
    stored, _ = coerce_non_negative(materials_stored, "materials_stored")
    stored = quantize_money(stored)
    total_completed = billing.previous_amount + billing.this_period_amount + stored
    scheduled = quantize_money(billing.current_scheduled_value)
    return ContinuationRow(
        line_id=line.id,
        item_no=line.item_no or "",
        description_of_work=line.description_of_work or "",
        scheduled_value=scheduled,
        from_previous_application=billing.previous_amount,
        this_period=billing.this_period_amount,
        materials_stored=stored,
        total_completed=total_completed,
        percent_complete=_percent_complete(total_completed, scheduled),
        balance_to_finish=scheduled - total_completed,
        retainage=quantize_money(total_completed * retainage_percent / _HUNDRED),
    )


def _sum_rows(rows: tuple[ContinuationRow, ...]) -> ContinuationTotals:
    def column(name: str) -> Decimal:
        return sum((getattr(r, name) for r in rows), _ZERO)

    scheduled = column("scheduled_value")
    completed = column("total_completed")
    return ContinuationTotals(
        scheduled_value=scheduled,
        from_previous_application=column("from_previous_application"),
        this_period=column("this_period"),
        materials_stored=column("materials_stored"),
        total_completed=completed,
        percent_complete=_percent_complete(completed, scheduled),
        balance_to_finish=column("balance_to_finish"),
        retainage=column("retainage"),
    )


@traced_engine(
    "continuation_sheet", "1.0",
    fingerprint_fields=("lines", "current_percents", "retainage_percent"),
    bind_context=("application_id",),
)
def build_continuation_sheet(
    lines: Iterable[ScheduleOfValuesLine],
    current_percents: Mapping[Any, Any] | None = None,
    retainage_percent: Any = _ZERO,
    materials_stored: Mapping[Any, Any] | None = None,
    period: str | None = None,
    contractor_name: str | None = None,
    application_id: RecordId = None,
) -> ContinuationSheet:
    """
    Build the continuation sheet for an application.

    Args:
        lines: Schedule of values.
        current_percents: Line id -> percent complete to date.  Lines not
            listed are shown at their previously billed percent.
        retainage_percent: Percent withheld from completed work (0-100).
        materials_stored: Line id -> materials presently stored amount.
        period: Application period label, carried through.
        contractor_name: Carried through.
        application_id: Labels the log records of this build.

    Raises:
        ValueError: if ``retainage_percent`` is not a number in [0, 100].
    """
    retainage = parse_percent(retainage_percent)
    if retainage < _ZERO or retainage > _HUNDRED:
        raise ValueError(f"retainage_percent must be within [0, 100], got {retainage}")

    percents = current_percents or {}
    stored = materials_stored or {}

    def lookup(mapping: Mapping[Any, Any], line: ScheduleOfValuesLine, default: Any) -> Any:
        if line.id in mapping:
            return mapping[line.id]
        return mapping.get(str(line.id), default)

    rows: list[ContinuationRow] = []
    for line in sorted(lines, key=lambda ln: ln.display_order):
        billing = compute_line_billing(line, lookup(percents, line, line.previous_percent))
        rows.append(build_row(line, billing, retainage, lookup(stored, line, _ZERO)))

    sheet_rows = tuple(rows)
    totals = _sum_rows(sheet_rows)
    logger.info("continuation_sheet_built", extra={
        "row_count": len(sheet_rows),
        "total_completed": str(totals.total_completed),
        "retainage_percent": str(retainage),
    })
    return ContinuationSheet(
        rows=sheet_rows,
        totals=totals,
        retainage_percent=retainage,
        period=period,
        contractor_name=contractor_name,
    )
