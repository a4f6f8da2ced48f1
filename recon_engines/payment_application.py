"""
recon_engines.payment_application -- Percent-of-completion billing for
AIA-style payment applications.

Responsibility:
    Convert a proposed percent complete per schedule-of-values line into
    this-period and to-date billed amounts, and gate submission of the
    application on the business rules:

    * each percent lies in [0, 100]                      -> OutOfRangeError
    * no percent falls below the previously billed one   -> RegressionError
    * at least one line advances                         -> NoProgressError

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import recon_kernel and sibling engine modules.  The
    submission boundary (``build_submission_payload``) produces a plain
    dict; sending it to the store is the caller's job.

Invariants enforced:
    - current_scheduled_value = scheduled_value + change_order_amount.
    - this_period_percent = max(0, current_percent - previous_percent).
    - Money amounts are quantized to cents, half-up.
    - from_previous_application is read, never written.
    - Validation failures are returned as structured, line-addressable
      records; nothing is raised for bad input.  Any failure invalidates
      the whole application.

Failure modes:
    - ``build_submission_payload`` raises InvalidSubmissionError when
      handed a failed validation result (a programming error).

Usage:
    from recon_engines.payment_application import (
        ScheduleOfValuesLine,
        validate_application,
    )

    line = ScheduleOfValuesLine(
        id=7, scheduled_value=Decimal("10000"),
        change_order_amount=Decimal("2000"),
        from_previous_application=Decimal("20"),
    )
    result = validate_application([line], {7: Decimal("50")})
    result.totals.total_this_period   # Decimal("3600.00")
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, ClassVar

from recon_engines.budget import AmountLike, RecordId
from recon_engines.formatting import format_percent
from recon_engines.tracer import traced_engine
from recon_kernel.domain.dtos import ValidationError, ValidationResult
from recon_kernel.domain.values import (
    coerce_int,
    coerce_non_negative,
    parse_amount,
    parse_percent,
    quantize_money,
)
from recon_kernel.exceptions import InvalidSubmissionError
from recon_kernel.logging_config import get_logger

logger = get_logger("engines.payment_application")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


# ============================================================================
# Schedule of values
# ============================================================================


@dataclass(frozen=True)
class ScheduleOfValuesLine:
    """One billable line item of a contract."""

    id: RecordId
    contract_id: RecordId = None
    scheduled_value: AmountLike = _ZERO
    change_order_amount: AmountLike = _ZERO
    from_previous_application: AmountLike = _ZERO
    display_order: int = 0
    item_no: str | None = None
    description_of_work: str | None = None

    @property
    def current_scheduled_value(self) -> Decimal:
        """Original scheduled value plus approved change orders."""
        scheduled, _ = coerce_non_negative(self.scheduled_value, "scheduled_value")
        try:
            change_orders = parse_amount(self.change_order_amount)
        except ValueError:
            change_orders = _ZERO
        return scheduled + change_orders

    @property
    def previous_percent(self) -> Decimal:
        """Percent complete billed in the prior approved application."""
        try:
            return parse_percent(self.from_previous_application)
        except ValueError:
            return _ZERO

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> ScheduleOfValuesLine:
        """Build from a store row using the persisted field names."""
        item_no = record.get("item_no")
        return cls(
            id=record.get("id"),
            contract_id=record.get("contract_id"),
            scheduled_value=record.get("scheduled_value"),
            change_order_amount=record.get("change_order_amount"),
            from_previous_application=record.get("from_previous_application"),
            display_order=coerce_int(record.get("display_order")),
            item_no=str(item_no) if item_no is not None else None,
            description_of_work=record.get("description_of_work"),
        )


# ============================================================================
# Validation errors (data, not exceptions)
# ============================================================================


@dataclass(frozen=True)
class ApplicationValidationError:
    """Base record for a payment application rule violation."""

    code: ClassVar[str] = "APPLICATION_INVALID"

    message: str
    line_id: RecordId = None
    field: str | None = "current_percent"
    details: dict[str, Any] | None = None

    def to_validation_error(self) -> ValidationError:
        target = self.field if self.line_id is None else f"{self.field}[{self.line_id}]"
        details = dict(self.details or {})
        if self.line_id is not None:
            details["line_id"] = self.line_id
        return ValidationError(
            code=self.code, message=self.message, field=target, details=details or None,
        )


@dataclass(frozen=True)
class OutOfRangeError(ApplicationValidationError):
    """A percent complete outside [0, 100] or not a number."""

    code: ClassVar[str] = "OUT_OF_RANGE"


@dataclass(frozen=True)
class RegressionError(ApplicationValidationError):
    """A percent complete below the previously billed percent."""

    code: ClassVar[str] = "REGRESSION"


@dataclass(frozen=True)
class NoProgressError(ApplicationValidationError):
    """No line advances past its previously billed percent."""

    code: ClassVar[str] = "NO_PROGRESS"


@dataclass(frozen=True)
class UnknownLineError(ApplicationValidationError):
    """A proposed percent references a line that is not on the schedule."""

    code: ClassVar[str] = "UNKNOWN_LINE"


@dataclass(frozen=True)
class ContractMismatchError(ApplicationValidationError):
    """The schedule lines belong to more than one contract."""

    code: ClassVar[str] = "CONTRACT_MISMATCH"


NO_PROGRESS_MESSAGE = "At least one line item must have progress from the previous period."


# ============================================================================
# Results
# ============================================================================


@dataclass(frozen=True)
class LineBilling:
    """Billing arithmetic for one line at a proposed percent complete."""

    line_id: RecordId
    display_order: int
    current_scheduled_value: Decimal
    previous_percent: Decimal
    current_percent: Decimal
    this_period_percent: Decimal
    previous_amount: Decimal
    this_period_amount: Decimal
    paid_to_date_amount: Decimal
    error: ApplicationValidationError | None = None

    @property
    def has_progress(self) -> bool:
        return self.current_percent > self.previous_percent

    @property
    def is_valid(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ApplicationTotals:
    """Straight sums of the per-line billing amounts."""

    line_count: int
    total_scheduled_value: Decimal
    total_previous_amount: Decimal
    total_current_amount: Decimal  # paid to date if this application is approved
    total_this_period: Decimal  # requested now


@dataclass(frozen=True)
class ApplicationValidationResult:
    """
    Outcome of validating a proposed payment application.

    ``billings`` and ``totals`` are always populated so the form can keep
    showing numbers while errors are displayed; only ``is_valid`` gates
    submission.
    """

    is_valid: bool
    billings: tuple[LineBilling, ...]
    totals: ApplicationTotals
    errors: tuple[ApplicationValidationError, ...] = field(default_factory=tuple)

    @property
    def errors_by_line(self) -> dict[RecordId, str]:
        """Line id -> message, for inline display on the offending rows."""
        return {e.line_id: e.message for e in self.errors if e.line_id is not None}

    @property
    def application_errors(self) -> tuple[ApplicationValidationError, ...]:
        """Errors that belong to the application as a whole (banner)."""
        return tuple(e for e in self.errors if e.line_id is None)

    def as_validation_result(self) -> ValidationResult:
        if self.is_valid:
            return ValidationResult.success()
        return ValidationResult.failure(*(e.to_validation_error() for e in self.errors))

    def __bool__(self) -> bool:
        return self.is_valid


# ============================================================================
# Per-line arithmetic
# ============================================================================


def _check_percent(
    line_id: RecordId, current: Decimal, previous: Decimal,
) -> ApplicationValidationError | None:
    if current < _ZERO or current > _HUNDRED:
        return OutOfRangeError(
            message="Must be between 0-100%",
            line_id=line_id,
            details={"current_percent": str(current)},
        )
    if current < previous:
        return RegressionError(
            message=f"Cannot be less than previous {format_percent(previous)}",
            line_id=line_id,
            details={"current_percent": str(current), "previous_percent": str(previous)},
        )
    return None


@traced_engine(
    "payment_application", "1.0", fingerprint_fields=("line", "current_percent"),
)
def compute_line_billing(line: ScheduleOfValuesLine, current_percent: Any) -> LineBilling:
    """
    Billing amounts for one line at a proposed percent complete.

    Out-of-range input is never clamped: the arithmetic is done on the
    value given and ``LineBilling.error`` carries the violation, so an
    under-billing relative to a prior approved period surfaces to the
    preparer instead of being hidden.

    A percent that is not a number is reported as OutOfRangeError and
    billed as "no progress" (the previous percent).
    """
    scheduled = line.current_scheduled_value
    previous = line.previous_percent

    try:
        current = parse_percent(current_percent)
        error = _check_percent(line.id, current, previous)
    except ValueError:
        current = previous
        error = OutOfRangeError(
            message="Must be between 0-100%",
            line_id=line.id,
            details={"current_percent": str(current_percent)},
        )

    this_period_percent = max(_ZERO, current - previous)
    return LineBilling(
        line_id=line.id,
        display_order=line.display_order,
        current_scheduled_value=scheduled,
        previous_percent=previous,
        current_percent=current,
        this_period_percent=this_period_percent,
        previous_amount=quantize_money(scheduled * previous / _HUNDRED),
        this_period_amount=quantize_money(scheduled * this_period_percent / _HUNDRED),
        paid_to_date_amount=quantize_money(scheduled * current / _HUNDRED),
        error=error,
    )


def initial_percents(lines: Iterable[ScheduleOfValuesLine]) -> dict[RecordId, Decimal]:
    """Starting values for the preparer's form: each line at its previous percent."""
    return {line.id: line.previous_percent for line in lines}


def _proposed_for(line: ScheduleOfValuesLine, proposed: Mapping[Any, Any]) -> Any:
    # Form inputs often key by string ids; store rows by int ids.
    if line.id in proposed:
        return proposed[line.id]
    if str(line.id) in proposed:
        return proposed[str(line.id)]
    return line.previous_percent


def _ordered(lines: Iterable[ScheduleOfValuesLine]) -> list[ScheduleOfValuesLine]:
    return sorted(lines, key=lambda ln: ln.display_order)


def _sum_billings(billings: Iterable[LineBilling]) -> ApplicationTotals:
    rows = tuple(billings)
    return ApplicationTotals(
        line_count=len(rows),
        total_scheduled_value=sum((b.current_scheduled_value for b in rows), _ZERO),
        total_previous_amount=sum((b.previous_amount for b in rows), _ZERO),
        total_current_amount=sum((b.paid_to_date_amount for b in rows), _ZERO),
        total_this_period=sum((b.this_period_amount for b in rows), _ZERO),
    )


# ============================================================================
# Application-level operations
# ============================================================================


@traced_engine(
    "payment_application", "1.0",
    fingerprint_fields=("lines", "proposed_percents"),
    bind_context=("application_id",),
)
def compute_application_totals(
    lines: Iterable[ScheduleOfValuesLine],
    proposed_percents: Mapping[Any, Any],
    application_id: RecordId = None,
) -> ApplicationTotals:
    """
    Totals of the per-line billing amounts.

    ``total_current_amount`` is what will have been paid to date once this
    application is approved; ``total_this_period`` is what is requested now.
    Lines missing from ``proposed_percents`` stay at their previous percent.
    """
    billings = [
        compute_line_billing(line, _proposed_for(line, proposed_percents))
        for line in _ordered(lines)
    ]
    return _sum_billings(billings)


@traced_engine(
    "payment_application", "1.0",
    fingerprint_fields=("lines", "proposed_percents"),
    summarize=lambda r: {"is_valid": r.is_valid, "error_count": len(r.errors)},
    bind_context=("application_id",),
)
def validate_application(
    lines: Iterable[ScheduleOfValuesLine],
    proposed_percents: Mapping[Any, Any],
    require_progress: bool = True,
    application_id: RecordId = None,
) -> ApplicationValidationResult:
    """
    Validate a proposed payment application.

    ``application_id`` is not validated; it labels every log record of
    this validation, the per-line billing traces included.

    Preconditions:
        None -- any input yields a result.

    Postconditions:
        - One error at most per line: OutOfRangeError takes precedence
          over RegressionError.
        - NoProgressError when no line's proposed percent exceeds its
          previous percent (and ``require_progress`` is set).
        - UnknownLineError for each proposed id not on the schedule.
        - ContractMismatchError when lines span several contracts.
        - is_valid is True only when there are no errors at all.
    """
    ordered = _ordered(lines)
    logger.info("application_validation_started", extra={
        "line_count": len(ordered),
        "proposed_count": len(proposed_percents),
    })

    billings = tuple(
        compute_line_billing(line, _proposed_for(line, proposed_percents))
        for line in ordered
    )
    errors: list[ApplicationValidationError] = [b.error for b in billings if b.error is not None]

    known_ids = {line.id for line in ordered} | {str(line.id) for line in ordered}
    for proposed_id in proposed_percents:
        if proposed_id not in known_ids:
            errors.append(UnknownLineError(
                message=f"Line item {proposed_id} not found",
                line_id=proposed_id,
            ))

    contract_ids = {line.contract_id for line in ordered if line.contract_id is not None}
    if len(contract_ids) > 1:
        errors.append(ContractMismatchError(
            message="Line items belong to more than one contract",
            field=None,
            details={"contract_ids": sorted(str(c) for c in contract_ids)},
        ))

    if require_progress and not any(b.has_progress for b in billings):
        errors.append(NoProgressError(message=NO_PROGRESS_MESSAGE, field=None))

    totals = _sum_billings(billings)
    is_valid = not errors

    if is_valid:
        logger.info("application_validation_passed", extra={
            "line_count": totals.line_count,
            "total_this_period": str(totals.total_this_period),
            "total_current_amount": str(totals.total_current_amount),
        })
    else:
        logger.info("application_validation_failed", extra={
            "error_count": len(errors),
            "error_codes": sorted({e.code for e in errors}),
        })

    return ApplicationValidationResult(
        is_valid=is_valid,
        billings=billings,
        totals=totals,
        errors=tuple(errors),
    )


def build_submission_payload(
    result: ApplicationValidationResult,
    notes: str | None = None,
) -> dict[str, Any]:
    """
    Record for the store's new payment application, built only from a
    successful validation.

    Raises:
        InvalidSubmissionError: if ``result`` is not valid.
    """
    if not result.is_valid:
        logger.error("submission_payload_rejected", extra={
            "error_count": len(result.errors),
        })
        raise InvalidSubmissionError(
            error_count=len(result.errors),
            error_codes=tuple(sorted({e.code for e in result.errors})),
        )

    totals = result.totals
    cleaned_notes = notes.strip() if notes else None
    return {
        "total_contract_amount": totals.total_scheduled_value,
        "current_payment": totals.total_this_period,
        "total_previous_amount": totals.total_previous_amount,
        "total_current_amount": totals.total_current_amount,
        "pm_notes": cleaned_notes or None,
        "line_items": [
            {
                "line_item_id": b.line_id,
                "submitted_percent": b.current_percent,
                "previous_percent": b.previous_percent,
                "this_period_percent": b.this_period_percent,
                "calculated_amount": b.this_period_amount,
            }
            for b in result.billings
        ],
    }
