"""
recon_engines.budget -- Budget line derivation, committed-cost reconciliation
and project roll-up.

Responsibility:
    Turn the raw monetary fields of a budget line into its complete view:
    base budget, remaining balance, percent spent and health status.  Roll
    many lines up into project totals, and reconcile a line's committed
    costs against the contracts linked to it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import recon_kernel (domain values, DTOs, logging) and
    sibling engine modules.  Every table, dashboard and import path uses
    ``derive_budget_line``; no call site recomputes these fields itself.

Invariants enforced:
    - base_budget = revised_amount if revised_amount > 0 else original_amount.
    - remaining_amount + actual_spend + committed_costs == base_budget
      (exact, Decimal arithmetic).
    - percent_spent is 0 whenever base_budget <= 0.
    - All monetary inputs are clamped to >= 0 at the boundary; every clamp
      is reported as a NonNegativeViolation on the view.
    - Committed costs are either manual or derived from linked contracts,
      never both; the variant type answers "is this editable".
    - Project percent spent is weighted: sum(actual) / sum(revised) * 100.

Failure modes:
    - None for malformed data: every input yields a view.
    - ``apply_field_edit`` reports locked or unknown fields as
      ValidationErrors in its result.

Usage:
    from recon_engines.budget import BudgetLineInput, derive_budget_line

    view = derive_budget_line(BudgetLineInput(
        category_name="Framing",
        original_amount=Decimal("50000"),
        actual_spend=Decimal("30000"),
        committed_costs=Decimal("12000"),
    ))
    view.remaining_amount   # Decimal("8000")
    view.budget_status      # BudgetStatus.ON_TRACK
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union
from uuid import UUID

from recon_engines.formatting import format_percent
from recon_engines.status import (
    DEFAULT_THRESHOLDS,
    BudgetStatus,
    StatusThresholds,
    classify_budget_status,
    status_ratio,
)
from recon_engines.tracer import traced_engine
from recon_kernel.domain.dtos import ValidationError, ValidationResult
from recon_kernel.domain.values import (
    NonNegativeViolation,
    coerce_int,
    coerce_non_negative,
)
from recon_kernel.logging_config import LogContext, get_logger

logger = get_logger("engines.budget")

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

AmountLike = Union[Decimal, int, float, str, None]
RecordId = Union[int, str, UUID, None]


# ============================================================================
# Committed costs: manual or contract-derived
# ============================================================================


@dataclass(frozen=True)
class ManualCommitted:
    """Committed costs tracked by hand on the budget line."""

    amount: AmountLike = _ZERO

    @property
    def is_editable(self) -> bool:
        return True


@dataclass(frozen=True)
class ContractDerivedCommitted:
    """Committed costs equal to the sum of active contracts linked to the line."""

    amount: AmountLike = _ZERO
    contract_count: int = 0

    @property
    def is_editable(self) -> bool:
        return False


CommittedCosts = Union[ManualCommitted, ContractDerivedCommitted]


@dataclass(frozen=True)
class LinkedContract:
    """A contract linked to a budget line, as supplied by the store."""

    amount: AmountLike
    contract_id: RecordId = None
    status: str = "active"

    @property
    def is_active(self) -> bool:
        return self.status == "active"


# ============================================================================
# Input / view / totals
# ============================================================================


_AMOUNT_FIELDS = ("original_amount", "revised_amount", "actual_spend", "committed_costs")
EDITABLE_FIELDS = ("category_name",) + _AMOUNT_FIELDS


@dataclass(frozen=True)
class BudgetLineInput:
    """
    Raw budget line as stored: one budget category of a project.

    Amounts are kept exactly as received; ``derive_budget_line`` coerces
    and clamps them.  ``committed_costs`` accepts a plain amount for
    convenience and stores it as ``ManualCommitted``.
    """

    category_name: str = ""
    original_amount: AmountLike = _ZERO
    revised_amount: AmountLike = None
    actual_spend: AmountLike = _ZERO
    committed_costs: CommittedCosts | AmountLike = field(default_factory=ManualCommitted)
    id: RecordId = None
    display_order: int = 0
    description: str | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.committed_costs, (ManualCommitted, ContractDerivedCommitted)):
            object.__setattr__(self, "committed_costs", ManualCommitted(self.committed_costs))

    @property
    def linked_contract_total(self) -> AmountLike:
        """Contract-derived committed amount, or None when tracked manually."""
        if isinstance(self.committed_costs, ContractDerivedCommitted):
            return self.committed_costs.amount
        return None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> BudgetLineInput:
        """Build from a store row using the persisted field names."""
        linked_total = record.get("linked_contract_total")
        if linked_total is not None:
            committed: CommittedCosts = ContractDerivedCommitted(linked_total)
        else:
            committed = ManualCommitted(record.get("committed_costs"))
        return cls(
            id=record.get("id"),
            category_name=str(record.get("category_name") or "").strip(),
            original_amount=record.get("original_amount"),
            revised_amount=record.get("revised_amount"),
            actual_spend=record.get("actual_spend"),
            committed_costs=committed,
            display_order=coerce_int(record.get("display_order")),
            description=record.get("description"),
            notes=record.get("notes"),
        )

    def to_record(self) -> dict[str, Any]:
        """
        Update payload for the store.

        Amounts are clamped exactly as the derivation clamps them.  An unset
        revised amount is written as the original amount.  Contract-derived
        committed costs are omitted: the store computes them from contracts.
        """
        original, _ = coerce_non_negative(self.original_amount, "original_amount")
        if self.revised_amount is None:
            revised = original
        else:
            revised, _ = coerce_non_negative(self.revised_amount, "revised_amount")
        actual, _ = coerce_non_negative(self.actual_spend, "actual_spend")

        record: dict[str, Any] = {
            "category_name": self.category_name.strip(),
            "original_amount": original,
            "revised_amount": revised,
            "actual_spend": actual,
            "display_order": self.display_order,
        }
        if self.id is not None:
            record["id"] = self.id
        if self.committed_costs.is_editable:
            committed, _ = coerce_non_negative(self.committed_costs.amount, "committed_costs")
            record["committed_costs"] = committed
        if self.description is not None:
            record["description"] = self.description
        if self.notes is not None:
            record["notes"] = self.notes
        return record


@dataclass(frozen=True)
class BudgetLineView:
    """
    Fully derived budget line.

    ``revised_amount`` is the effective revised amount, i.e. the base
    budget every other field is computed from.
    """

    id: RecordId
    category_name: str
    display_order: int
    original_amount: Decimal
    revised_amount: Decimal
    actual_spend: Decimal
    committed_costs: Decimal
    remaining_amount: Decimal
    percent_spent: Decimal
    status_ratio: Decimal
    budget_status: BudgetStatus
    committed_locked: bool
    linked_contract_total: Decimal | None = None
    adjustments: tuple[NonNegativeViolation, ...] = ()

    @property
    def base_budget(self) -> Decimal:
        return self.revised_amount

    @property
    def is_over_budget(self) -> bool:
        return self.remaining_amount < _ZERO


@dataclass(frozen=True)
class BudgetTotals:
    """Project-level roll-up of many budget lines."""

    line_count: int
    total_original: Decimal
    total_revised: Decimal
    total_actual: Decimal
    total_committed: Decimal
    total_remaining: Decimal
    percent_spent: Decimal
    status_ratio: Decimal
    budget_status: BudgetStatus
    status_counts: dict[BudgetStatus, int] = field(default_factory=dict)


@dataclass(frozen=True)
class BudgetAlert:
    """Dashboard alert for a project that is Critical or Over Budget."""

    project_name: str
    severity: str  # "critical" | "warning"
    budget_status: BudgetStatus
    percent_spent: Decimal
    message: str
    project_id: RecordId = None


# ============================================================================
# Derivation
# ============================================================================


@traced_engine("budget_derivation", "1.0", fingerprint_fields=("line",))
def derive_budget_line(
    line: BudgetLineInput,
    thresholds: StatusThresholds = DEFAULT_THRESHOLDS,
) -> BudgetLineView:
    """
    Derive remaining balance, percent spent and status for one budget line.

    Preconditions:
        None -- any BudgetLineInput, however malformed, is accepted.

    Postconditions:
        - All monetary fields on the view are >= 0 except remaining_amount.
        - remaining_amount + actual_spend + committed_costs == base_budget.
        - percent_spent == 0 and status is ON_TRACK when base_budget <= 0.
    """
    adjustments: list[NonNegativeViolation] = []

    def _coerce(value: Any, name: str) -> Decimal:
        amount, violation = coerce_non_negative(value, name)
        if violation is not None:
            adjustments.append(violation)
        return amount

    original = _coerce(line.original_amount, "original_amount")
    revised = _coerce(line.revised_amount, "revised_amount")
    actual = _coerce(line.actual_spend, "actual_spend")
    committed = _coerce(line.committed_costs.amount, "committed_costs")

    base_budget = revised if revised > _ZERO else original
    remaining = base_budget - actual - committed
    percent_spent = actual / base_budget * _HUNDRED if base_budget > _ZERO else _ZERO
    ratio = status_ratio(actual, committed, base_budget)
    status = classify_budget_status(ratio, thresholds)

    if adjustments:
        logger.warning("budget_line_inputs_clamped", extra={
            "budget_line_id": line.id,
            "category_name": line.category_name,
            "fields": [a.field for a in adjustments],
            "reasons": [a.reason for a in adjustments],
        })

    locked = not line.committed_costs.is_editable
    logger.debug("budget_line_derived", extra={
        "budget_line_id": line.id,
        "base_budget": str(base_budget),
        "remaining_amount": str(remaining),
        "budget_status": status.value,
        "committed_locked": locked,
    })

    return BudgetLineView(
        id=line.id,
        category_name=line.category_name,
        display_order=line.display_order,
        original_amount=original,
        revised_amount=base_budget,
        actual_spend=actual,
        committed_costs=committed,
        remaining_amount=remaining,
        percent_spent=percent_spent,
        status_ratio=ratio,
        budget_status=status,
        committed_locked=locked,
        linked_contract_total=committed if locked else None,
        adjustments=tuple(adjustments),
    )


def derive_budget_lines(
    lines: Iterable[BudgetLineInput],
    thresholds: StatusThresholds = DEFAULT_THRESHOLDS,
    project_id: RecordId = None,
) -> tuple[BudgetLineView, ...]:
    """Derive many lines, ordered by display_order then category_name."""
    ordered = sorted(lines, key=lambda ln: (ln.display_order, ln.category_name.lower()))
    with LogContext.bind(project_id=project_id):
        return tuple(derive_budget_line(ln, thresholds) for ln in ordered)


# ============================================================================
# Committed-cost reconciliation
# ============================================================================


def _contract_field(contract: Any, name: str, default: Any = None) -> Any:
    if isinstance(contract, Mapping):
        return contract.get(name, default)
    return getattr(contract, name, default)


def _is_active_contract(contract: Any) -> bool:
    if isinstance(contract, LinkedContract):
        return contract.is_active
    if _contract_field(contract, "is_active", True) is False:
        return False
    status = _contract_field(contract, "status")
    return status is None or str(status).lower() == "active"


@traced_engine("budget_derivation", "1.0", fingerprint_fields=("line", "linked_contracts"))
def reconcile_committed_costs(
    line: BudgetLineInput,
    linked_contracts: Iterable[LinkedContract | Mapping[str, Any]],
) -> BudgetLineInput:
    """
    Override committed costs with the sum of active linked contracts.

    Postconditions:
        - With one or more active contracts, committed_costs is
          ContractDerivedCommitted(sum of amounts) and is not editable.
        - With none, committed_costs is ManualCommitted; a previously
          derived amount is kept as the starting manual value.
        - Applying it twice with the same contracts changes nothing.
    """
    active = [c for c in linked_contracts if _is_active_contract(c)]

    if not active:
        if isinstance(line.committed_costs, ContractDerivedCommitted):
            logger.info("committed_costs_released", extra={
                "budget_line_id": line.id,
                "amount": str(line.committed_costs.amount),
            })
            return dataclasses.replace(
                line, committed_costs=ManualCommitted(line.committed_costs.amount),
            )
        return line

    total = _ZERO
    for contract in active:
        amount, violation = coerce_non_negative(
            _contract_field(contract, "amount"), "contract_amount",
        )
        if violation is not None:
            logger.warning("linked_contract_amount_clamped", extra={
                "budget_line_id": line.id,
                "contract_id": _contract_field(contract, "contract_id")
                or _contract_field(contract, "id"),
                "raw_value": violation.raw_value,
            })
        total += amount

    derived = ContractDerivedCommitted(amount=total, contract_count=len(active))
    if line.committed_costs == derived:
        return line

    logger.info("committed_costs_reconciled", extra={
        "budget_line_id": line.id,
        "contract_count": len(active),
        "committed_costs": str(total),
    })
    return dataclasses.replace(line, committed_costs=derived)


# ============================================================================
# Single-field edits
# ============================================================================


def apply_field_edit(
    line: BudgetLineInput,
    field_name: str,
    value: Any,
) -> tuple[BudgetLineInput, ValidationResult]:
    """
    Apply one optimistic cell edit and return the new line.

    The line is returned unchanged with a failed result when the field is
    unknown, locked, or the category name would become empty.
    """
    if field_name not in EDITABLE_FIELDS:
        return line, ValidationResult.failure(ValidationError(
            code="UNKNOWN_FIELD",
            message=f"'{field_name}' is not an editable budget field",
            field=field_name,
        ))

    if field_name == "category_name":
        name = str(value or "").strip()
        if not name:
            return line, ValidationResult.failure(ValidationError(
                code="CATEGORY_REQUIRED",
                message="Category name is required",
                field=field_name,
            ))
        return dataclasses.replace(line, category_name=name), ValidationResult.success()

    if field_name == "committed_costs" and not line.committed_costs.is_editable:
        return line, ValidationResult.failure(ValidationError(
            code="COMMITTED_COSTS_LOCKED",
            message="Committed costs are calculated from linked contracts",
            field=field_name,
            details={"linked_contract_total": str(line.linked_contract_total)},
        ))

    amount, violation = coerce_non_negative(value, field_name)
    if violation is not None:
        logger.warning("budget_field_edit_clamped", extra={
            "budget_line_id": line.id,
            "field": field_name,
            "raw_value": violation.raw_value,
        })
    if field_name == "committed_costs":
        return dataclasses.replace(line, committed_costs=ManualCommitted(amount)), ValidationResult.success()
    return dataclasses.replace(line, **{field_name: amount}), ValidationResult.success()


# ============================================================================
# Aggregation
# ============================================================================


@traced_engine(
    "budget_derivation", "1.0",
    summarize=lambda t: {"budget_status": t.budget_status.value},
    bind_context=("project_id",),
)
def aggregate_totals(
    lines: Iterable[BudgetLineView],
    thresholds: StatusThresholds = DEFAULT_THRESHOLDS,
    project_id: RecordId = None,
) -> BudgetTotals:
    """
    Roll budget line views up to project totals.

    ``project_id`` only labels the log records of the roll-up.

    Percent spent is weighted by line size (sum of actual over sum of
    revised), so a large under-spent category cannot mask a small
    over-spent one the way a mean of per-line percentages would.
    """
    views = tuple(lines)
    logger.info("budget_aggregation_started", extra={"line_count": len(views)})

    total_original = sum((v.original_amount for v in views), _ZERO)
    total_revised = sum((v.revised_amount for v in views), _ZERO)
    total_actual = sum((v.actual_spend for v in views), _ZERO)
    total_committed = sum((v.committed_costs for v in views), _ZERO)
    total_remaining = sum((v.remaining_amount for v in views), _ZERO)

    percent_spent = (
        total_actual / total_revised * _HUNDRED if total_revised > _ZERO else _ZERO
    )
    ratio = status_ratio(total_actual, total_committed, total_revised)
    status = classify_budget_status(ratio, thresholds)

    counts = {s: 0 for s in BudgetStatus}
    for v in views:
        counts[v.budget_status] += 1

    logger.info("budget_aggregation_completed", extra={
        "line_count": len(views),
        "total_revised": str(total_revised),
        "total_actual": str(total_actual),
        "total_committed": str(total_committed),
        "percent_spent": str(percent_spent),
        "budget_status": status.value,
    })

    return BudgetTotals(
        line_count=len(views),
        total_original=total_original,
        total_revised=total_revised,
        total_actual=total_actual,
        total_committed=total_committed,
        total_remaining=total_remaining,
        percent_spent=percent_spent,
        status_ratio=ratio,
        budget_status=status,
        status_counts=counts,
    )


def build_budget_alerts(
    projects: Iterable[tuple[str, BudgetTotals] | tuple[str, BudgetTotals, RecordId]],
) -> tuple[BudgetAlert, ...]:
    """Alerts for every project whose roll-up is Critical or Over Budget."""
    alerts: list[BudgetAlert] = []
    for entry in projects:
        name, totals = entry[0], entry[1]
        project_id = entry[2] if len(entry) > 2 else None
        if totals.budget_status not in (BudgetStatus.CRITICAL, BudgetStatus.OVER_BUDGET):
            continue
        severity = "critical" if totals.budget_status is BudgetStatus.OVER_BUDGET else "warning"
        with LogContext.bind(project_id=project_id):
            logger.info("budget_alert_raised", extra={
                "project_name": name,
                "severity": severity,
                "budget_status": totals.budget_status.value,
            })
        alerts.append(BudgetAlert(
            project_name=name,
            severity=severity,
            budget_status=totals.budget_status,
            percent_spent=totals.percent_spent,
            message=(
                f"{name} is {totals.budget_status.value.lower()} "
                f"({format_percent(totals.percent_spent)} spent)"
            ),
            project_id=project_id,
        ))
    return tuple(alerts)
