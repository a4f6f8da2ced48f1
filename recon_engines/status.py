"""
recon_engines.status -- Budget health thresholds.

One threshold function classifies both a single budget line and a whole
project.  The ratio it classifies is committed exposure over budget:
``(actual_spend + committed_costs) / base_budget``, defined as zero when
the budget is zero or negative so an unfunded draft line never reads as
over budget.

Usage:
    from recon_engines.status import classify_budget_status, status_ratio

    ratio = status_ratio(actual, committed, base_budget)
    status = classify_budget_status(ratio)   # BudgetStatus.WARNING
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

_ZERO = Decimal("0")


class BudgetStatus(str, Enum):
    """Qualitative health of a budget line or project."""

    ON_TRACK = "On Track"
    WARNING = "Warning"
    CRITICAL = "Critical"
    OVER_BUDGET = "Over Budget"

    @property
    def severity(self) -> int:
        """0 (healthy) .. 3 (over budget); monotonic in the ratio."""
        return _SEVERITY[self]


_SEVERITY = {
    BudgetStatus.ON_TRACK: 0,
    BudgetStatus.WARNING: 1,
    BudgetStatus.CRITICAL: 2,
    BudgetStatus.OVER_BUDGET: 3,
}


@dataclass(frozen=True)
class StatusThresholds:
    """
    Lower bounds (inclusive) of each non-healthy status, as ratios.

    Contract:
        0 < warning < critical < over_budget.
    """

    warning: Decimal = Decimal("0.90")
    critical: Decimal = Decimal("1.00")
    over_budget: Decimal = Decimal("1.05")

    def __post_init__(self) -> None:
        for attr in ("warning", "critical", "over_budget"):
            val = getattr(self, attr)
            if not isinstance(val, Decimal):
                object.__setattr__(self, attr, Decimal(str(val)))
        if not (_ZERO < self.warning < self.critical < self.over_budget):
            raise ValueError(
                "Status thresholds must be positive and strictly ascending: "
                f"warning={self.warning}, critical={self.critical}, "
                f"over_budget={self.over_budget}"
            )


DEFAULT_THRESHOLDS = StatusThresholds()


def status_ratio(actual_spend: Decimal, committed_costs: Decimal, base_budget: Decimal) -> Decimal:
    """Committed exposure over budget; 0 when the budget is not positive."""
    if base_budget <= _ZERO:
        return _ZERO
    return (actual_spend + committed_costs) / base_budget


def classify_budget_status(
    ratio: Decimal,
    thresholds: StatusThresholds = DEFAULT_THRESHOLDS,
) -> BudgetStatus:
    """Map a ratio to its status. Boundaries belong to the worse status."""
    if ratio >= thresholds.over_budget:
        return BudgetStatus.OVER_BUDGET
    if ratio >= thresholds.critical:
        return BudgetStatus.CRITICAL
    if ratio >= thresholds.warning:
        return BudgetStatus.WARNING
    return BudgetStatus.ON_TRACK
