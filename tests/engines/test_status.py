"""Tests for the budget status thresholds."""

from decimal import Decimal

import pytest

from recon_engines.status import (
    DEFAULT_THRESHOLDS,
    BudgetStatus,
    StatusThresholds,
    classify_budget_status,
    status_ratio,
)


class TestStatusRatio:

    def test_ratio_includes_committed(self):
        assert status_ratio(Decimal("40"), Decimal("50"), Decimal("100")) == Decimal("0.9")

    @pytest.mark.parametrize("base", ["0", "-10"])
    def test_non_positive_budget_is_zero(self, base):
        assert status_ratio(Decimal("500"), Decimal("0"), Decimal(base)) == 0


class TestClassifyBudgetStatus:

    @pytest.mark.parametrize(
        "ratio, expected",
        [
            ("0", BudgetStatus.ON_TRACK),
            ("0.8999", BudgetStatus.ON_TRACK),
            ("0.90", BudgetStatus.WARNING),
            ("0.9999", BudgetStatus.WARNING),
            ("1.00", BudgetStatus.CRITICAL),
            ("1.0499", BudgetStatus.CRITICAL),
            ("1.05", BudgetStatus.OVER_BUDGET),
            ("3", BudgetStatus.OVER_BUDGET),
        ],
    )
    def test_default_boundaries(self, ratio, expected):
        assert classify_budget_status(Decimal(ratio)) is expected

    def test_custom_thresholds(self):
        thresholds = StatusThresholds(warning="0.5", critical="0.75", over_budget="0.9")

        assert classify_budget_status(Decimal("0.6"), thresholds) is BudgetStatus.WARNING
        assert classify_budget_status(Decimal("0.9"), thresholds) is BudgetStatus.OVER_BUDGET

    def test_status_values_are_display_labels(self):
        assert BudgetStatus.OVER_BUDGET.value == "Over Budget"
        assert BudgetStatus("On Track") is BudgetStatus.ON_TRACK

    def test_severity_ordering(self):
        severities = [s.severity for s in (
            BudgetStatus.ON_TRACK, BudgetStatus.WARNING,
            BudgetStatus.CRITICAL, BudgetStatus.OVER_BUDGET,
        )]
        assert severities == sorted(severities) == [0, 1, 2, 3]


class TestStatusThresholds:

    def test_defaults(self):
        assert DEFAULT_THRESHOLDS.warning == Decimal("0.90")
        assert DEFAULT_THRESHOLDS.critical == Decimal("1.00")
        assert DEFAULT_THRESHOLDS.over_budget == Decimal("1.05")

    def test_values_coerced_to_decimal(self):
        thresholds = StatusThresholds(warning=0.8, critical=1, over_budget="1.1")

        assert thresholds.warning == Decimal("0.8")
        assert isinstance(thresholds.critical, Decimal)

    @pytest.mark.parametrize(
        "warning, critical, over_budget",
        [
            ("1.0", "0.9", "1.05"),
            ("0.9", "0.9", "1.05"),
            ("0", "0.5", "1"),
            ("0.9", "1.1", "1.05"),
        ],
    )
    def test_invalid_ordering_rejected(self, warning, critical, over_budget):
        with pytest.raises(ValueError, match="strictly ascending"):
            StatusThresholds(warning=warning, critical=critical, over_budget=over_budget)
