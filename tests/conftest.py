"""
Pytest fixtures for the reconciliation engine test suite.

Provides:
- Structured logging configuration and capture
- LogContext isolation between tests
- Sample data builders for budget lines and schedule-of-values lines
"""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest

from recon_engines.budget import BudgetLineInput, ContractDerivedCommitted
from recon_engines.payment_application import ScheduleOfValuesLine
from recon_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture recon_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            derive_budget_line(line)
            logs = captured_logs()
            assert any(r["message"] == "RECON_ENGINE_TRACE" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("recon_kernel")
    previous_level = root.level
    # Logging tests reset the hierarchy to WARNING; capture everything here.
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_budget_line():
    """Build a BudgetLineInput with sensible defaults."""

    def _make(
        category_name: str = "Framing",
        original: str | Decimal = "50000",
        revised: str | Decimal | None = None,
        actual: str | Decimal = "0",
        committed: str | Decimal = "0",
        linked_contract_total: str | Decimal | None = None,
        **kwargs,
    ) -> BudgetLineInput:
        committed_costs = (
            ContractDerivedCommitted(Decimal(str(linked_contract_total)))
            if linked_contract_total is not None
            else Decimal(str(committed))
        )
        return BudgetLineInput(
            category_name=category_name,
            original_amount=Decimal(str(original)),
            revised_amount=Decimal(str(revised)) if revised is not None else None,
            actual_spend=Decimal(str(actual)),
            committed_costs=committed_costs,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_sov_line():
    """Build a ScheduleOfValuesLine with sensible defaults."""
    counter = {"next": 1}

    def _make(
        scheduled: str | Decimal = "10000",
        change_orders: str | Decimal = "0",
        previous: str | Decimal = "0",
        line_id: int | None = None,
        **kwargs,
    ) -> ScheduleOfValuesLine:
        if line_id is None:
            line_id = counter["next"]
        counter["next"] = max(counter["next"], line_id) + 1
        kwargs.setdefault("display_order", line_id)
        return ScheduleOfValuesLine(
            id=line_id,
            scheduled_value=Decimal(str(scheduled)),
            change_order_amount=Decimal(str(change_orders)),
            from_previous_application=Decimal(str(previous)),
            **kwargs,
        )

    return _make
