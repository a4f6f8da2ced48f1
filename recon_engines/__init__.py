"""
Module: recon_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for callers
    (API handlers, import jobs, report builders).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import recon_kernel (and sibling engine modules).
    MUST NOT import recon_config or recon_ingestion.

Invariants enforced:
    - Purity: engines never read the clock, the filesystem or a database.
    - Decimal-only arithmetic: floats accepted at the boundary are
      converted through ``str`` and never used in calculations.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from recon_engines import derive_budget_line, validate_application
"""

from recon_kernel.logging_config import get_logger

logger = get_logger("engines")

from recon_engines.budget import (
    EDITABLE_FIELDS,
    BudgetAlert,
    BudgetLineInput,
    BudgetLineView,
    BudgetTotals,
    CommittedCosts,
    ContractDerivedCommitted,
    LinkedContract,
    ManualCommitted,
    aggregate_totals,
    apply_field_edit,
    build_budget_alerts,
    derive_budget_line,
    derive_budget_lines,
    reconcile_committed_costs,
)
from recon_engines.continuation_sheet import (
    ContinuationRow,
    ContinuationSheet,
    ContinuationTotals,
    build_continuation_sheet,
)
from recon_engines.contracts import ENGINE_CONTRACTS, EngineContract, get_engine_contract
from recon_engines.formatting import format_currency, format_percent
from recon_engines.payment_application import (
    ApplicationTotals,
    ApplicationValidationError,
    ApplicationValidationResult,
    ContractMismatchError,
    LineBilling,
    NoProgressError,
    OutOfRangeError,
    RegressionError,
    ScheduleOfValuesLine,
    UnknownLineError,
    build_submission_payload,
    compute_application_totals,
    compute_line_billing,
    initial_percents,
    validate_application,
)
from recon_engines.status import (
    DEFAULT_THRESHOLDS,
    BudgetStatus,
    StatusThresholds,
    classify_budget_status,
    status_ratio,
)
from recon_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Budget
    "EDITABLE_FIELDS",
    "BudgetAlert",
    "BudgetLineInput",
    "BudgetLineView",
    "BudgetTotals",
    "CommittedCosts",
    "ContractDerivedCommitted",
    "LinkedContract",
    "ManualCommitted",
    "aggregate_totals",
    "apply_field_edit",
    "build_budget_alerts",
    "derive_budget_line",
    "derive_budget_lines",
    "reconcile_committed_costs",
    # Payment application
    "ApplicationTotals",
    "ApplicationValidationError",
    "ApplicationValidationResult",
    "ContractMismatchError",
    "LineBilling",
    "NoProgressError",
    "OutOfRangeError",
    "RegressionError",
    "ScheduleOfValuesLine",
    "UnknownLineError",
    "build_submission_payload",
    "compute_application_totals",
    "compute_line_billing",
    "initial_percents",
    "validate_application",
    # Continuation sheet
    "ContinuationRow",
    "ContinuationSheet",
    "ContinuationTotals",
    "build_continuation_sheet",
    # Status / formatting
    "DEFAULT_THRESHOLDS",
    "BudgetStatus",
    "StatusThresholds",
    "classify_budget_status",
    "status_ratio",
    "format_currency",
    "format_percent",
    # Contracts / tracing
    "ENGINE_CONTRACTS",
    "EngineContract",
    "get_engine_contract",
    "compute_input_fingerprint",
    "traced_engine",
]
