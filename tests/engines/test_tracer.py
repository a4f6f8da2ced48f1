"""Tests for the engine invocation tracer."""

from decimal import Decimal

import pytest

from recon_engines.budget import BudgetLineInput
from recon_engines.tracer import compute_input_fingerprint, traced_engine


@traced_engine("sample_engine", "2.1", fingerprint_fields=("amount", "rates"))
def _sample_engine(amount, rates=None, label="x"):
    return amount * 2


@traced_engine(
    "sample_engine", "2.1",
    summarize=lambda r: {"doubled": str(r)},
    bind_context=("project_id",),
)
def _project_engine(amount, project_id=None):
    if amount < 0:
        raise ValueError("negative amount")
    return amount * 2


class TestComputeInputFingerprint:

    def test_deterministic(self):
        args = {"amount": Decimal("10.00"), "rates": {"b": 2, "a": 1}}

        assert compute_input_fingerprint(("amount", "rates"), args) == (
            compute_input_fingerprint(("amount", "rates"), dict(args))
        )

    def test_mapping_order_ignored(self):
        first = compute_input_fingerprint(("rates",), {"rates": {"a": 1, "b": 2}})
        second = compute_input_fingerprint(("rates",), {"rates": {"b": 2, "a": 1}})

        assert first == second

    def test_values_change_fingerprint(self):
        first = compute_input_fingerprint(("amount",), {"amount": Decimal("10")})
        second = compute_input_fingerprint(("amount",), {"amount": Decimal("11")})

        assert first != second
        assert len(first) == 16

    def test_decimal_scale_ignored(self):
        first = compute_input_fingerprint(("amount",), {"amount": Decimal("50")})
        second = compute_input_fingerprint(("amount",), {"amount": Decimal("50.00")})

        assert first == second

    def test_budget_lines_fingerprint_by_field(self):
        line = BudgetLineInput(category_name="Framing", original_amount=Decimal("1000"))
        same = BudgetLineInput(category_name="Framing", original_amount=Decimal("1000.0"))
        other = BudgetLineInput(category_name="Framing", original_amount=Decimal("1001"))

        fp = compute_input_fingerprint(("line",), {"line": line})
        assert fp == compute_input_fingerprint(("line",), {"line": same})
        assert fp != compute_input_fingerprint(("line",), {"line": other})

    def test_missing_field_recorded_as_null(self):
        missing = compute_input_fingerprint(("amount",), {})
        explicit = compute_input_fingerprint(("amount",), {"amount": None})

        assert missing == explicit


class TestTracedEngine:

    def test_result_passes_through(self):
        assert _sample_engine(Decimal("4")) == Decimal("8")

    def test_wraps_function_metadata(self):
        assert _sample_engine.__name__ == "_sample_engine"

    def test_emits_trace(self, captured_logs):
        _sample_engine(Decimal("4"), rates=[1, 2])

        traces = [r for r in captured_logs() if r["message"] == "RECON_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["trace_type"] == "RECON_ENGINE_TRACE"
        assert trace["engine_name"] == "sample_engine"
        assert trace["engine_version"] == "2.1"
        assert trace["logger"] == "recon_kernel.engines.tracer"
        assert len(trace["input_fingerprint"]) == 16
        assert trace["duration_ms"] >= 0

    def test_positional_and_keyword_calls_share_fingerprint(self, captured_logs):
        _sample_engine(Decimal("4"), [1, 2])
        _sample_engine(amount=Decimal("4"), rates=[1, 2])

        traces = [r for r in captured_logs() if r["message"] == "RECON_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]

    def test_unfingerprinted_argument_ignored(self, captured_logs):
        _sample_engine(Decimal("4"), label="a")
        _sample_engine(Decimal("4"), label="b")

        traces = [r for r in captured_logs() if r["message"] == "RECON_ENGINE_TRACE"]
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]

    def test_summary_and_outcome_recorded(self, captured_logs):
        _project_engine(Decimal("4"))

        (trace,) = [r for r in captured_logs() if r["message"] == "RECON_ENGINE_TRACE"]
        assert trace["outcome"] == "ok"
        assert trace["doubled"] == "8"
        assert trace["input_fingerprint"] == ""

    def test_project_id_bound_for_the_call(self, captured_logs):
        _project_engine(Decimal("4"), project_id=17)

        (trace,) = [r for r in captured_logs() if r["message"] == "RECON_ENGINE_TRACE"]
        assert trace["project_id"] == "17"

    def test_failure_traced_and_reraised(self, captured_logs):
        with pytest.raises(ValueError, match="negative amount"):
            _project_engine(Decimal("-1"), project_id=17)

        (trace,) = [r for r in captured_logs() if r["message"] == "RECON_ENGINE_TRACE"]
        assert trace["level"] == "WARNING"
        assert trace["outcome"] == "error"
        assert trace["exc_type"] == "ValueError"
        assert trace["project_id"] == "17"
        assert "doubled" not in trace
