"""
Tests for structured logging (recon_kernel/logging_config.py).

Records are checked as they come out of real engine and import calls:
the JSON envelope, the bound project / application context, and the
exception fields of kernel errors.
"""

import json
import logging
from io import StringIO

import pytest

from recon_engines.budget import BudgetLineInput, derive_budget_line
from recon_engines.payment_application import build_submission_payload, validate_application
from recon_ingestion import import_budget_text
from recon_kernel.exceptions import InvalidSubmissionError
from recon_kernel.logging_config import (
    CONTEXT_FIELDS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


def _by_message(records: list[dict], message: str) -> list[dict]:
    return [r for r in records if r["message"] == message]


class TestRecordEnvelope:
    """What every JSON line looks like."""

    def test_envelope_and_extras(self, captured_logs):
        import_budget_text("Framing\t1000")

        (record,) = _by_message(captured_logs(), "budget_import_completed")
        assert record["level"] == "INFO"
        assert record["logger"] == "recon_kernel.ingestion.budget_import"
        assert record["ts"].endswith("+00:00")
        assert record["imported_count"] == 1
        assert record["error_count"] == 0

    def test_no_context_keys_when_nothing_bound(self, captured_logs):
        import_budget_text("Framing\t1000")

        for record in captured_logs():
            assert not set(CONTEXT_FIELDS) & set(record)

    def test_clamp_warning_carries_raw_value(self, captured_logs):
        import_budget_text("Demo\t(250)")

        (record,) = _by_message(captured_logs(), "budget_import_amount_clamped")
        assert record["level"] == "WARNING"
        assert record["raw_value"] == "-250"
        assert record["reason"] == "negative"

    def test_decimals_enums_and_dataclasses_serialized(self, captured_logs):
        view = derive_budget_line(BudgetLineInput(
            category_name="Roofing", original_amount="100", actual_spend="-3",
        ))

        get_logger("tests").info("view_snapshot", extra={
            "remaining": view.remaining_amount,
            "status": view.budget_status,
            "adjustment": view.adjustments[0],
        })

        (record,) = _by_message(captured_logs(), "view_snapshot")
        assert record["remaining"] == "100"
        assert record["status"] == "On Track"
        assert record["adjustment"]["field"] == "actual_spend"
        assert record["adjustment"]["coerced_to"] == "0"


class TestBoundContext:
    """Project and application ids flowing from engine arguments into records."""

    def test_application_id_on_validation_records(self, make_sov_line, captured_logs):
        line = make_sov_line(line_id=3)

        validate_application([line], {3: "110"}, application_id="PA-7")

        (failed,) = _by_message(captured_logs(), "application_validation_failed")
        assert failed["application_id"] == "PA-7"
        assert failed["error_codes"] == ["OUT_OF_RANGE"]
        assert LogContext.get_all() == {}

    def test_project_id_on_import_records(self, captured_logs):
        import_budget_text("Framing\t1000\nRoofing\t-5", project_id=12)

        records = captured_logs()
        assert {r["project_id"] for r in records} == {"12"}
        assert _by_message(records, "budget_import_amount_clamped")[0]["project_id"] == "12"

    def test_caller_correlation_id_kept_alongside(self, make_sov_line, captured_logs):
        line = make_sov_line(line_id=1)

        with LogContext.bind(correlation_id="req-55"):
            validate_application([line], {1: "20"}, application_id=9)

        (passed,) = _by_message(captured_logs(), "application_validation_passed")
        assert passed["correlation_id"] == "req-55"
        assert passed["application_id"] == "9"

    def test_context_wins_over_clashing_extra(self, captured_logs):
        with LogContext.bind(project_id="P1"):
            get_logger("tests").info("clash", extra={"project_id": "other"})

        (record,) = _by_message(captured_logs(), "clash")
        assert record["project_id"] == "P1"


class TestKernelErrorFields:
    """Structured exception fields."""

    def test_rejected_submission_logged_with_codes(self, make_sov_line, captured_logs):
        result = validate_application([make_sov_line()], {})
        logger = get_logger("tests")

        with pytest.raises(InvalidSubmissionError):
            try:
                build_submission_payload(result)
            except InvalidSubmissionError:
                logger.error("submission_failed", exc_info=True)
                raise

        (record,) = _by_message(captured_logs(), "submission_failed")
        assert record["exc_type"] == "InvalidSubmissionError"
        assert record["exc_code"] == "INVALID_SUBMISSION"
        assert record["exc_error_count"] == 1
        assert record["exc_error_codes"] == ["NO_PROGRESS"]
        assert record["exc_message"].startswith("Cannot build a submission")
        assert "Traceback" in record["traceback"]


class TestLogContext:

    def test_bind_restores_previous_values(self):
        LogContext.set(project_id="outer")

        with LogContext.bind(project_id="inner", application_id=4) as bound:
            assert bound == {"project_id": "inner", "application_id": "4"}

        assert LogContext.get_all() == {"project_id": "outer"}

    def test_none_values_ignored(self):
        with LogContext.bind(project_id=None, import_source="budget.csv"):
            assert LogContext.get_all() == {"import_source": "budget.csv"}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="actor_id"):
            LogContext.set(actor_id="someone")

    def test_clear(self):
        LogContext.set(correlation_id="x", project_id="y")
        LogContext.clear()

        assert LogContext.get_all() == {}


class TestConfigureLogging:
    """Handler setup; restores the session configuration afterwards."""

    @pytest.fixture
    def fresh_logging(self):
        reset_logging()
        yield
        reset_logging()
        configure_logging(level=logging.DEBUG)

    def test_first_call_wins(self, fresh_logging):
        first, second = StringIO(), StringIO()

        configure_logging(stream=first)
        configure_logging(stream=second, level=logging.DEBUG)
        get_logger("engines.budget").info("once")
        get_logger("engines.budget").debug("below_level")

        lines = first.getvalue().strip().split("\n")
        assert [json.loads(line)["message"] for line in lines] == ["once"]
        assert second.getvalue() == ""
        assert len(logging.getLogger("recon_kernel").handlers) == 1

    def test_handler_gets_structured_formatter(self, fresh_logging):
        handler = logging.StreamHandler(StringIO())

        configure_logging(handler=handler)

        assert isinstance(handler.formatter, StructuredFormatter)
        assert logging.getLogger("recon_kernel").propagate is False

    def test_reset_drops_handlers(self, fresh_logging):
        configure_logging(stream=StringIO())

        reset_logging()

        root = logging.getLogger("recon_kernel")
        assert root.handlers == []
        assert root.level == logging.WARNING

    def test_logger_names(self):
        assert get_logger("engines.budget").name == "recon_kernel.engines.budget"
