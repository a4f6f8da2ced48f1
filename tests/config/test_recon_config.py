"""
Tests for configuration loading, validation and the config -> engine bridges.

Configuration sets under test are written to ``tmp_path`` so each test
controls exactly which fragments exist.
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from recon_config import get_active_config
from recon_config.bridges import (
    build_header_keywords,
    build_require_progress,
    build_retainage_percent,
    build_show_cents,
    build_status_thresholds,
)
from recon_config.loader import compute_checksum, load_configuration, parse_decimal
from recon_config.schema import (
    DEFAULT_HEADER_KEYWORDS,
    BillingDef,
    ConfigStatus,
    DisplayDef,
    EngineConfigDef,
    ImportOptionsDef,
    ReconConfiguration,
    StatusThresholdsDef,
)
from recon_config.validator import validate_configuration
from recon_engines.formatting import format_currency
from recon_engines.status import BudgetStatus, classify_budget_status
from recon_ingestion import import_budget_text
from recon_ingestion.budget_import import HEADER_KEYWORDS
from recon_kernel.exceptions import ConfigurationError


def _write_set(
    base: Path,
    name: str = "test",
    root: dict | None = None,
    engines: list | None = None,
) -> Path:
    set_dir = base / name
    set_dir.mkdir(parents=True)
    root_data = {"config_id": name, "version": 1, "status": "published"}
    root_data.update(root or {})
    (set_dir / "root.yaml").write_text(yaml.safe_dump(root_data), encoding="utf-8")
    if engines is not None:
        (set_dir / "engine_params.yaml").write_text(
            yaml.safe_dump({"engines": engines}), encoding="utf-8",
        )
    return set_dir


def _config(**overrides) -> ReconConfiguration:
    values = {"config_id": "inline", "version": 1, "checksum": "0" * 64}
    values.update(overrides)
    return ReconConfiguration(**values)


# ---------------------------------------------------------------------------
# Shipped default set
# ---------------------------------------------------------------------------


class TestDefaultConfiguration:

    def test_default_set_loads(self):
        config = get_active_config()

        assert config.config_id == "default"
        assert config.status is ConfigStatus.PUBLISHED
        assert config.billing.retainage_percent == 0
        assert config.billing.require_progress is True
        assert config.display.show_cents is False
        assert len(config.checksum) == 64

    def test_default_thresholds(self):
        thresholds = build_status_thresholds(get_active_config())

        assert thresholds.warning == Decimal("0.9")
        assert thresholds.critical == Decimal("1")
        assert thresholds.over_budget == Decimal("1.05")

    def test_default_header_keywords(self):
        config = get_active_config()

        assert config.import_options.header_keywords == DEFAULT_HEADER_KEYWORDS
        assert DEFAULT_HEADER_KEYWORDS == HEADER_KEYWORDS

    def test_all_engines_configured(self):
        config = get_active_config()

        assert {ec.engine_name for ec in config.engine_parameters} == {
            "budget_derivation", "payment_application", "continuation_sheet",
        }

    def test_config_trace_logged(self, captured_logs):
        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "RECON_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["config_set_id"] == "default"
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["config_status"] == "published"
        assert traces[0]["engine_count"] == 3


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class TestLoader:

    def test_missing_set(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config("nope", config_dir=tmp_path)

    def test_missing_sets_dir(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(config_dir=tmp_path / "absent")

    def test_missing_root_yaml(self, tmp_path):
        (tmp_path / "empty").mkdir()

        with pytest.raises(FileNotFoundError, match="root.yaml"):
            load_configuration(tmp_path / "empty")

    def test_engine_params_optional(self, tmp_path):
        config = load_configuration(_write_set(tmp_path))

        assert config.engine_parameters == ()
        assert config.status_thresholds == StatusThresholdsDef()

    def test_checksum_is_deterministic(self, tmp_path):
        first = load_configuration(_write_set(tmp_path, "a", root={"config_id": "same"}))
        second = load_configuration(_write_set(tmp_path, "b", root={"config_id": "same"}))

        assert first.checksum == second.checksum

    def test_checksum_changes_with_content(self, tmp_path):
        first = load_configuration(_write_set(tmp_path, "a", root={"config_id": "same"}))
        second = load_configuration(_write_set(
            tmp_path, "b", root={"config_id": "same", "billing": {"retainage_percent": 5}},
        ))

        assert first.checksum != second.checksum

    def test_compute_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_non_numeric_threshold_rejected(self, tmp_path):
        set_dir = _write_set(tmp_path, root={"status_thresholds": {"warning": "lots"}})

        with pytest.raises(ValueError, match="warning"):
            load_configuration(set_dir)

    @pytest.mark.parametrize("value", [True, "abc", "nan"])
    def test_parse_decimal_rejects(self, value):
        with pytest.raises(ValueError):
            parse_decimal(value, "x")

    def test_parse_decimal_goes_through_str(self):
        assert parse_decimal(0.9, "x") == Decimal("0.9")


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class TestValidator:

    def test_descending_thresholds_rejected(self, tmp_path):
        _write_set(tmp_path, root={
            "status_thresholds": {"warning": 1.1, "critical": 1.0, "over_budget": 1.05},
        })

        with pytest.raises(ValueError, match="strictly ascending"):
            get_active_config("test", config_dir=tmp_path)

    def test_non_positive_warning_rejected(self):
        config = _config(status_thresholds=StatusThresholdsDef(warning=Decimal("0")))

        result = validate_configuration(config)

        assert not result.is_valid
        assert any("positive" in e for e in result.errors)

    def test_engine_override_checked(self):
        config = _config(engine_parameters=(
            EngineConfigDef("budget_derivation", {"warning_ratio": 1.2}),
        ))

        assert not validate_configuration(config).is_valid

    def test_retainage_out_of_range(self):
        config = _config(billing=BillingDef(retainage_percent=Decimal("120")))

        result = validate_configuration(config)

        assert any("retainage_percent" in e for e in result.errors)

    def test_unknown_engine(self, tmp_path):
        _write_set(tmp_path, engines=[{"engine_name": "depreciation", "parameters": {}}])

        with pytest.raises(ValueError, match="no registered contract"):
            get_active_config("test", config_dir=tmp_path)

    def test_unknown_parameter(self):
        config = _config(engine_parameters=(
            EngineConfigDef("payment_application", {"allow_regression": True}),
        ))

        result = validate_configuration(config)

        assert any("unknown parameter 'allow_regression'" in e for e in result.errors)

    def test_parameter_type_checked(self):
        config = _config(engine_parameters=(
            EngineConfigDef("payment_application", {"require_progress": "yes"}),
        ))

        result = validate_configuration(config)

        assert any("expected boolean" in e for e in result.errors)

    def test_parameter_maximum_checked(self):
        config = _config(engine_parameters=(
            EngineConfigDef("continuation_sheet", {"retainage_percent": 150}),
        ))

        result = validate_configuration(config)

        assert any("above maximum" in e for e in result.errors)

    def test_duplicate_engine(self):
        config = _config(engine_parameters=(
            EngineConfigDef("continuation_sheet", {}),
            EngineConfigDef("continuation_sheet", {}),
        ))

        assert any("more than once" in e for e in validate_configuration(config).errors)

    def test_warnings_do_not_block(self, tmp_path, captured_logs):
        _write_set(tmp_path, root={
            "status": "superseded",
            "billing": {"require_progress": False},
        })

        config = get_active_config("test", config_dir=tmp_path)

        assert config.status is ConfigStatus.SUPERSEDED
        warnings = [r for r in captured_logs() if r["message"] == "config_validation_warning"]
        assert len(warnings) == 2

    def test_empty_header_keywords_warns(self):
        config = _config(import_options=ImportOptionsDef(header_keywords=()))

        result = validate_configuration(config)

        assert result.is_valid
        assert any("header_keywords" in w for w in result.warnings)


# ---------------------------------------------------------------------------
# Bridges
# ---------------------------------------------------------------------------


class TestBridges:

    def test_root_section_used_without_override(self):
        config = _config(status_thresholds=StatusThresholdsDef(
            warning=Decimal("0.5"), critical=Decimal("0.8"), over_budget=Decimal("1"),
        ))

        thresholds = build_status_thresholds(config)

        assert classify_budget_status(Decimal("0.6"), thresholds) is BudgetStatus.WARNING

    def test_engine_params_override_root(self):
        config = _config(engine_parameters=(
            EngineConfigDef("budget_derivation", {"over_budget_ratio": 1.5}),
            EngineConfigDef("continuation_sheet", {"retainage_percent": 10}),
            EngineConfigDef("payment_application", {"require_progress": False}),
        ))

        assert build_status_thresholds(config).over_budget == Decimal("1.5")
        assert build_retainage_percent(config) == Decimal("10")
        assert build_require_progress(config) is False

    def test_invalid_thresholds_raise_configuration_error(self):
        config = _config(status_thresholds=StatusThresholdsDef(
            warning=Decimal("1.2"), critical=Decimal("1"), over_budget=Decimal("1.05"),
        ))

        with pytest.raises(ConfigurationError) as exc_info:
            build_status_thresholds(config)

        assert exc_info.value.code == "CONFIGURATION_ERROR"
        assert exc_info.value.details["warning"] == "1.2"

    def test_retainage_out_of_range_raises(self):
        config = _config(billing=BillingDef(retainage_percent=Decimal("-1")))

        with pytest.raises(ConfigurationError):
            build_retainage_percent(config)

    def test_show_cents_reaches_currency_format(self):
        default = get_active_config()
        cents = _config(display=DisplayDef(show_cents=True))

        assert format_currency(Decimal("1234.5"), show_cents=build_show_cents(default)) == "$1,235"
        assert format_currency(Decimal("1234.5"), show_cents=build_show_cents(cents)) == "$1,234.50"

    def test_default_header_keywords_are_the_importers(self):
        assert build_header_keywords(get_active_config()) == HEADER_KEYWORDS

    def test_configured_header_keywords_reach_import(self, tmp_path):
        _write_set(tmp_path, root={"import_options": {"header_keywords": ["Phase", " Allowance "]}})
        config = get_active_config("test", config_dir=tmp_path)
        text = "Phase\tAllowance\nDemolition\t4500"

        keywords = build_header_keywords(config)
        result = import_budget_text(text, header_keywords=keywords)

        assert keywords == ("phase", "allowance")
        assert result.skipped_header
        assert [ln.category_name for ln in result.lines] == ["Demolition"]
        # The built-in list does not know these columns.
        assert not import_budget_text(text).skipped_header
