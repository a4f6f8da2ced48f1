"""
Configuration Validator (``recon_config.validator``).

Responsibility
--------------
Validates a ``ReconConfiguration`` before it is handed to callers.

Invariants enforced
-------------------
* Status thresholds are positive and strictly ascending.
* Retainage percent lies within [0, 100].
* Engine parameters name registered engines and satisfy the engine's
  ``parameter_schema`` (basic type, enum and range checks).
* Bulk-import header keywords are not empty.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> configuration
  MUST NOT be used.
* Validation warnings (``ConfigValidationResult.warnings``)  ->
  configuration may be used but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from recon_config.bridges import resolve_threshold_values
from recon_config.schema import ConfigStatus, ReconConfiguration
from recon_engines.contracts import ENGINE_CONTRACTS

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is ``True`` only when ``errors`` is empty.  Warnings do
    not block use.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: ReconConfiguration) -> ConfigValidationResult:
    """
    Validate a configuration set.

    Postconditions:
        - Returns a ``ConfigValidationResult`` with errors and warnings.
    """
    result = ConfigValidationResult()

    _validate_thresholds(config, result)
    _validate_billing(config, result)
    _validate_import_options(config, result)
    _validate_engine_parameters(config, result)
    _validate_status(config, result)

    return result


def _validate_thresholds(config: ReconConfiguration, result: ConfigValidationResult) -> None:
    # Checked after engine overrides: that is what the engines will see.
    try:
        warning, critical, over_budget = resolve_threshold_values(config)
    except ValueError as e:
        result.add_error(f"status_thresholds: {e}")
        return
    if warning <= _ZERO:
        result.add_error(f"status_thresholds.warning must be positive, got {warning}")
    if not (warning < critical < over_budget):
        result.add_error(
            "status_thresholds must be strictly ascending: "
            f"warning={warning}, critical={critical}, over_budget={over_budget}"
        )


def _validate_billing(config: ReconConfiguration, result: ConfigValidationResult) -> None:
    retainage = config.billing.retainage_percent
    if retainage < _ZERO or retainage > _HUNDRED:
        result.add_error(f"billing.retainage_percent must be within [0, 100], got {retainage}")
    if not config.billing.require_progress:
        result.add_warning(
            "billing.require_progress is off: applications with no progress will validate"
        )


def _validate_import_options(config: ReconConfiguration, result: ConfigValidationResult) -> None:
    if not config.import_options.header_keywords:
        result.add_warning(
            "import_options.header_keywords is empty: header rows will be imported as data"
        )


def _validate_status(config: ReconConfiguration, result: ConfigValidationResult) -> None:
    if config.status == ConfigStatus.SUPERSEDED:
        result.add_warning(f"Configuration '{config.config_id}' is superseded")


def _validate_engine_parameters(
    config: ReconConfiguration, result: ConfigValidationResult,
) -> None:
    seen: set[str] = set()
    for ec in config.engine_parameters:
        if ec.engine_name in seen:
            result.add_error(f"Engine '{ec.engine_name}' is configured more than once")
        seen.add(ec.engine_name)

        contract = ENGINE_CONTRACTS.get(ec.engine_name)
        if contract is None:
            result.add_error(f"Engine '{ec.engine_name}' has no registered contract")
            continue

        schema = contract.parameter_schema
        properties = schema.get("properties", {})
        for param_name, param_value in ec.parameters.items():
            if param_name not in properties:
                if schema.get("additionalProperties") is False:
                    result.add_error(
                        f"Engine '{ec.engine_name}' config has unknown parameter '{param_name}'"
                    )
                continue
            _validate_param_value(
                ec.engine_name, param_name, param_value, properties[param_name], result,
            )


def _validate_param_value(
    engine_name: str,
    param_name: str,
    value: Any,
    schema: dict[str, Any],
    result: ConfigValidationResult,
) -> None:
    """Validate a single parameter value against its JSON Schema property."""
    expected_type = schema.get("type")
    if expected_type and not _check_json_type(value, expected_type):
        result.add_error(
            f"Engine '{engine_name}' parameter '{param_name}' "
            f"has type {type(value).__name__}, expected {expected_type}"
        )
        return

    if "enum" in schema and value not in schema["enum"]:
        result.add_error(
            f"Engine '{engine_name}' parameter '{param_name}' "
            f"value '{value}' not in allowed values: {schema['enum']}"
        )

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if "minimum" in schema and value < schema["minimum"]:
            result.add_error(
                f"Engine '{engine_name}' parameter '{param_name}' "
                f"value {value} is below minimum {schema['minimum']}"
            )
        if "maximum" in schema and value > schema["maximum"]:
            result.add_error(
                f"Engine '{engine_name}' parameter '{param_name}' "
                f"value {value} is above maximum {schema['maximum']}"
            )


def _check_json_type(value: Any, json_type: str) -> bool:
    """Check if a Python value matches a JSON Schema type."""
    if json_type == "string":
        return isinstance(value, str)
    if json_type == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if json_type == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if json_type == "boolean":
        return isinstance(value, bool)
    if json_type == "array":
        return isinstance(value, (list, tuple))
    if json_type == "object":
        return isinstance(value, dict)
    return True  # Unknown type -- pass
