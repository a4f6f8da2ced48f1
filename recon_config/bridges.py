"""
Config -> Engine Bridges.

Functions that convert a ``ReconConfiguration`` into engine parameter
types.  They live in recon_config (the producer) because the engines must
never import recon_config.

A value in ``engine_params.yaml`` overrides the matching top-level section
of ``root.yaml``:

    budget_derivation.warning_ratio       -> status_thresholds.warning
    budget_derivation.critical_ratio      -> status_thresholds.critical
    budget_derivation.over_budget_ratio   -> status_thresholds.over_budget
    payment_application.require_progress  -> billing.require_progress
    continuation_sheet.retainage_percent  -> billing.retainage_percent

The display and import sections have no engine override:

    display.show_cents                    -> format_currency(show_cents=...)
    import_options.header_keywords        -> import_budget_rows(header_keywords=...)

Usage:
    from recon_config.bridges import build_status_thresholds

    config = get_active_config()
    view = derive_budget_line(line, build_status_thresholds(config))
"""

from __future__ import annotations

from decimal import Decimal

from recon_config.loader import parse_decimal
from recon_config.schema import ReconConfiguration
from recon_engines.status import StatusThresholds
from recon_kernel.exceptions import ConfigurationError

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


def resolve_threshold_values(config: ReconConfiguration) -> tuple[Decimal, Decimal, Decimal]:
    """Effective (warning, critical, over_budget) after engine overrides."""
    section = config.status_thresholds
    params = config.parameters_for("budget_derivation")
    return (
        parse_decimal(params.get("warning_ratio", section.warning), "warning_ratio"),
        parse_decimal(params.get("critical_ratio", section.critical), "critical_ratio"),
        parse_decimal(
            params.get("over_budget_ratio", section.over_budget), "over_budget_ratio",
        ),
    )


def build_status_thresholds(config: ReconConfiguration) -> StatusThresholds:
    """Budget status thresholds for ``derive_budget_line`` / ``aggregate_totals``.

    Raises:
        ConfigurationError: if the effective thresholds are not positive
            and strictly ascending.
    """
    warning, critical, over_budget = resolve_threshold_values(config)
    try:
        return StatusThresholds(warning=warning, critical=critical, over_budget=over_budget)
    except ValueError as e:
        raise ConfigurationError(
            str(e),
            details={
                "config_id": config.config_id,
                "warning": str(warning),
                "critical": str(critical),
                "over_budget": str(over_budget),
            },
        ) from e


def build_retainage_percent(config: ReconConfiguration) -> Decimal:
    """Retainage percent for ``build_continuation_sheet``.

    Raises:
        ConfigurationError: if the percent lies outside [0, 100].
    """
    params = config.parameters_for("continuation_sheet")
    retainage = parse_decimal(
        params.get("retainage_percent", config.billing.retainage_percent),
        "retainage_percent",
    )
    if retainage < _ZERO or retainage > _HUNDRED:
        raise ConfigurationError(
            f"retainage_percent must be within [0, 100], got {retainage}",
            details={"config_id": config.config_id, "retainage_percent": str(retainage)},
        )
    return retainage


def build_require_progress(config: ReconConfiguration) -> bool:
    """``require_progress`` flag for ``validate_application``."""
    params = config.parameters_for("payment_application")
    return bool(params.get("require_progress", config.billing.require_progress))


def build_show_cents(config: ReconConfiguration) -> bool:
    """``show_cents`` flag for ``format_currency``."""
    return config.display.show_cents


def build_header_keywords(config: ReconConfiguration) -> tuple[str, ...]:
    """Header detection keywords for the budget importers."""
    return config.import_options.header_keywords
