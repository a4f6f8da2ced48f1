"""
Configuration schema -- frozen dataclasses for every configuration artifact.

Each YAML fragment in a configuration set maps to one of these types:

  root.yaml            -> ReconConfiguration header, StatusThresholdsDef,
                          BillingDef, DisplayDef, ImportOptionsDef
  engine_params.yaml   -> EngineConfigDef (one per engine)

All types are immutable.  Amount-like values are held as ``Decimal``; the
loader converts YAML numbers through ``str`` so ``0.9`` stays ``0.9``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, unique
from typing import Any

from recon_ingestion.budget_import import HEADER_KEYWORDS


@unique
class ConfigStatus(str, Enum):
    """Lifecycle status for a configuration set."""

    DRAFT = "draft"
    REVIEWED = "reviewed"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class StatusThresholdsDef:
    """Committed-exposure ratios at which a budget turns Warning/Critical/Over Budget."""

    warning: Decimal = Decimal("0.90")
    critical: Decimal = Decimal("1.00")
    over_budget: Decimal = Decimal("1.05")


@dataclass(frozen=True)
class BillingDef:
    """Payment application rules."""

    retainage_percent: Decimal = Decimal("0")
    require_progress: bool = True


@dataclass(frozen=True)
class DisplayDef:
    show_cents: bool = False


# Header detection keywords default to the importer's own list.
DEFAULT_HEADER_KEYWORDS: tuple[str, ...] = HEADER_KEYWORDS


@dataclass(frozen=True)
class ImportOptionsDef:
    """Bulk-import behaviour."""

    header_keywords: tuple[str, ...] = DEFAULT_HEADER_KEYWORDS


@dataclass(frozen=True)
class EngineConfigDef:
    """Engine parameter configuration from YAML."""

    engine_name: str
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ReconConfiguration:
    """Assembled configuration set.

    Attributes:
        config_id: Unique identifier (e.g., "default").
        version: Configuration version number.
        checksum: SHA-256 of the canonical serialization of the fragments.
        status: Lifecycle status.
        status_thresholds: Budget health thresholds.
        billing: Payment application rules.
        display: Display formatting options.
        import_options: Bulk-import options.
        engine_parameters: Per-engine parameter overrides.
        description: Free text.
    """

    config_id: str
    version: int
    checksum: str
    status: ConfigStatus = ConfigStatus.DRAFT
    status_thresholds: StatusThresholdsDef = field(default_factory=StatusThresholdsDef)
    billing: BillingDef = field(default_factory=BillingDef)
    display: DisplayDef = field(default_factory=DisplayDef)
    import_options: ImportOptionsDef = field(default_factory=ImportOptionsDef)
    engine_parameters: tuple[EngineConfigDef, ...] = ()
    description: str = ""

    def parameters_for(self, engine_name: str) -> dict[str, Any]:
        """Parameters configured for an engine; empty when none are."""
        for ec in self.engine_parameters:
            if ec.engine_name == engine_name:
                return dict(ec.parameters)
        return {}
