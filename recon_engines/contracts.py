"""
Module: recon_engines.contracts
Responsibility:
    Typed declarations (EngineContract) for each pure engine.  Each
    contract declares engine name, version, JSON Schema for configurable
    parameters, and fingerprint rules.  The configuration validator checks
    every ``engine_parameters`` block against the matching contract's
    ``parameter_schema``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - The engine registry is declarative; adding an engine requires only a
      new EngineContract and registration in ``ENGINE_CONTRACTS``.
    - ``engine_version`` matches the version passed to ``@traced_engine``
      by the engine's entry points.

Failure modes:
    - UnknownEngineError from ``get_engine_contract`` for an unregistered
      engine name.

Usage:
    from recon_engines.contracts import ENGINE_CONTRACTS, get_engine_contract

    contract = get_engine_contract("payment_application")
    assert contract.engine_version == "1.0"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from recon_kernel.exceptions import UnknownEngineError


@dataclass(frozen=True)
class EngineContract:
    """Declares the contract for a pure calculation engine.

    Attributes:
        engine_name: Unique engine identifier (matches config references).
        engine_version: Version of the engine implementation.
        parameter_schema: JSON Schema for the engine's configurable parameters.
        input_fingerprint_rules: Fields used to compute a deterministic
            input fingerprint for tracing.
        description: Human-readable purpose of this engine.
    """

    engine_name: str
    engine_version: str
    parameter_schema: dict[str, Any]
    input_fingerprint_rules: tuple[str, ...] = ()
    description: str = ""


# ---------------------------------------------------------------------------
# Budget Derivation
# ---------------------------------------------------------------------------

BUDGET_DERIVATION_CONTRACT = EngineContract(
    engine_name="budget_derivation",
    engine_version="1.0",
    parameter_schema={
        "type": "object",
        "properties": {
            "warning_ratio": {
                "type": "number",
                "minimum": 0,
                "description": "Committed-exposure ratio at which a line turns Warning",
            },
            "critical_ratio": {
                "type": "number",
                "minimum": 0,
                "description": "Ratio at which a line turns Critical",
            },
            "over_budget_ratio": {
                "type": "number",
                "minimum": 0,
                "description": "Ratio at which a line turns Over Budget",
            },
        },
        "additionalProperties": False,
    },
    input_fingerprint_rules=("line", "lines", "linked_contracts"),
    description="Derives remaining balance, percent spent and status for budget lines.",
)


# ---------------------------------------------------------------------------
# Payment Application
# ---------------------------------------------------------------------------

PAYMENT_APPLICATION_CONTRACT = EngineContract(
    engine_name="payment_application",
    engine_version="1.0",
    parameter_schema={
        "type": "object",
        "properties": {
            "require_progress": {
                "type": "boolean",
                "description": "Reject applications where no line advances",
            },
        },
        "additionalProperties": False,
    },
    input_fingerprint_rules=("line", "lines", "current_percent", "proposed_percents"),
    description="Percent-of-completion billing and payment application validation.",
)


# ---------------------------------------------------------------------------
# Continuation Sheet
# ---------------------------------------------------------------------------

CONTINUATION_SHEET_CONTRACT = EngineContract(
    engine_name="continuation_sheet",
    engine_version="1.0",
    parameter_schema={
        "type": "object",
        "properties": {
            "retainage_percent": {
                "type": "number",
                "minimum": 0,
                "maximum": 100,
                "description": "Percent of completed work withheld as retainage",
            },
        },
        "additionalProperties": False,
    },
    input_fingerprint_rules=("lines", "current_percents", "retainage_percent"),
    description="Lays out G703 continuation-sheet rows and grand totals.",
)


# ---------------------------------------------------------------------------
# Registry of all engine contracts
# ---------------------------------------------------------------------------

ENGINE_CONTRACTS: dict[str, EngineContract] = {
    contract.engine_name: contract
    for contract in (
        BUDGET_DERIVATION_CONTRACT,
        PAYMENT_APPLICATION_CONTRACT,
        CONTINUATION_SHEET_CONTRACT,
    )
}


def get_engine_contract(engine_name: str) -> EngineContract:
    """Look up a registered contract by engine name."""
    try:
        return ENGINE_CONTRACTS[engine_name]
    except KeyError:
        raise UnknownEngineError(engine_name) from None
