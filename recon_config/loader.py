"""
Configuration Loader (``recon_config.loader``).

Responsibility
--------------
Loads the YAML fragments of one configuration set and parses them into
the typed ``recon_config.schema`` dataclasses.  This is build/test tooling;
runtime callers go through ``recon_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Numbers are converted to ``Decimal`` through ``str``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing set directory or ``root.yaml``  -> ``FileNotFoundError``.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id``  -> ``KeyError`` propagates.
* Non-numeric threshold or percent  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from recon_config.schema import (
    BillingDef,
    ConfigStatus,
    DisplayDef,
    EngineConfigDef,
    ImportOptionsDef,
    ReconConfiguration,
    StatusThresholdsDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse a YAML scalar into a Decimal, naming the key on failure."""
    if isinstance(value, bool):
        raise ValueError(f"'{name}' must be a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"'{name}' must be a number, got {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"'{name}' must be a finite number, got {value!r}")
    return result


def parse_status_thresholds(data: dict[str, Any]) -> StatusThresholdsDef:
    """Parse the ``status_thresholds`` block; absent keys keep their defaults."""
    defaults = StatusThresholdsDef()
    return StatusThresholdsDef(
        warning=parse_decimal(data.get("warning", defaults.warning), "warning"),
        critical=parse_decimal(data.get("critical", defaults.critical), "critical"),
        over_budget=parse_decimal(
            data.get("over_budget", defaults.over_budget), "over_budget",
        ),
    )


def parse_billing(data: dict[str, Any]) -> BillingDef:
    return BillingDef(
        retainage_percent=parse_decimal(
            data.get("retainage_percent", 0), "retainage_percent",
        ),
        require_progress=bool(data.get("require_progress", True)),
    )


def parse_display(data: dict[str, Any]) -> DisplayDef:
    return DisplayDef(show_cents=bool(data.get("show_cents", False)))


def parse_import_options(data: dict[str, Any]) -> ImportOptionsDef:
    keywords = data.get("header_keywords")
    if keywords is None:
        return ImportOptionsDef()
    return ImportOptionsDef(
        header_keywords=tuple(str(k).strip().lower() for k in keywords if str(k).strip()),
    )


def parse_engine_config(data: dict[str, Any]) -> EngineConfigDef:
    """Parse an EngineConfigDef from a dict."""
    return EngineConfigDef(
        engine_name=data["engine_name"],
        parameters=data.get("parameters") or {},
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Returns a hex-encoded SHA-256 hash string.
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_configuration(set_dir: Path) -> ReconConfiguration:
    """Compose the fragments of one configuration set.

    ``root.yaml`` is required; ``engine_params.yaml`` is optional.

    Raises:
        FileNotFoundError: if ``set_dir`` or its ``root.yaml`` is missing.
    """
    if not set_dir.is_dir():
        raise FileNotFoundError(f"Configuration set directory not found: {set_dir}")

    root_path = set_dir / "root.yaml"
    if not root_path.exists():
        raise FileNotFoundError(f"root.yaml not found in {set_dir}")
    root_data = load_yaml_file(root_path)

    engine_path = set_dir / "engine_params.yaml"
    engine_data: dict[str, Any] = {}
    engine_configs: tuple[EngineConfigDef, ...] = ()
    if engine_path.exists():
        engine_data = load_yaml_file(engine_path)
        engine_configs = tuple(
            parse_engine_config(ec) for ec in engine_data.get("engines", [])
        )

    checksum = compute_checksum({"root": root_data, "engine_params": engine_data})

    # INVARIANT: checksum must be a non-empty SHA-256 hex digest.
    assert checksum and len(checksum) == 64, (
        f"Checksum must be a 64-char SHA-256 hex digest, got {checksum!r}"
    )

    return ReconConfiguration(
        config_id=root_data["config_id"],
        version=int(root_data.get("version", 1)),
        checksum=checksum,
        status=ConfigStatus(root_data.get("status", "draft")),
        status_thresholds=parse_status_thresholds(root_data.get("status_thresholds") or {}),
        billing=parse_billing(root_data.get("billing") or {}),
        display=parse_display(root_data.get("display") or {}),
        import_options=parse_import_options(root_data.get("import_options") or {}),
        engine_parameters=engine_configs,
        description=root_data.get("description", ""),
    )
