"""
recon_config -- single public entrypoint for reconciliation configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.  Bridges in ``recon_config.bridges`` translate the returned
    ``ReconConfiguration`` into engine parameter types.

Architecture position:
    Configuration -- YAML-driven, validated before use.  Sits above
    ``recon_kernel`` and ``recon_engines``; the engines MUST NEVER import
    from ``recon_config``.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration set does not exist.
    - ``ValueError`` -- validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``RECON_CONFIG_TRACE`` log entry containing the config_id, version and
    checksum, tying derived figures back to the configuration that
    governed them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from recon_config.loader import load_configuration
from recon_config.schema import ReconConfiguration
from recon_config.validator import validate_configuration

_logger = logging.getLogger("recon_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    name: str = "default",
    config_dir: Path | None = None,
) -> ReconConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        name: Configuration set name (a subdirectory of ``config_dir``).
        config_dir: Override path to the configuration sets directory.
            Defaults to recon_config/sets/.

    Returns:
        A validated, frozen ``ReconConfiguration``.

    Raises:
        FileNotFoundError: If the configuration set is not found.
        ValueError: If configuration validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Configuration sets directory not found: {sets_dir}")

    config = load_configuration(sets_dir / name)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={
            "config_set_id": config.config_id,
            "warning": warning,
        })

    _logger.info(
        "RECON_CONFIG_TRACE",
        extra={
            "trace_type": "RECON_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "config_status": config.status.value,
            "checksum": config.checksum,
            "engine_count": len(config.engine_parameters),
        },
    )

    return config


__all__ = ["ReconConfiguration", "get_active_config"]
