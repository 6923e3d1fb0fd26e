"""
hours_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.  Returns a validated, frozen ``LedgerConfig``.

Architecture position:
    Configuration -- YAML-driven, validated before use.  Sits above
    ``hours_kernel`` and below ``hours_services``.  The kernel and the
    engines MUST NEVER import from ``hours_config``; ``bridges`` turns a
    config into engine instances.

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_active_config()``.
    - Validation: a configuration with errors is never returned.
    - Deterministic checksum: the same YAML always produces the same
      ``LedgerConfig.checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- parse or validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``HOURS_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying every computed ledger to the configuration that
    governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from hours_config.loader import load_ledger_config
from hours_config.schema import LedgerConfig
from hours_config.validator import validate_configuration

_logger = logging.getLogger("hours_kernel.config")

# Default configuration set
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a configuration file.
            Defaults to hours_config/sets/default.yaml.

    Returns:
        A validated, frozen LedgerConfig.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If parsing or validation fails.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        config = load_ledger_config(path)
    except KeyError as e:
        raise ValueError(f"Configuration {path} is missing required key {e}") from e

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"warning": warning})

    _logger.info(
        "HOURS_CONFIG_TRACE",
        extra={
            "trace_type": "HOURS_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "course_total_hours": config.course.total_hours,
            "amount_band_count": len(config.course.amount_bands),
        },
    )

    return config


__all__ = ["DEFAULT_CONFIG_PATH", "LedgerConfig", "get_active_config"]
