"""
Configuration Loader (``hours_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into typed
``hours_config.schema`` dataclass instances.  The single public entry point
for runtime config is ``hours_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Numbers are parsed into ``Decimal`` through ``str``, never float.
* ``compute_checksum`` produces a deterministic SHA-256 hash.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from hours_config.schema import AmountBandDef, CourseDef, LedgerConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field: str) -> Decimal:
    """Parse a YAML scalar into a Decimal.

    Raises:
        ValueError: if ``value`` is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field}: expected a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{field}: expected a number, got {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"{field}: expected a finite number, got {value!r}")
    return result


def parse_amount_band(data: dict[str, Any]) -> AmountBandDef:
    """Parse one amount band. ``max_amount: null`` is the open-ended band."""
    max_amount = data.get("max_amount")
    return AmountBandDef(
        max_amount=None if max_amount is None else parse_decimal(max_amount, "max_amount"),
        installments=int(data["installments"]),
    )


def parse_course(data: dict[str, Any]) -> CourseDef:
    """
    Parse the ``course`` section.

    Raises:
        KeyError: if ``total_hours`` or ``amount_bands`` is missing.
    """
    return CourseDef(
        total_hours=parse_decimal(data["total_hours"], "course.total_hours"),
        max_tranches=int(data.get("max_tranches", 6)),
        amount_bands=tuple(parse_amount_band(b) for b in data["amount_bands"]),
        markers=tuple(str(m) for m in data.get("markers", [])),
    )


def parse_ledger_config(data: dict[str, Any], checksum: str = "") -> LedgerConfig:
    """
    Parse a whole configuration document.

    Raises:
        KeyError: if a required section is missing.
        ValueError: if a number cannot be parsed.
    """
    flights = data.get("flights", {})
    consumption = data.get("consumption", {})
    retrieval = data.get("retrieval", {})
    return LedgerConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        description=data.get("description", ""),
        course=parse_course(data["course"]),
        hour_units=tuple(str(u) for u in data["hour_units"]),
        excluded_flight_types=tuple(str(t) for t in flights.get("excluded_types", [])),
        charter_flight_type=str(flights.get("charter_type", "")),
        low_hours_threshold=parse_decimal(
            consumption.get("low_hours_threshold", "1.0"),
            "consumption.low_hours_threshold",
        ),
        page_size=int(retrieval.get("page_size", 1000)),
        invoice_statuses=tuple(str(s) for s in data.get("invoice_statuses", [])),
        checksum=checksum,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_ledger_config(path: Path) -> LedgerConfig:
    """Load, checksum and parse a configuration file (no validation)."""
    data = load_yaml_file(path)
    return parse_ledger_config(data, checksum=compute_checksum(data))
