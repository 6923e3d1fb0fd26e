"""
LedgerConfig schema.

Frozen dataclasses the YAML configuration set is parsed into.  These are
declarative data only; hours_config.bridges turns them into engine
instances.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class AmountBandDef:
    """Payments up to ``max_amount`` imply ``installments``. None = open band."""

    max_amount: Decimal | None
    installments: int


@dataclass(frozen=True)
class CourseDef:
    """Fixed-total course contract settings."""

    total_hours: Decimal
    max_tranches: int
    amount_bands: tuple[AmountBandDef, ...]
    markers: tuple[str, ...]


@dataclass(frozen=True)
class LedgerConfig:
    """
    Complete ledger configuration.

    ``checksum`` is the SHA-256 of the canonical source document and
    identifies the configuration in traces.
    """

    config_id: str
    version: int
    course: CourseDef
    hour_units: tuple[str, ...]
    excluded_flight_types: tuple[str, ...]
    charter_flight_type: str
    low_hours_threshold: Decimal
    page_size: int
    invoice_statuses: tuple[str, ...]
    description: str = ""
    checksum: str = ""
