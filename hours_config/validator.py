"""
Configuration Validator (``hours_config.validator``).

Responsibility
--------------
Validates a ``LedgerConfig`` before any engine is built from it.

Invariants enforced
-------------------
* Course total is positive; ``max_tranches`` is within 1..6.
* Amount bands: bounded bands strictly increasing in upper bound,
  installment counts monotonically non-increasing (smaller payments mean
  more installments), every count within 1..max_tranches, at most one
  open-ended band and it comes last.
* Hour-unit set is non-empty; excluded flight types are FERRY/DEMO.
* Low-hours threshold is non-negative; page size is positive.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> the
  configuration MUST NOT be used.
* Validation warnings  -> usable, but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from hours_config.schema import LedgerConfig

# Hard ceiling on installments per course contract.
MAX_TRANCHES_LIMIT = 6

_SUPPORTED_EXCLUSIONS = frozenset({"FERRY", "DEMO"})


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
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


def validate_configuration(config: LedgerConfig) -> ConfigValidationResult:
    """Validate a configuration. Collects every problem instead of stopping at the first."""
    result = ConfigValidationResult()
    _validate_course(config, result)
    _validate_flights(config, result)

    if not config.hour_units:
        result.add_error("hour_units must not be empty")
    if config.low_hours_threshold < Decimal("0"):
        result.add_error(
            f"consumption.low_hours_threshold must be >= 0, got {config.low_hours_threshold}"
        )
    if config.page_size < 1:
        result.add_error(f"retrieval.page_size must be positive, got {config.page_size}")
    if not config.invoice_statuses:
        result.add_warning("invoice_statuses is empty; no invoice will be read")

    return result


def _validate_course(config: LedgerConfig, result: ConfigValidationResult) -> None:
    course = config.course
    if course.total_hours <= Decimal("0"):
        result.add_error(f"course.total_hours must be positive, got {course.total_hours}")
    if not 1 <= course.max_tranches <= MAX_TRANCHES_LIMIT:
        result.add_error(
            f"course.max_tranches must be within 1..{MAX_TRANCHES_LIMIT}, "
            f"got {course.max_tranches}"
        )
    if not course.amount_bands:
        result.add_error("course.amount_bands must not be empty")
    if not course.markers:
        result.add_warning("course.markers is empty; no course item will be recognized")

    previous_bound: Decimal | None = None
    previous_count: int | None = None
    for index, band in enumerate(course.amount_bands):
        label = f"course.amount_bands[{index}]"
        if not 1 <= band.installments <= course.max_tranches:
            result.add_error(
                f"{label}: installments {band.installments} outside 1..{course.max_tranches}"
            )
        if previous_count is not None and band.installments > previous_count:
            result.add_error(
                f"{label}: installments must not increase with amount "
                f"({band.installments} > {previous_count})"
            )
        previous_count = band.installments

        if band.max_amount is None:
            if index != len(course.amount_bands) - 1:
                result.add_error(f"{label}: open-ended band must be last")
            continue
        if band.max_amount <= Decimal("0"):
            result.add_error(f"{label}: max_amount must be positive, got {band.max_amount}")
        if previous_bound is not None and band.max_amount <= previous_bound:
            result.add_error(
                f"{label}: max_amount {band.max_amount} must be greater than {previous_bound}"
            )
        previous_bound = band.max_amount


def _validate_flights(config: LedgerConfig, result: ConfigValidationResult) -> None:
    unknown = [
        t for t in config.excluded_flight_types
        if t.upper() not in _SUPPORTED_EXCLUSIONS
    ]
    if unknown:
        result.add_error(
            f"flights.excluded_types may only contain FERRY and DEMO, got {unknown}"
        )
    if not config.charter_flight_type:
        result.add_warning("flights.charter_type is empty; only payer ids mark charters")
