"""
Config -> Engine Bridges.

Functions that turn a validated LedgerConfig into configured engine
instances.  They live in hours_config (the producer) because the engines
must NEVER import hours_config.

Usage:
    from hours_config import get_active_config
    from hours_config.bridges import build_ledger_engines

    engines = build_ledger_engines(get_active_config())
    result = engines.fifo.allocate(...)
"""

from __future__ import annotations

from dataclasses import dataclass

from hours_config.schema import LedgerConfig
from hours_engines import (
    AmountBand,
    CourseAllocationCalculator,
    FIFOConsumptionAllocator,
    FlightCategoryAggregator,
    InstallmentBandTable,
    LedgerReconciler,
    LineItemClassifier,
    SettlementStatementBuilder,
    TrancheDescriptorParser,
)


@dataclass(frozen=True)
class LedgerEngines:
    """Every engine of one ledger computation, configured alike."""

    classifier: LineItemClassifier
    parser: TrancheDescriptorParser
    course_calculator: CourseAllocationCalculator
    aggregator: FlightCategoryAggregator
    fifo: FIFOConsumptionAllocator
    reconciler: LedgerReconciler
    settlement: SettlementStatementBuilder


def build_band_table(config: LedgerConfig) -> InstallmentBandTable:
    """Installment inference table from the configured amount bands."""
    return InstallmentBandTable(
        [
            AmountBand(max_amount=band.max_amount, installments=band.installments)
            for band in config.course.amount_bands
        ],
        max_tranches=config.course.max_tranches,
    )


def build_ledger_engines(config: LedgerConfig) -> LedgerEngines:
    """Instantiate and wire the engines for ``config``."""
    parser = TrancheDescriptorParser()
    aggregator = FlightCategoryAggregator(
        excluded_flight_types=config.excluded_flight_types,
        charter_flight_type=config.charter_flight_type,
    )
    fifo = FIFOConsumptionAllocator(low_hours_threshold=config.low_hours_threshold)
    return LedgerEngines(
        classifier=LineItemClassifier(
            hour_units=config.hour_units,
            course_markers=config.course.markers,
        ),
        parser=parser,
        course_calculator=CourseAllocationCalculator(
            course_total_hours=config.course.total_hours,
            band_table=build_band_table(config),
            parser=parser,
        ),
        aggregator=aggregator,
        fifo=fifo,
        reconciler=LedgerReconciler(
            fifo=fifo,
            course_total_hours=config.course.total_hours,
        ),
        settlement=SettlementStatementBuilder(aggregator=aggregator),
    )
