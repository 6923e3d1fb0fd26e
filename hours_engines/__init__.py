"""
Module: hours_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for hours_config
    bridges and hours_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import hours_kernel (domain, exceptions, invariants, logging)
    and sibling engine modules.  MUST NOT import hours_services,
    hours_config or SQLAlchemy.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      The reference date is passed in by the services.
    - Decimal-only arithmetic: hours and amounts are ``Decimal``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entrypoints are traced via ``@traced_engine`` (see
    ``hours_engines.tracer``), emitting HOURS_ENGINE_TRACE log records.

Usage:
    from hours_engines import FIFOConsumptionAllocator, LedgerReconciler
"""

from hours_engines.course_allocation import (
    AmountBand,
    CourseAllocationCalculator,
    CourseBuildResult,
    CourseProgress,
    CourseTranche,
    InstallmentBandTable,
)
from hours_engines.fifo import (
    ConsumptionResult,
    FIFOConsumptionAllocator,
    PackageConsumption,
    PackageStatus,
)
from hours_engines.flight_categories import (
    CategoryTotals,
    ClientFlightAggregate,
    FlightAggregation,
    FlightCategory,
    FlightCategoryAggregator,
)
from hours_engines.line_items import (
    HourCredit,
    HourPackage,
    LineItemClassification,
    LineItemClassifier,
    PackageSource,
)
from hours_engines.reconciliation import (
    AggregateStats,
    LedgerReconciler,
    LedgerSummary,
    PackageDrilldown,
    Pagination,
    PopulationLedger,
    SortField,
    SortOrder,
)
from hours_engines.settlement import (
    ClientRole,
    SettlementStatement,
    SettlementStatementBuilder,
    StatementEntry,
)
from hours_engines.tracer import traced_engine
from hours_engines.tranche_parser import (
    TrancheDescriptor,
    TrancheDescriptorParser,
    TranchePattern,
)

__all__ = [
    # Line items
    "HourCredit",
    "HourPackage",
    "LineItemClassification",
    "LineItemClassifier",
    "PackageSource",
    # Tranches
    "TrancheDescriptor",
    "TrancheDescriptorParser",
    "TranchePattern",
    # Course allocation
    "AmountBand",
    "CourseAllocationCalculator",
    "CourseBuildResult",
    "CourseProgress",
    "CourseTranche",
    "InstallmentBandTable",
    # Flights
    "CategoryTotals",
    "ClientFlightAggregate",
    "FlightAggregation",
    "FlightCategory",
    "FlightCategoryAggregator",
    # FIFO
    "ConsumptionResult",
    "FIFOConsumptionAllocator",
    "PackageConsumption",
    "PackageStatus",
    # Reconciliation
    "AggregateStats",
    "LedgerReconciler",
    "LedgerSummary",
    "PackageDrilldown",
    "Pagination",
    "PopulationLedger",
    "SortField",
    "SortOrder",
    # Settlement
    "ClientRole",
    "SettlementStatement",
    "SettlementStatementBuilder",
    "StatementEntry",
    # Tracing
    "traced_engine",
]
