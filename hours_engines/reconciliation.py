"""
hours_engines.reconciliation -- LedgerReconciler.

Responsibility:
    Combine purchased packages, flown and chartered totals into the
    per-client LedgerSummary, and page a population of summaries while
    keeping aggregate statistics over the whole filtered population.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Reconciliation: total_remaining_hours is computed independently of
      the FIFO view as purchased - flown - chartered.
    - Agreement: sum(package.remaining) - unallocated equals
      total_remaining_hours within 0.01 hours; otherwise
      ReconciliationMismatchError.
    - Pagination safety: aggregate statistics are summed over every
      client that matches the search, before the page is sliced.
    - No stored balance: every summary is recomputed from its inputs.

Failure modes:
    - ReconciliationMismatchError (a defect) when the two views disagree.
    - InputError for page < 1 or page_size < 1.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from hours_engines.course_allocation import CourseProgress
from hours_engines.fifo import FIFOConsumptionAllocator, PackageStatus
from hours_engines.flight_categories import ClientFlightAggregate
from hours_engines.line_items import HourPackage, PackageSource
from hours_engines.tracer import traced_engine
from hours_kernel.domain.dtos import Client, ProcessingNote
from hours_kernel.domain.values import ZERO_HOURS, hours_agree
from hours_kernel.exceptions import InputError, ReconciliationMismatchError
from hours_kernel.invariants import RECONCILIATION_TOLERANCE
from hours_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")


class SortField(str, Enum):
    """Sort keys of a population page."""

    EMAIL = "email"
    NAME = "name"
    REMAINING = "remaining"
    PURCHASED = "purchased"
    FLOWN = "flown"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class PackageDrilldown:
    """One row of the per-package drill-down."""

    invoice_id: str
    purchase_date: date
    total_hours: Decimal
    used_hours: Decimal
    remaining_hours: Decimal
    status: PackageStatus
    chartered_hours: Decimal = ZERO_HOURS
    source_kind: PackageSource = PackageSource.INVOICE
    package_id: str = ""


@dataclass(frozen=True)
class LedgerSummary:
    """
    Authoritative ledger of one client.

    Contract:
        Computed fresh per request; never the source of truth.
    Guarantees:
        - total_remaining_hours == total_purchased_hours
          - total_flown_hours - total_chartered_hours.
    """

    client_id: str
    name: str
    email: str
    total_purchased_hours: Decimal
    total_flown_hours: Decimal
    total_ferry_hours: Decimal
    total_chartered_hours: Decimal
    total_demo_hours: Decimal
    total_charter_hours: Decimal
    total_remaining_hours: Decimal
    package_count: int
    total_value: Decimal
    currency: str
    flights: ClientFlightAggregate
    packages: tuple[PackageDrilldown, ...] = ()
    unallocated_hours: Decimal = ZERO_HOURS
    course_progress: CourseProgress | None = None
    notes: tuple[ProcessingNote, ...] = ()

    @property
    def flights_12_months(self) -> int:
        return self.flights.flights_12_months

    @property
    def flights_90_days(self) -> int:
        return self.flights.flights_90_days

    @property
    def total_used_hours(self) -> Decimal:
        return self.total_flown_hours + self.total_chartered_hours


@dataclass(frozen=True)
class AggregateStats:
    """LedgerSummary-shaped totals over a population."""

    client_count: int = 0
    total_purchased_hours: Decimal = ZERO_HOURS
    total_flown_hours: Decimal = ZERO_HOURS
    total_ferry_hours: Decimal = ZERO_HOURS
    total_chartered_hours: Decimal = ZERO_HOURS
    total_demo_hours: Decimal = ZERO_HOURS
    total_charter_hours: Decimal = ZERO_HOURS
    total_remaining_hours: Decimal = ZERO_HOURS
    package_count: int = 0


@dataclass(frozen=True)
class Pagination:
    total: int
    page: int
    page_size: int
    total_pages: int


@dataclass(frozen=True)
class PopulationLedger:
    """One page of client ledgers plus statistics over all matching clients."""

    clients: tuple[LedgerSummary, ...]
    pagination: Pagination
    aggregate_stats: AggregateStats
    notes: tuple[ProcessingNote, ...] = ()


def aggregate(summaries: Sequence[LedgerSummary]) -> AggregateStats:
    """Sum a population of summaries."""
    return AggregateStats(
        client_count=len(summaries),
        total_purchased_hours=sum((s.total_purchased_hours for s in summaries), ZERO_HOURS),
        total_flown_hours=sum((s.total_flown_hours for s in summaries), ZERO_HOURS),
        total_ferry_hours=sum((s.total_ferry_hours for s in summaries), ZERO_HOURS),
        total_chartered_hours=sum((s.total_chartered_hours for s in summaries), ZERO_HOURS),
        total_demo_hours=sum((s.total_demo_hours for s in summaries), ZERO_HOURS),
        total_charter_hours=sum((s.total_charter_hours for s in summaries), ZERO_HOURS),
        total_remaining_hours=sum((s.total_remaining_hours for s in summaries), ZERO_HOURS),
        package_count=sum(s.package_count for s in summaries),
    )


def _sort_key(field: SortField):
    match field:
        case SortField.EMAIL:
            return lambda s: s.email.lower()
        case SortField.NAME:
            return lambda s: s.name.lower()
        case SortField.REMAINING:
            return lambda s: s.total_remaining_hours
        case SortField.PURCHASED:
            return lambda s: s.total_purchased_hours
        case SortField.FLOWN:
            return lambda s: s.total_flown_hours
        case _:
            raise InputError(f"Unknown sort field: {field}")


class LedgerReconciler:
    """
    Final per-client ledger and population paging.

    Contract:
        Pure functions of their arguments.  The FIFO allocator is injected
        so status thresholds come from configuration.
    """

    def __init__(
        self,
        fifo: FIFOConsumptionAllocator | None = None,
        course_total_hours: Decimal | None = None,
        tolerance: Decimal = RECONCILIATION_TOLERANCE,
    ):
        self._fifo = fifo or FIFOConsumptionAllocator()
        self._course_total_hours = course_total_hours
        self._tolerance = tolerance

    @traced_engine("ledger_reconciler", "1.0", fingerprint_fields=("client",))
    def summarize(
        self,
        client: Client,
        packages: Sequence[HourPackage],
        flights: ClientFlightAggregate,
        notes: Sequence[ProcessingNote] = (),
    ) -> LedgerSummary:
        """
        Build the LedgerSummary of one client.

        Args:
            client: Client reference data.
            packages: The client's ordinary and course packages.
            flights: The client's flight aggregate.
            notes: Processing notes concerning this client.

        Raises:
            ReconciliationMismatchError: If the FIFO view disagrees with
                the recomputed total.
        """
        flown = flights.total_flown_hours
        chartered = flights.total_chartered_hours
        purchased = sum((p.total_hours for p in packages), ZERO_HOURS)
        remaining = purchased - flown - chartered

        consumption = self._fifo.allocate(
            client_id=client.client_id,
            packages=packages,
            flown_hours=flown,
            chartered_hours=chartered,
        )

        package_view = consumption.total_remaining_hours - consumption.unallocated_hours
        if not hours_agree(package_view, remaining, self._tolerance):
            logger.error("ledger_reconciliation_mismatch", extra={
                "client_id": client.client_id,
                "package_total": package_view,
                "summary_total": remaining,
            })
            raise ReconciliationMismatchError(
                client.client_id, str(package_view), str(remaining),
            )

        ordered = [c.package for c in consumption.packages]
        course_progress = None
        if self._course_total_hours is not None:
            course_progress = CourseProgress.from_consumptions(
                client.client_id, self._course_total_hours, consumption.packages,
            )

        return LedgerSummary(
            client_id=client.client_id,
            name=client.name,
            email=client.email,
            total_purchased_hours=purchased,
            total_flown_hours=flown,
            total_ferry_hours=flights.ferry.total,
            total_chartered_hours=chartered,
            total_demo_hours=flights.demo.total,
            total_charter_hours=flights.charter.total,
            total_remaining_hours=remaining,
            package_count=len(packages),
            total_value=sum((p.amount for p in packages), ZERO_HOURS),
            currency=ordered[0].currency if ordered else "",
            flights=flights,
            packages=tuple(
                PackageDrilldown(
                    invoice_id=c.invoice_id,
                    purchase_date=c.purchase_date,
                    total_hours=c.total_hours,
                    used_hours=c.used_hours,
                    remaining_hours=c.remaining_hours,
                    status=c.status,
                    chartered_hours=c.chartered_hours,
                    source_kind=c.package.source_kind,
                    package_id=c.package.package_id,
                )
                for c in consumption.packages
            ),
            unallocated_hours=consumption.unallocated_hours,
            course_progress=course_progress,
            notes=tuple(notes),
        )

    @staticmethod
    def matches(summary: LedgerSummary, search: str | None) -> bool:
        """Case-insensitive substring match over email and name."""
        if not search:
            return True
        needle = search.lower()
        return needle in summary.email.lower() or needle in summary.name.lower()

    @traced_engine(
        "ledger_population", "1.0",
        fingerprint_fields=("page", "page_size", "search", "sort_by", "sort_order"),
    )
    def paginate(
        self,
        summaries: Sequence[LedgerSummary],
        page: int,
        page_size: int,
        search: str | None = None,
        sort_by: SortField | str = SortField.EMAIL,
        sort_order: SortOrder | str = SortOrder.ASC,
        notes: Sequence[ProcessingNote] = (),
    ) -> PopulationLedger:
        """
        Filter, sort and slice a population of summaries.

        Aggregate statistics cover every summary that matches ``search``,
        not only the returned page.

        Raises:
            InputError: If page or page_size is below 1, or the sort
                arguments are unknown.
        """
        if page < 1 or page_size < 1:
            raise InputError(f"page and page_size must be >= 1 (got {page}, {page_size})")
        try:
            field = SortField(sort_by)
            order = SortOrder(sort_order)
        except ValueError as exc:
            raise InputError(str(exc)) from exc

        filtered = [s for s in summaries if self.matches(s, search)]
        stats = aggregate(filtered)

        # Stable id tie-break, then the requested key
        ordered = sorted(filtered, key=lambda s: s.client_id)
        ordered.sort(key=_sort_key(field), reverse=order == SortOrder.DESC)

        start = (page - 1) * page_size
        page_rows = tuple(ordered[start:start + page_size])
        total = len(filtered)

        logger.info("population_ledger_paged", extra={
            "population": len(summaries),
            "matched": total,
            "page": page,
            "page_size": page_size,
            "returned": len(page_rows),
        })

        return PopulationLedger(
            clients=page_rows,
            pagination=Pagination(
                total=total,
                page=page,
                page_size=page_size,
                total_pages=math.ceil(total / page_size) if total else 0,
            ),
            aggregate_stats=stats,
            notes=tuple(notes),
        )
