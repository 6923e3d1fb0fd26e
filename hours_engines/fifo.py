"""
hours_engines.fifo -- FIFOConsumptionAllocator.

Responsibility:
    Distribute a client's consumed hours across the client's purchased
    packages, oldest purchase first, producing per-package used, remaining
    and status.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Algorithm:
    Packages are sorted by (purchase_date, invoice_id, package_id).  Two
    streams are consumed in order:

        1. regular flown hours   -> PackageConsumption.used_hours
        2. chartered hours       -> PackageConsumption.chartered_hours
           (hours this client paid for someone else's flight), on the
           capacity the regular hours left

    For each package and a running "left to consume" counter:

        left <= 0            -> nothing taken
        left >= capacity     -> package exhausted, left -= capacity
        otherwise            -> partial, left = 0

    What no package can absorb is reported as ``unallocated_hours``.

Status (in priority order):
    remaining <= 0                      -> overdrawn
    0 < remaining <= low_hours_threshold -> low hours
    otherwise                           -> in progress

Invariants enforced:
    - Conservation: sum(used) == min(flown, sum(total)), and chartered
      hours likewise on the capacity left.
    - Bounds: 0 <= used + chartered <= total for every package; remaining
      is never negative.
    - Determinism: equal purchase dates are ordered by invoice id, not by
      input order.

Failure modes:
    - ConsumptionInvariantError if a post-condition fails (a defect).
    - InvalidHoursError for negative consumption totals.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from hours_engines.line_items import HourPackage
from hours_engines.tracer import traced_engine
from hours_kernel.domain.values import ZERO_HOURS, to_hours
from hours_kernel.exceptions import ConsumptionInvariantError
from hours_kernel.logging_config import get_logger

logger = get_logger("engines.fifo")

DEFAULT_LOW_HOURS_THRESHOLD = Decimal("1.0")


class PackageStatus(str, Enum):
    """Display status of a package after consumption."""

    OVERDRAWN = "overdrawn"
    LOW_HOURS = "low hours"
    IN_PROGRESS = "in progress"


@dataclass(frozen=True)
class PackageConsumption:
    """
    One package after consumption.

    Guarantees:
        - ``used_hours + chartered_hours + remaining_hours == total_hours``.
    """

    package: HourPackage
    used_hours: Decimal
    chartered_hours: Decimal
    remaining_hours: Decimal
    status: PackageStatus

    @property
    def invoice_id(self) -> str:
        return self.package.invoice_id

    @property
    def purchase_date(self) -> date:
        return self.package.purchase_date

    @property
    def total_hours(self) -> Decimal:
        return self.package.total_hours

    @property
    def consumed_hours(self) -> Decimal:
        return self.used_hours + self.chartered_hours


@dataclass(frozen=True)
class ConsumptionResult:
    """Complete FIFO run for one client."""

    client_id: str
    packages: tuple[PackageConsumption, ...]
    flown_hours: Decimal
    chartered_hours: Decimal
    unallocated_hours: Decimal

    @property
    def total_package_hours(self) -> Decimal:
        return sum((p.total_hours for p in self.packages), ZERO_HOURS)

    @property
    def total_used_hours(self) -> Decimal:
        return sum((p.used_hours for p in self.packages), ZERO_HOURS)

    @property
    def total_chartered_allocated(self) -> Decimal:
        return sum((p.chartered_hours for p in self.packages), ZERO_HOURS)

    @property
    def total_remaining_hours(self) -> Decimal:
        return sum((p.remaining_hours for p in self.packages), ZERO_HOURS)

    @property
    def is_overdrawn(self) -> bool:
        return self.unallocated_hours > ZERO_HOURS


def fifo_order(packages: Sequence[HourPackage]) -> list[HourPackage]:
    """Oldest purchase first; ties broken by invoice id, then package id."""
    return sorted(packages, key=lambda p: (p.purchase_date, p.invoice_id, p.package_id))


def _consume(capacities: list[Decimal], amount: Decimal) -> tuple[list[Decimal], Decimal]:
    """Take ``amount`` from ``capacities`` in order. Returns (taken, left over)."""
    left = amount
    taken: list[Decimal] = []
    for capacity in capacities:
        if left <= ZERO_HOURS:
            taken.append(ZERO_HOURS)
        elif left >= capacity:
            taken.append(capacity)
            left -= capacity
        else:
            taken.append(left)
            left = ZERO_HOURS
    return taken, left


class FIFOConsumptionAllocator:
    """
    Chronological consumption of purchased hour packages.

    Contract:
        Pure function of the packages and the two consumption totals.
    Non-goals:
        - Does not decide which flights count; see FlightCategoryAggregator.
    """

    def __init__(self, low_hours_threshold: Decimal = DEFAULT_LOW_HOURS_THRESHOLD):
        self.low_hours_threshold = to_hours(low_hours_threshold, "low_hours_threshold")

    def status_for(self, remaining_hours: Decimal) -> PackageStatus:
        if remaining_hours <= ZERO_HOURS:
            return PackageStatus.OVERDRAWN
        if remaining_hours <= self.low_hours_threshold:
            return PackageStatus.LOW_HOURS
        return PackageStatus.IN_PROGRESS

    @traced_engine(
        "fifo_consumption", "1.0",
        fingerprint_fields=("client_id", "flown_hours", "chartered_hours"),
    )
    def allocate(
        self,
        client_id: str,
        packages: Sequence[HourPackage],
        flown_hours: Decimal,
        chartered_hours: Decimal = ZERO_HOURS,
    ) -> ConsumptionResult:
        """
        Consume ``flown_hours`` then ``chartered_hours`` across ``packages``.

        Args:
            client_id: Owner of the packages (for logging and errors).
            packages: The client's packages, in any order.
            flown_hours: Regular flown hours (FERRY/DEMO excluded).
            chartered_hours: Hours the client paid for on others' flights.

        Returns:
            ConsumptionResult with packages in FIFO order.

        Raises:
            ConsumptionInvariantError: If a post-condition fails.
        """
        flown = to_hours(flown_hours, "flown_hours")
        chartered = to_hours(chartered_hours, "chartered_hours")
        ordered = fifo_order(packages)

        totals = [p.total_hours for p in ordered]
        used, flown_left = _consume(totals, flown)
        capacity_after_flown = [t - u for t, u in zip(totals, used)]
        charter_used, chartered_left = _consume(capacity_after_flown, chartered)

        consumptions = []
        for package, u, c in zip(ordered, used, charter_used):
            remaining = package.total_hours - u - c
            consumptions.append(PackageConsumption(
                package=package,
                used_hours=u,
                chartered_hours=c,
                remaining_hours=remaining,
                status=self.status_for(remaining),
            ))

        result = ConsumptionResult(
            client_id=client_id,
            packages=tuple(consumptions),
            flown_hours=flown,
            chartered_hours=chartered,
            unallocated_hours=flown_left + chartered_left,
        )
        self._check(result)

        logger.info("fifo_consumption_completed", extra={
            "client_id": client_id,
            "package_count": len(consumptions),
            "flown_hours": flown,
            "chartered_hours": chartered,
            "remaining_hours": result.total_remaining_hours,
            "unallocated_hours": result.unallocated_hours,
        })

        return result

    def _check(self, result: ConsumptionResult) -> None:
        """Post-conditions of a run; any failure is a defect."""
        capacity = result.total_package_hours
        used = result.total_used_hours
        charter_used = result.total_chartered_allocated

        problems: list[str] = []
        if used != min(result.flown_hours, capacity):
            problems.append(f"used {used} != min(flown {result.flown_hours}, total {capacity})")
        if charter_used != min(result.chartered_hours, capacity - used):
            problems.append(
                f"chartered {charter_used} != min({result.chartered_hours}, {capacity - used})"
            )
        for p in result.packages:
            if p.used_hours < ZERO_HOURS or p.chartered_hours < ZERO_HOURS:
                problems.append(f"negative consumption on {p.package.package_id}")
            if p.consumed_hours > p.total_hours or p.remaining_hours < ZERO_HOURS:
                problems.append(f"over-consumed package {p.package.package_id}")

        if problems:
            detail = "; ".join(problems)
            logger.error("fifo_invariant_violated", extra={
                "client_id": result.client_id,
                "detail": detail,
            })
            raise ConsumptionInvariantError(result.client_id, detail)
