"""
hours_engines.course_allocation -- CourseAllocationCalculator.

Responsibility:
    Turn installment structure into hours.  A course contract has a fixed
    total (45 hours by default) paid in installments; each installment
    unlocks a share of the total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Algorithm:
    n = total_tranches (declared, or inferred from the payment amount)
    share = floor(course_total / n)

    tranche k < n  -> share
    tranche k == n -> course_total - share * (n - 1)

    With course_total = 45, n = 4: [11, 11, 11, 12].

Invariants enforced:
    - Exact sum: the allocations of one contract sum to course_total with
      no rounding drift, for every n.  verify_contract_sum() re-derives
      them and raises TrancheSumMismatchError otherwise.
    - Installment counts inferred from amounts never exceed max_tranches.
    - When n cannot be determined at all, the item is a single full-course
      payment (1 of 1).

Failure modes:
    - InvalidTrancheError if the tranche number is outside 1..n.
      build_tranches() records it as a note and skips the item.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from hours_engines.line_items import HourPackage, PackageSource
from hours_engines.tracer import traced_engine
from hours_engines.tranche_parser import TrancheDescriptor, TrancheDescriptorParser
from hours_kernel.domain.dtos import InvoiceLineItem, NoteCode, ProcessingNote
from hours_kernel.domain.values import ZERO_HOURS, floor_hours, to_hours
from hours_kernel.exceptions import InvalidTrancheError, TrancheSumMismatchError
from hours_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from hours_engines.fifo import PackageConsumption

logger = get_logger("engines.course_allocation")

DEFAULT_COURSE_TOTAL_HOURS = Decimal("45")
MAX_TRANCHES = 6


@dataclass(frozen=True)
class AmountBand:
    """
    Payments up to ``max_amount`` (inclusive) imply ``installments``.

    ``max_amount`` None is the open-ended top band.
    """

    max_amount: Decimal | None
    installments: int


class InstallmentBandTable:
    """
    Step function from payment amount to installment count.

    Smaller payments mean more installments.  The bands are pricing
    assumptions and are supplied by configuration.
    """

    def __init__(self, bands: Sequence[AmountBand], max_tranches: int = MAX_TRANCHES):
        if not bands:
            raise ValueError("At least one amount band is required")
        bounded = [b for b in bands if b.max_amount is not None]
        self._bands = tuple(sorted(bounded, key=lambda b: b.max_amount))
        open_bands = [b for b in bands if b.max_amount is None]
        self._open_band = open_bands[0] if open_bands else None
        self._max_tranches = max_tranches

    @property
    def bands(self) -> tuple[AmountBand, ...]:
        return self._bands + ((self._open_band,) if self._open_band else ())

    def infer(self, amount: Decimal) -> int | None:
        """Installment count for a payment, or None if no band covers it."""
        for band in self._bands:
            if amount <= band.max_amount:
                return min(band.installments, self._max_tranches)
        if self._open_band is not None:
            return min(self._open_band.installments, self._max_tranches)
        return None


@dataclass(frozen=True)
class CourseTranche:
    """
    One installment of a course contract, with its allocated hours.

    Contract:
        Frozen dataclass.  ``hours_allocated`` of all tranches of one
        contract sum to ``course_total_hours``.
    """

    invoice_id: str
    line_id: str
    client_id: str
    tranche_number: int
    total_tranches: int
    hours_allocated: Decimal
    course_total_hours: Decimal
    amount: Decimal
    currency: str
    purchase_date: date
    description: str = ""

    @property
    def is_final(self) -> bool:
        return self.tranche_number == self.total_tranches

    def to_package(self) -> HourPackage:
        """The tranche as an HourPackage, so FIFO consumes it like any other."""
        return HourPackage(
            package_id=f"{self.invoice_id}:{self.line_id}",
            invoice_id=self.invoice_id,
            client_id=self.client_id,
            total_hours=self.hours_allocated,
            purchase_date=self.purchase_date,
            amount=self.amount,
            currency=self.currency,
            source_kind=PackageSource.COURSE,
            description=self.description,
        )


@dataclass(frozen=True)
class CourseBuildResult:
    """Tranches built from course items, plus notes for skipped items."""

    tranches: tuple[CourseTranche, ...] = ()
    notes: tuple[ProcessingNote, ...] = ()

    @property
    def packages(self) -> tuple[HourPackage, ...]:
        return tuple(t.to_package() for t in self.tranches)


@dataclass(frozen=True)
class CourseProgress:
    """Per-client progress through a course contract."""

    client_id: str
    course_total_hours: Decimal
    tranche_count: int
    hours_allocated: Decimal
    hours_used: Decimal
    hours_remaining: Decimal

    @property
    def progress_percent(self) -> Decimal:
        if self.course_total_hours <= ZERO_HOURS:
            return ZERO_HOURS
        return (self.hours_used / self.course_total_hours) * Decimal("100")

    @property
    def is_completed(self) -> bool:
        return (
            self.hours_remaining <= ZERO_HOURS
            and self.hours_allocated >= self.course_total_hours
        )

    @classmethod
    def from_consumptions(
        cls,
        client_id: str,
        course_total_hours: Decimal,
        consumptions: Iterable[PackageConsumption],
    ) -> CourseProgress | None:
        """Summarize the course packages of a FIFO result; None if there are none."""
        course = [
            c for c in consumptions
            if c.package.source_kind == PackageSource.COURSE
        ]
        if not course:
            return None
        return cls(
            client_id=client_id,
            course_total_hours=course_total_hours,
            tranche_count=len(course),
            hours_allocated=sum((c.package.total_hours for c in course), ZERO_HOURS),
            hours_used=sum((c.consumed_hours for c in course), ZERO_HOURS),
            hours_remaining=sum((c.remaining_hours for c in course), ZERO_HOURS),
        )


class CourseAllocationCalculator:
    """
    Allocate course hours to installments.

    Contract:
        Pure functions of their arguments and the injected band table.
    Non-goals:
        - Does not consume hours; see FIFOConsumptionAllocator.
    """

    def __init__(
        self,
        course_total_hours: Decimal = DEFAULT_COURSE_TOTAL_HOURS,
        band_table: InstallmentBandTable | None = None,
        parser: TrancheDescriptorParser | None = None,
    ):
        self.course_total_hours = to_hours(course_total_hours, "course_total_hours")
        self._band_table = band_table
        self._parser = parser or TrancheDescriptorParser()

    def resolve_total_tranches(
        self,
        total_tranches: int | None,
        amount: Decimal | None,
    ) -> int | None:
        """Declared count, else the count inferred from the amount, else None."""
        if total_tranches is not None:
            return total_tranches
        if amount is not None and self._band_table is not None:
            return self._band_table.infer(amount)
        return None

    @traced_engine(
        "course_allocation", "1.0",
        fingerprint_fields=("tranche_number", "total_tranches", "amount"),
    )
    def allocate(
        self,
        tranche_number: int,
        total_tranches: int | None = None,
        course_total_hours: Decimal | None = None,
        amount: Decimal | None = None,
    ) -> Decimal:
        """
        Hours allocated to one installment.

        If the installment count can be neither read nor inferred, the item
        is treated as a full-course payment.

        Raises:
            InvalidTrancheError: If tranche_number is outside 1..n.
        """
        course_total = (
            self.course_total_hours if course_total_hours is None
            else to_hours(course_total_hours, "course_total_hours")
        )
        n = self.resolve_total_tranches(total_tranches, amount)
        if n is None:
            return course_total
        return self._share(tranche_number, n, course_total)

    def _share(self, tranche_number: int, n: int, course_total: Decimal) -> Decimal:
        if n < 1 or tranche_number < 1 or tranche_number > n:
            raise InvalidTrancheError(tranche_number, n)
        share = floor_hours(course_total / n)
        if tranche_number == n:
            return course_total - share * (n - 1)
        return share

    def verify_contract_sum(
        self,
        total_tranches: int,
        course_total_hours: Decimal | None = None,
    ) -> tuple[Decimal, ...]:
        """
        Allocations for every installment of an n-installment contract.

        Raises:
            TrancheSumMismatchError: If they do not sum to the course total.
        """
        course_total = (
            self.course_total_hours if course_total_hours is None
            else to_hours(course_total_hours, "course_total_hours")
        )
        allocations = tuple(
            self._share(k, total_tranches, course_total)
            for k in range(1, total_tranches + 1)
        )
        actual = sum(allocations, ZERO_HOURS)
        if actual != course_total:
            logger.error("tranche_sum_mismatch", extra={
                "total_tranches": total_tranches,
                "expected": course_total,
                "actual": actual,
            })
            raise TrancheSumMismatchError(total_tranches, str(course_total), str(actual))
        return allocations

    def tranche_for(self, item: InvoiceLineItem, descriptor: TrancheDescriptor) -> CourseTranche:
        """
        Build the CourseTranche for a parsed course item.

        Raises:
            InvalidTrancheError: If the descriptor does not fit its count.
        """
        n = self.resolve_total_tranches(descriptor.total_tranches, descriptor.amount)
        if n is None:
            tranche_number, n = 1, 1
        else:
            tranche_number = descriptor.tranche_number
        hours = self._share(tranche_number, n, self.course_total_hours)
        return CourseTranche(
            invoice_id=item.invoice_id,
            line_id=item.line_id,
            client_id=item.client_id or "",
            tranche_number=tranche_number,
            total_tranches=n,
            hours_allocated=hours,
            course_total_hours=self.course_total_hours,
            amount=item.total,
            currency=item.currency,
            purchase_date=item.issue_date,
            description=item.text,
        )

    @traced_engine("course_tranches", "1.0")
    def build_tranches(self, course_items: Sequence[InvoiceLineItem]) -> CourseBuildResult:
        """
        Parse and allocate every course item.

        Unrecognized descriptions and inconsistent installment numbers are
        skipped with a note.  They never abort the batch.
        """
        tranches: list[CourseTranche] = []
        notes: list[ProcessingNote] = []

        for item in course_items:
            reference = f"{item.invoice_id}:{item.line_id}"
            descriptor = self._parser.parse(item.text)
            if descriptor is None:
                logger.warning("tranche_unparseable", extra={
                    "invoice_id": item.invoice_id,
                    "line_id": item.line_id,
                    "client_id": item.client_id,
                })
                notes.append(ProcessingNote(
                    code=NoteCode.UNPARSEABLE_TRANCHE,
                    reference=reference,
                    message=f"No installment pattern in {item.text!r}",
                    client_id=item.client_id,
                ))
                continue

            try:
                tranches.append(self.tranche_for(item, descriptor))
            except InvalidTrancheError as exc:
                logger.warning("tranche_invalid", extra={
                    "invoice_id": item.invoice_id,
                    "line_id": item.line_id,
                    "tranche_number": exc.tranche_number,
                    "total_tranches": exc.total_tranches,
                })
                notes.append(ProcessingNote(
                    code=NoteCode.INVALID_TRANCHE,
                    reference=reference,
                    message=str(exc),
                    client_id=item.client_id,
                ))

        logger.info("course_tranches_built", extra={
            "item_count": len(course_items),
            "tranche_count": len(tranches),
            "note_count": len(notes),
            "course_total_hours": self.course_total_hours,
        })

        return CourseBuildResult(tranches=tuple(tranches), notes=tuple(notes))
