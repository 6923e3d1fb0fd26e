"""
hours_engines.line_items -- LineItemClassifier and the HourPackage value.

Responsibility:
    Decide, per invoice line item, whether it is a purchasable block of
    flight hours (an HourPackage), a credit note against earlier hours
    (an HourCredit), a course-contract installment (handed on to the
    tranche parser), or neither.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import hours_kernel/domain (and sibling engine modules).

Invariants enforced:
    - Hour units are matched exactly and case-sensitively against the
      configured set (HUR, HOUR, H by default).  "hur" is not an hour unit.
    - A course item is never also an ordinary package, so course hours are
      not counted twice.
    - A negative hour line (storno) reduces the same client's purchased
      hours, newest package first.  A package is never reduced below zero.
    - HourPackages are constructed fresh on every computation.  Used and
      remaining hours are computed by the FIFO allocator, never stored here.

Failure modes:
    - Items without a client, and hour items with a zero quantity, are
      skipped by classify_invoices() with a ProcessingNote.
    - Credit beyond a client's purchased invoice hours is dropped with a
      CREDIT_EXCEEDS_PURCHASES note.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum

from hours_engines.tracer import traced_engine
from hours_kernel.domain.dtos import Invoice, InvoiceLineItem, NoteCode, ProcessingNote
from hours_kernel.domain.values import ZERO_HOURS, to_decimal, to_hours
from hours_kernel.logging_config import get_logger

logger = get_logger("engines.line_items")

DEFAULT_HOUR_UNITS: frozenset[str] = frozenset({"HUR", "HOUR", "H"})


class PackageSource(str, Enum):
    """Where a package's hours come from."""

    INVOICE = "invoice"  # Ordinary hour line item
    COURSE = "course"    # One installment of a course contract


@dataclass(frozen=True)
class HourPackage:
    """
    One purchased block of flight hours.

    Contract:
        Frozen dataclass.  ``package_id`` is unique within one computation
        (invoice id and line id).
    Guarantees:
        - ``total_hours`` is a non-negative Decimal.
    """

    package_id: str
    invoice_id: str
    client_id: str | None
    total_hours: Decimal
    purchase_date: date
    amount: Decimal = ZERO_HOURS
    currency: str = ""
    source_kind: PackageSource = PackageSource.INVOICE
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_hours", to_hours(self.total_hours, "total_hours"))
        object.__setattr__(self, "amount", to_decimal(self.amount, "amount"))


@dataclass(frozen=True)
class HourCredit:
    """A storno hour line: ``hours`` (positive) taken back from a client."""

    reference: str
    invoice_id: str
    client_id: str | None
    hours: Decimal
    issue_date: date

    def __post_init__(self) -> None:
        object.__setattr__(self, "hours", to_hours(self.hours, "hours"))


@dataclass(frozen=True)
class LineItemClassification:
    """
    Result of classifying a batch of invoices.

    ``packages`` are net of ``credits``: a fully credited package is absent,
    a partly credited one carries its reduced ``total_hours``.
    """

    packages: tuple[HourPackage, ...] = ()
    course_items: tuple[InvoiceLineItem, ...] = ()
    notes: tuple[ProcessingNote, ...] = field(default=())
    credits: tuple[HourCredit, ...] = ()

    def packages_for(self, client_id: str) -> tuple[HourPackage, ...]:
        return tuple(p for p in self.packages if p.client_id == client_id)

    def credits_for(self, client_id: str) -> tuple[HourCredit, ...]:
        return tuple(c for c in self.credits if c.client_id == client_id)

    def course_items_for(self, client_id: str) -> tuple[InvoiceLineItem, ...]:
        return tuple(i for i in self.course_items if i.client_id == client_id)


class LineItemClassifier:
    """
    Classify invoice line items.

    Contract:
        ``classify`` is a pure function of one line item.  It runs for every
        line of every invoice in a population computation.
    Non-goals:
        - Does not parse installment text; see TrancheDescriptorParser.
    """

    def __init__(
        self,
        hour_units: Iterable[str] = DEFAULT_HOUR_UNITS,
        course_markers: Iterable[str] = (),
    ):
        self._hour_units = frozenset(hour_units)
        self._course_markers = tuple(m.lower() for m in course_markers)

    def is_hour_unit(self, unit: str) -> bool:
        return unit in self._hour_units

    def is_course_item(self, item: InvoiceLineItem) -> bool:
        """True when the name or description mentions a course marker."""
        name = item.name.lower()
        description = item.description.lower()
        return any(
            marker in name or marker in description
            for marker in self._course_markers
        )

    def classify(self, item: InvoiceLineItem) -> HourPackage | None:
        """
        Return the HourPackage an item represents, or None.

        Course items are never packages here; their hours come from the
        course allocation.  Zero and negative quantities are not packages;
        see ``classify_credit``.
        """
        if not self.is_hour_unit(item.unit) or self.is_course_item(item):
            return None
        if item.quantity <= ZERO_HOURS:
            return None
        return HourPackage(
            package_id=f"{item.invoice_id}:{item.line_id}",
            invoice_id=item.invoice_id,
            client_id=item.client_id,
            total_hours=item.quantity,
            purchase_date=item.issue_date,
            amount=item.total,
            currency=item.currency,
            source_kind=PackageSource.INVOICE,
            description=item.text,
        )

    def classify_credit(self, item: InvoiceLineItem) -> HourCredit | None:
        """Return the HourCredit of a negative hour line, or None."""
        if not self.is_hour_unit(item.unit) or self.is_course_item(item):
            return None
        if item.quantity >= ZERO_HOURS:
            return None
        return HourCredit(
            reference=f"{item.invoice_id}:{item.line_id}",
            invoice_id=item.invoice_id,
            client_id=item.client_id,
            hours=-item.quantity,
            issue_date=item.issue_date,
        )

    @traced_engine("line_item_classifier", "1.0")
    def classify_invoices(self, invoices: Sequence[Invoice]) -> LineItemClassification:
        """
        Split every line of ``invoices`` into packages and course items.

        Items with no client, and hour items with a zero quantity, are
        skipped with a note.  Negative hour lines are netted against the
        client's packages (``apply_credits``).  Other lines of the same
        invoice still process normally.
        """
        packages: list[HourPackage] = []
        credits: list[HourCredit] = []
        course_items: list[InvoiceLineItem] = []
        notes: list[ProcessingNote] = []

        for invoice in invoices:
            for item in invoice.line_items:
                reference = f"{item.invoice_id}:{item.line_id}"
                is_course = self.is_course_item(item)
                if not is_course and not self.is_hour_unit(item.unit):
                    continue

                if item.client_id is None:
                    logger.warning("line_item_missing_client", extra={
                        "invoice_id": item.invoice_id,
                        "line_id": item.line_id,
                    })
                    notes.append(ProcessingNote(
                        code=NoteCode.MISSING_CLIENT,
                        reference=reference,
                        message="Invoice has no client; line item skipped",
                    ))
                    continue

                if is_course:
                    course_items.append(item)
                    continue

                credit = self.classify_credit(item)
                if credit is not None:
                    credits.append(credit)
                    continue

                if item.quantity == ZERO_HOURS:
                    logger.warning("line_item_non_positive_hours", extra={
                        "invoice_id": item.invoice_id,
                        "line_id": item.line_id,
                        "quantity": item.quantity,
                    })
                    notes.append(ProcessingNote(
                        code=NoteCode.NON_POSITIVE_HOURS,
                        reference=reference,
                        message=f"Hour line with quantity {item.quantity} skipped",
                        client_id=item.client_id,
                    ))
                    continue

                package = self.classify(item)
                if package is not None:
                    packages.append(package)

        net_packages, credit_notes = apply_credits(packages, credits)
        notes.extend(credit_notes)

        logger.info("line_items_classified", extra={
            "invoice_count": len(invoices),
            "package_count": len(net_packages),
            "credit_count": len(credits),
            "course_item_count": len(course_items),
            "note_count": len(notes),
        })

        return LineItemClassification(
            packages=net_packages,
            course_items=tuple(course_items),
            notes=tuple(notes),
            credits=tuple(credits),
        )


def apply_credits(
    packages: Sequence[HourPackage],
    credits: Sequence[HourCredit],
) -> tuple[tuple[HourPackage, ...], tuple[ProcessingNote, ...]]:
    """
    Net credit hours against each client's packages, newest purchase first.

    Credits are applied in issue-date order.  A package reduced to zero is
    dropped.  Credit left over once a client has no invoice hours is not
    carried and is returned as a CREDIT_EXCEEDS_PURCHASES note.

    Returns:
        (net packages in their original order, notes)
    """
    if not credits:
        return tuple(packages), ()

    remaining: dict[str, Decimal] = {p.package_id: p.total_hours for p in packages}
    by_client: dict[str | None, list[HourPackage]] = defaultdict(list)
    for package in packages:
        by_client[package.client_id].append(package)
    for client_packages in by_client.values():
        client_packages.sort(
            key=lambda p: (p.purchase_date, p.invoice_id, p.package_id), reverse=True,
        )

    notes: list[ProcessingNote] = []
    for credit in sorted(credits, key=lambda c: (c.issue_date, c.reference)):
        left = credit.hours
        for package in by_client.get(credit.client_id, ()):
            if left <= ZERO_HOURS:
                break
            taken = min(left, remaining[package.package_id])
            remaining[package.package_id] -= taken
            left -= taken

        if left > ZERO_HOURS:
            logger.warning("line_item_credit_exceeds_purchases", extra={
                "invoice_id": credit.invoice_id,
                "client_id": credit.client_id,
                "unapplied_hours": left,
            })
            notes.append(ProcessingNote(
                code=NoteCode.CREDIT_EXCEEDS_PURCHASES,
                reference=credit.reference,
                message=f"Credit of {credit.hours} h exceeds purchased hours by {left} h",
                client_id=credit.client_id,
            ))

    net = tuple(
        p if remaining[p.package_id] == p.total_hours
        else replace(p, total_hours=remaining[p.package_id])
        for p in packages
        if remaining[p.package_id] > ZERO_HOURS
    )
    return net, tuple(notes)
