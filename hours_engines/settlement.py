"""
hours_engines.settlement -- SettlementStatementBuilder.

Responsibility:
    Build a client's chronological hour statement: purchases add hours,
    flights the client pays for deduct them, and every entry carries the
    running balance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Ordering:
    By date; on the same date purchases come before flights; then by
    reference id.

Deduction rule:
    A flight deducts its hours when the client is the flight's effective
    payer (the payer, or the pilot when no payer is set) and the flight is
    not FERRY/DEMO.  The final balance therefore equals the
    total_remaining_hours of the client's LedgerSummary.

Failure modes:
    - Records without a pilot or with non-positive hours are left out,
      the same records FlightCategoryAggregator skips.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from hours_engines.flight_categories import FlightCategoryAggregator
from hours_engines.line_items import HourPackage
from hours_engines.tracer import traced_engine
from hours_kernel.domain.dtos import FlightRecord
from hours_kernel.domain.values import ZERO_HOURS
from hours_kernel.logging_config import get_logger

logger = get_logger("engines.settlement")


class EntryKind(str, Enum):
    PURCHASE = "purchase"
    FLIGHT = "flight"


class ClientRole(str, Enum):
    """The client's role on a flight entry."""

    PILOT = "PILOT"
    PAYER = "PAYER"
    INSTRUCTOR = "INSTRUCTOR"


@dataclass(frozen=True)
class StatementEntry:
    entry_date: date
    kind: EntryKind
    reference: str
    description: str
    hours_added: Decimal
    hours_deducted: Decimal
    balance: Decimal
    role: ClientRole | None = None
    flight_type: str = ""


@dataclass(frozen=True)
class FlightTypeTotals:
    flight_type: str
    hours: Decimal
    count: int


@dataclass(frozen=True)
class SettlementStatement:
    """Chronological statement of one client."""

    client_id: str
    entries: tuple[StatementEntry, ...]
    total_hours_added: Decimal
    total_hours_deducted: Decimal
    final_balance: Decimal
    invoice_count: int
    flight_count: int
    by_flight_type: tuple[FlightTypeTotals, ...] = ()

    @property
    def entry_count(self) -> int:
        return len(self.entries)


def _role(client_id: str, record: FlightRecord) -> ClientRole | None:
    if record.pilot_id == client_id:
        return ClientRole.PILOT
    if record.payer_id == client_id:
        return ClientRole.PAYER
    if record.instructor_id == client_id:
        return ClientRole.INSTRUCTOR
    return None


class SettlementStatementBuilder:
    """
    Chronological statement builder.

    Shares flight classification with FlightCategoryAggregator so both
    views apply the same exclusion and skip rules.
    """

    def __init__(self, aggregator: FlightCategoryAggregator | None = None):
        self._aggregator = aggregator or FlightCategoryAggregator()

    @traced_engine("settlement_statement", "1.0", fingerprint_fields=("client_id",))
    def build(
        self,
        client_id: str,
        packages: Sequence[HourPackage],
        flights: Sequence[FlightRecord],
    ) -> SettlementStatement:
        """
        Merge purchases and flights into one running balance.

        Args:
            client_id: The client the statement is for.
            packages: The client's packages (ordinary and course).
            flights: Flight records; those not involving the client are
                ignored.
        """
        # (date, kind order, reference, added, deducted, description, role, type)
        events: list[tuple] = []

        for package in packages:
            events.append((
                package.purchase_date, 0, package.package_id,
                package.total_hours, ZERO_HOURS,
                package.description, None, "",
            ))

        type_hours: dict[str, Decimal] = defaultdict(lambda: ZERO_HOURS)
        type_counts: dict[str, int] = defaultdict(int)

        for record in flights:
            role = _role(client_id, record)
            if role is None or self._aggregator.skip_reason(record) is not None:
                continue
            deducted = ZERO_HOURS
            if record.effective_payer_id == client_id and not self._aggregator.is_excluded(record):
                deducted = record.total_hours
            # A payer who also instructs is charged as payer
            if role == ClientRole.INSTRUCTOR and deducted > ZERO_HOURS:
                role = ClientRole.PAYER
            flight_type = record.flight_type or "UNSPECIFIED"
            type_hours[flight_type] += record.total_hours
            type_counts[flight_type] += 1
            events.append((
                record.flight_date, 1, record.record_id,
                ZERO_HOURS, deducted,
                f"{flight_type} {record.total_hours}h", role, record.flight_type,
            ))

        events.sort(key=lambda e: (e[0], e[1], e[2]))

        balance = ZERO_HOURS
        entries: list[StatementEntry] = []
        for entry_date, order, reference, added, deducted, description, role, flight_type in events:
            balance = balance + added - deducted
            entries.append(StatementEntry(
                entry_date=entry_date,
                kind=EntryKind.PURCHASE if order == 0 else EntryKind.FLIGHT,
                reference=reference,
                description=description,
                hours_added=added,
                hours_deducted=deducted,
                balance=balance,
                role=role,
                flight_type=flight_type,
            ))

        statement = SettlementStatement(
            client_id=client_id,
            entries=tuple(entries),
            total_hours_added=sum((e.hours_added for e in entries), ZERO_HOURS),
            total_hours_deducted=sum((e.hours_deducted for e in entries), ZERO_HOURS),
            final_balance=balance,
            invoice_count=len({p.invoice_id for p in packages}),
            flight_count=sum(1 for e in entries if e.kind == EntryKind.FLIGHT),
            by_flight_type=tuple(
                FlightTypeTotals(flight_type=t, hours=type_hours[t], count=type_counts[t])
                for t in sorted(type_hours)
            ),
        )

        logger.info("settlement_statement_built", extra={
            "client_id": client_id,
            "entry_count": statement.entry_count,
            "final_balance": statement.final_balance,
        })
        return statement
