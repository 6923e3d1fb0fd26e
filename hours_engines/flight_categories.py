"""
hours_engines.flight_categories -- FlightCategoryAggregator.

Responsibility:
    Classify flight records and sum their hours per client into category
    buckets, each split into current calendar year and previous calendar
    year.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The reference date
    (``as_of``) is an explicit argument; engines never read the clock.

Buckets (per client):
    regular    pilot-side hours the pilot pays for; the only bucket that
               depletes the pilot's packages
    ferry      pilot-side FERRY-tagged hours
    demo       pilot-side DEMO-tagged hours
    charter    pilot-side view of charter flights: CHARTER-tagged, or
               funded by a payer other than the pilot
    chartered  payer-side: hours someone else flew that this client paid for

Classification:
    - flight_type containing FERRY or DEMO (case-insensitive substring):
      ferry/demo bucket only.  Such a record never depletes any package and
      never charges a payer.
    - otherwise, a record whose payer differs from the pilot adds its hours
      to the pilot's charter bucket AND to the payer's chartered bucket.
      Counting the same hours on both ledgers is intended: the pilot's
      flight history and the payer's consumption each need their own view.
    - otherwise the record is regular for the pilot, and additionally
      charter when it is CHARTER-tagged.

Invariants enforced:
    - FERRY and DEMO hours never reach the regular bucket.
    - Instructors are neither credited nor charged.

Failure modes:
    - Records with no pilot or with non-positive hours are skipped with a
      ProcessingNote.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from types import MappingProxyType

from hours_engines.tracer import traced_engine
from hours_kernel.domain.dtos import FlightRecord, NoteCode, ProcessingNote
from hours_kernel.domain.values import ZERO_HOURS
from hours_kernel.logging_config import get_logger

logger = get_logger("engines.flight_categories")

DEFAULT_EXCLUDED_FLIGHT_TYPES: tuple[str, ...] = ("FERRY", "DEMO")
DEFAULT_CHARTER_FLIGHT_TYPE = "CHARTER"

TWELVE_MONTHS = timedelta(days=365)
NINETY_DAYS = timedelta(days=90)


class FlightCategory(str, Enum):
    """Hour buckets of the ledger."""

    REGULAR = "regular"
    FERRY = "ferry"
    DEMO = "demo"
    CHARTER = "charter"
    CHARTERED = "chartered"


_EXCLUDED_CATEGORIES: dict[str, FlightCategory] = {
    "FERRY": FlightCategory.FERRY,
    "DEMO": FlightCategory.DEMO,
}


@dataclass(frozen=True)
class CategoryTotals:
    """Hours and flight count of one bucket."""

    total: Decimal = ZERO_HOURS
    current_year: Decimal = ZERO_HOURS
    previous_year: Decimal = ZERO_HOURS
    count: int = 0


@dataclass(frozen=True)
class ClientFlightAggregate:
    """
    All buckets of one client.

    ``flights_12_months`` and ``flights_90_days`` count records the client
    piloted within 365 / 90 days before the reference date, inclusive.
    """

    client_id: str
    regular: CategoryTotals = CategoryTotals()
    ferry: CategoryTotals = CategoryTotals()
    demo: CategoryTotals = CategoryTotals()
    charter: CategoryTotals = CategoryTotals()
    chartered: CategoryTotals = CategoryTotals()
    flights_12_months: int = 0
    flights_90_days: int = 0

    @property
    def total_flown_hours(self) -> Decimal:
        return self.regular.total

    @property
    def total_chartered_hours(self) -> Decimal:
        return self.chartered.total

    def bucket(self, category: FlightCategory) -> CategoryTotals:
        return getattr(self, category.value)


@dataclass(frozen=True)
class FlightAggregation:
    """Result of aggregating a batch of flight records."""

    as_of: date
    by_client: Mapping[str, ClientFlightAggregate] = field(
        default_factory=lambda: MappingProxyType({}),
    )
    notes: tuple[ProcessingNote, ...] = ()

    def for_client(self, client_id: str) -> ClientFlightAggregate:
        """The client's aggregate; all-zero when the client never flew or paid."""
        return self.by_client.get(client_id) or ClientFlightAggregate(client_id=client_id)

    @property
    def client_ids(self) -> frozenset[str]:
        return frozenset(self.by_client)


class _Bucket:
    """Mutable accumulator used while aggregating."""

    __slots__ = ("total", "current_year", "previous_year", "count")

    def __init__(self) -> None:
        self.total = ZERO_HOURS
        self.current_year = ZERO_HOURS
        self.previous_year = ZERO_HOURS
        self.count = 0

    def add(self, hours: Decimal, flight_year: int, as_of_year: int) -> None:
        self.total += hours
        self.count += 1
        if flight_year == as_of_year:
            self.current_year += hours
        elif flight_year == as_of_year - 1:
            self.previous_year += hours

    def freeze(self) -> CategoryTotals:
        return CategoryTotals(
            total=self.total,
            current_year=self.current_year,
            previous_year=self.previous_year,
            count=self.count,
        )


class FlightCategoryAggregator:
    """
    Per-client category aggregation of flight records.

    Contract:
        ``aggregate`` is a pure function of the records, the reference
        date and the configured flight-type tags.
    """

    def __init__(
        self,
        excluded_flight_types: Iterable[str] = DEFAULT_EXCLUDED_FLIGHT_TYPES,
        charter_flight_type: str = DEFAULT_CHARTER_FLIGHT_TYPE,
    ):
        self._excluded = tuple(t.upper() for t in excluded_flight_types)
        unknown = [t for t in self._excluded if t not in _EXCLUDED_CATEGORIES]
        if unknown:
            raise ValueError(f"Unsupported excluded flight types: {unknown}")
        self._charter = charter_flight_type.upper()

    def excluded_category(self, record: FlightRecord) -> FlightCategory | None:
        """FERRY or DEMO when the record's tag contains an excluded type."""
        tag = record.flight_type.upper()
        for excluded in self._excluded:
            if excluded in tag:
                return _EXCLUDED_CATEGORIES[excluded]
        return None

    def is_excluded(self, record: FlightRecord) -> bool:
        return self.excluded_category(record) is not None

    def is_charter_tagged(self, record: FlightRecord) -> bool:
        return bool(self._charter) and self._charter in record.flight_type.upper()

    def pilot_categories(self, record: FlightRecord) -> tuple[FlightCategory, ...]:
        """Buckets of the pilot that a (valid) record adds to."""
        excluded = self.excluded_category(record)
        if excluded is not None:
            return (excluded,)
        if record.is_third_party_funded:
            return (FlightCategory.CHARTER,)
        if self.is_charter_tagged(record):
            return (FlightCategory.REGULAR, FlightCategory.CHARTER)
        return (FlightCategory.REGULAR,)

    def charges_payer(self, record: FlightRecord) -> bool:
        """True when the record adds to a third-party payer's chartered bucket."""
        return record.is_third_party_funded and not self.is_excluded(record)

    def skip_reason(self, record: FlightRecord) -> ProcessingNote | None:
        """Why a record cannot be aggregated, or None."""
        if record.pilot_id is None:
            return ProcessingNote(
                code=NoteCode.MISSING_PILOT,
                reference=record.record_id,
                message="Flight record has no pilot",
                client_id=record.payer_id,
            )
        if record.total_hours <= ZERO_HOURS:
            return ProcessingNote(
                code=NoteCode.NON_POSITIVE_HOURS,
                reference=record.record_id,
                message=f"Flight record with {record.total_hours} hours",
                client_id=record.pilot_id,
            )
        return None

    @traced_engine("flight_categories", "1.0", fingerprint_fields=("as_of",))
    def aggregate(self, records: Sequence[FlightRecord], as_of: date) -> FlightAggregation:
        """
        Aggregate ``records`` into per-client buckets.

        Args:
            records: Flight records of any number of clients.
            as_of: Reference date for the year split and rolling windows.
        """
        buckets: dict[str, dict[FlightCategory, _Bucket]] = defaultdict(
            lambda: {category: _Bucket() for category in FlightCategory}
        )
        windows_12: dict[str, int] = defaultdict(int)
        windows_90: dict[str, int] = defaultdict(int)
        notes: list[ProcessingNote] = []
        year = as_of.year

        for record in records:
            note = self.skip_reason(record)
            if note is not None:
                logger.warning("flight_record_skipped", extra={
                    "record_id": record.record_id,
                    "reason": note.code.value,
                })
                notes.append(note)
                continue

            pilot = record.pilot_id
            hours = record.total_hours
            flight_year = record.flight_date.year

            for category in self.pilot_categories(record):
                buckets[pilot][category].add(hours, flight_year, year)

            if self.charges_payer(record):
                buckets[record.payer_id][FlightCategory.CHARTERED].add(
                    hours, flight_year, year,
                )

            age = as_of - record.flight_date
            if timedelta(0) <= age <= TWELVE_MONTHS:
                windows_12[pilot] += 1
            if timedelta(0) <= age <= NINETY_DAYS:
                windows_90[pilot] += 1

        by_client = {
            client_id: ClientFlightAggregate(
                client_id=client_id,
                regular=client_buckets[FlightCategory.REGULAR].freeze(),
                ferry=client_buckets[FlightCategory.FERRY].freeze(),
                demo=client_buckets[FlightCategory.DEMO].freeze(),
                charter=client_buckets[FlightCategory.CHARTER].freeze(),
                chartered=client_buckets[FlightCategory.CHARTERED].freeze(),
                flights_12_months=windows_12.get(client_id, 0),
                flights_90_days=windows_90.get(client_id, 0),
            )
            for client_id, client_buckets in buckets.items()
        }

        logger.info("flight_categories_aggregated", extra={
            "record_count": len(records),
            "client_count": len(by_client),
            "note_count": len(notes),
            "as_of": as_of,
        })

        return FlightAggregation(
            as_of=as_of,
            by_client=MappingProxyType(by_client),
            notes=tuple(notes),
        )
