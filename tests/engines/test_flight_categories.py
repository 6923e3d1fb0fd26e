"""
Tests for FlightCategoryAggregator.

Covers:
- Regular, ferry, demo, charter and chartered buckets
- Exclusion of FERRY/DEMO from package consumption
- Third-party funded flights on both ledgers
- Calendar-year split and rolling windows
- Skip-with-note for malformed records
"""

from datetime import date
from decimal import Decimal

import pytest

from hours_engines.flight_categories import (
    FlightCategory,
    FlightCategoryAggregator,
)
from hours_kernel.domain.dtos import NoteCode
from tests.factories import TODAY, make_flight


@pytest.fixture
def aggregator():
    return FlightCategoryAggregator()


class TestClassification:
    """Tests for per-record bucket selection."""

    def test_regular_flight(self, aggregator):
        assert aggregator.pilot_categories(make_flight()) == (FlightCategory.REGULAR,)

    @pytest.mark.parametrize("flight_type,category", [
        ("FERRY", FlightCategory.FERRY),
        ("ferry", FlightCategory.FERRY),
        ("Ferry LRBS-LRCL", FlightCategory.FERRY),
        ("DEMO", FlightCategory.DEMO),
        ("demo flight", FlightCategory.DEMO),
    ])
    def test_excluded_types_substring_case_insensitive(self, aggregator, flight_type, category):
        record = make_flight(flight_type=flight_type)
        assert aggregator.pilot_categories(record) == (category,)
        assert aggregator.is_excluded(record)

    def test_third_party_funded_is_charter_for_pilot(self, aggregator):
        record = make_flight(pilot_id="x", payer_id="y")
        assert aggregator.pilot_categories(record) == (FlightCategory.CHARTER,)
        assert aggregator.charges_payer(record)

    def test_self_funded_charter_tag_is_regular_and_charter(self, aggregator):
        record = make_flight(flight_type="CHARTER")
        assert aggregator.pilot_categories(record) == (
            FlightCategory.REGULAR, FlightCategory.CHARTER,
        )

    def test_payer_equal_to_pilot_is_not_third_party(self, aggregator):
        record = make_flight(pilot_id="x", payer_id="x")
        assert aggregator.pilot_categories(record) == (FlightCategory.REGULAR,)
        assert not aggregator.charges_payer(record)

    def test_excluded_flight_never_charges_payer(self, aggregator):
        record = make_flight(pilot_id="x", payer_id="y", flight_type="FERRY")
        assert not aggregator.charges_payer(record)

    def test_unknown_exclusion_rejected(self):
        with pytest.raises(ValueError):
            FlightCategoryAggregator(excluded_flight_types=("TOWING",))


class TestAggregate:
    """Tests for per-client aggregation."""

    def test_ferry_and_demo_do_not_reach_regular(self, aggregator):
        records = [
            make_flight("2.0"),
            make_flight("1.5", flight_type="FERRY"),
            make_flight("0.5", flight_type="DEMO"),
        ]

        a = aggregator.aggregate(records, as_of=TODAY).for_client("client-a")

        assert a.total_flown_hours == Decimal("2.0")
        assert a.ferry.total == Decimal("1.5")
        assert a.demo.total == Decimal("0.5")
        assert a.regular.count == 1

    def test_charter_counts_on_both_ledgers(self, aggregator):
        """X flies a 3h CHARTER paid by Y: X charter 3, Y chartered 3, X regular 0."""
        result = aggregator.aggregate(
            [make_flight("3", pilot_id="x", payer_id="y", flight_type="CHARTER")], as_of=TODAY,
        )

        x = result.for_client("x")
        y = result.for_client("y")
        assert x.charter.total == Decimal("3")
        assert x.total_flown_hours == Decimal("0")
        assert y.total_chartered_hours == Decimal("3")
        assert y.total_flown_hours == Decimal("0")
        assert result.client_ids == frozenset({"x", "y"})

    def test_instructor_neither_credited_nor_charged(self, aggregator):
        result = aggregator.aggregate(
            [make_flight("1.2", pilot_id="student", instructor_id="cfi")], as_of=TODAY,
        )

        assert "cfi" not in result.client_ids
        cfi = result.for_client("cfi")
        assert cfi.total_flown_hours == Decimal("0")
        assert cfi.total_chartered_hours == Decimal("0")

    def test_year_split(self, aggregator):
        records = [
            make_flight("1", flight_date=date(2024, 2, 1)),
            make_flight("2", flight_date=date(2023, 12, 31)),
            make_flight("4", flight_date=date(2022, 5, 5)),
        ]

        regular = aggregator.aggregate(records, as_of=TODAY).for_client("client-a").regular

        assert regular.total == Decimal("7")
        assert regular.current_year == Decimal("1")
        assert regular.previous_year == Decimal("2")

    def test_rolling_windows_inclusive(self, aggregator):
        records = [
            make_flight(flight_date=TODAY),
            make_flight(flight_date=date(2024, 3, 17)),  # 90 days before
            make_flight(flight_date=date(2024, 3, 16)),  # 91 days before
            make_flight(flight_date=date(2023, 6, 16)),  # 365 days before
            make_flight(flight_date=date(2023, 6, 15)),  # 366 days before
            make_flight(flight_date=date(2024, 7, 1)),   # after as_of
        ]

        a = aggregator.aggregate(records, as_of=TODAY).for_client("client-a")

        assert a.flights_90_days == 2
        assert a.flights_12_months == 4

    def test_windows_count_excluded_flights(self, aggregator):
        a = aggregator.aggregate(
            [make_flight(flight_type="DEMO", flight_date=TODAY)], as_of=TODAY,
        ).for_client("client-a")
        assert a.flights_90_days == 1

    def test_bucket_accessor(self, aggregator):
        a = aggregator.aggregate([make_flight("2")], as_of=TODAY).for_client("client-a")
        assert a.bucket(FlightCategory.REGULAR).total == Decimal("2")

    def test_unknown_client_is_all_zero(self, aggregator):
        a = aggregator.aggregate([], as_of=TODAY).for_client("nobody")
        assert a.total_flown_hours == Decimal("0")
        assert a.flights_12_months == 0


class TestSkippedRecords:

    def test_missing_pilot(self, aggregator):
        result = aggregator.aggregate(
            [make_flight(pilot_id=None, payer_id="y")], as_of=TODAY,
        )
        assert result.client_ids == frozenset()
        assert result.notes[0].code == NoteCode.MISSING_PILOT
        assert result.notes[0].client_id == "y"

    @pytest.mark.parametrize("hours", ["0", "-1.5"])
    def test_non_positive_hours(self, aggregator, hours):
        result = aggregator.aggregate(
            [make_flight(hours), make_flight("1")], as_of=TODAY,
        )
        assert result.for_client("client-a").total_flown_hours == Decimal("1")
        assert [n.code for n in result.notes] == [NoteCode.NON_POSITIVE_HOURS]
