"""
Tests for the SQLAlchemy selectors and SqlAlchemyLedgerSource.

Runs against an in-memory SQLite database.
"""

from datetime import date
from decimal import Decimal

import pytest

from hours_kernel.models import Client, FlightRecord, Invoice, InvoiceLineItem
from hours_kernel.selectors import ClientSelector, FlightSelector, InvoiceSelector
from hours_services.retrieval import SqlAlchemyLedgerSource


@pytest.fixture
def seeded(session):
    session.add_all([
        Client(id="c1", display_name="Ana Pop", email="ana@example.com"),
        Client(id="c2", display_name="Dan Ionescu", email="dan@example.com"),
        Client(id="cfi", display_name="Instructor", email="cfi@example.com"),
    ])
    paid = Invoice(
        id="inv-paid", external_ref="FS-0001", client_id="c1",
        issue_date=date(2024, 1, 10), status="paid",
    )
    paid.line_items = [
        InvoiceLineItem(
            id="li-2", position=2, name="Taxe aeroport", unit="BUC",
            quantity=Decimal("1"), unit_price=Decimal("20"), total_amount=Decimal("20"),
        ),
        InvoiceLineItem(
            id="li-1", position=1, name="Ore zbor", unit="HUR",
            quantity=Decimal("10"), unit_price=Decimal("150"), total_amount=Decimal("1500"),
        ),
    ]
    draft = Invoice(
        id="inv-draft", client_id="c1", issue_date=date(2024, 2, 1), status="draft",
    )
    draft.line_items = [
        InvoiceLineItem(id="li-3", position=1, name="Ore zbor", unit="HUR", quantity=Decimal("5")),
    ]
    other = Invoice(
        id="inv-c2", client_id="c2", issue_date=date(2024, 1, 5), status="imported",
    )
    session.add_all([paid, draft, other])
    session.add_all([
        FlightRecord(id="f1", pilot_id="c1", total_hours=Decimal("1.5"),
                     flight_date=date(2024, 2, 1), flight_type="TRAINING"),
        FlightRecord(id="f2", pilot_id="c2", payer_id="c1", total_hours=Decimal("2"),
                     flight_date=date(2024, 3, 1), flight_type=None),
        FlightRecord(id="f3", pilot_id="c2", instructor_id="cfi", total_hours=Decimal("1"),
                     flight_date=date(2024, 4, 1), flight_type="TRAINING"),
    ])
    session.flush()
    return session


class TestClientSelector:

    def test_get(self, seeded):
        client = ClientSelector(seeded).get("c1")
        assert (client.client_id, client.name, client.email) == ("c1", "Ana Pop", "ana@example.com")

    def test_get_unknown(self, seeded):
        assert ClientSelector(seeded).get("nobody") is None

    def test_get_many_skips_unknown(self, seeded):
        clients = ClientSelector(seeded).get_many(["c2", "c1", "nobody"])
        assert set(clients) == {"c1", "c2"}

    def test_get_many_empty(self, seeded):
        assert ClientSelector(seeded).get_many([]) == {}


class TestInvoiceSelector:

    def test_status_filter(self, seeded):
        invoices = InvoiceSelector(seeded).fetch_page(0, 10, statuses=["paid", "imported"])
        assert [i.invoice_id for i in invoices] == ["inv-c2", "FS-0001"]

    def test_line_items_in_position_order(self, seeded):
        (invoice,) = InvoiceSelector(seeded).fetch_page(0, 10, statuses=["paid"])

        assert [li.line_id for li in invoice.line_items] == ["li-1", "li-2"]
        first = invoice.line_items[0]
        assert first.invoice_id == "FS-0001"
        assert first.client_id == "c1"
        assert first.quantity == Decimal("10")
        assert first.issue_date == date(2024, 1, 10)

    def test_client_filter(self, seeded):
        invoices = InvoiceSelector(seeded).fetch_page(
            0, 10, statuses=["paid", "imported", "draft"], client_id="c1",
        )
        assert {i.client_id for i in invoices} == {"c1"}
        assert len(invoices) == 2


class TestFlightSelector:

    def test_ordered_by_date(self, seeded):
        records = FlightSelector(seeded).fetch_page(0, 10)
        assert [r.record_id for r in records] == ["f1", "f2", "f3"]

    def test_client_filter_matches_every_role(self, seeded):
        selector = FlightSelector(seeded)
        assert [r.record_id for r in selector.fetch_page(0, 10, client_id="c1")] == ["f1", "f2"]
        assert [r.record_id for r in selector.fetch_page(0, 10, client_id="cfi")] == ["f3"]

    def test_date_bounds_inclusive(self, seeded):
        records = FlightSelector(seeded).fetch_page(
            0, 10, start_date=date(2024, 3, 1), end_date=date(2024, 4, 1),
        )
        assert [r.record_id for r in records] == ["f2", "f3"]

    def test_null_flight_type_becomes_empty(self, seeded):
        f2 = FlightSelector(seeded).fetch_page(0, 10, client_id="c1")[1]
        assert f2.flight_type == ""
        assert f2.is_third_party_funded


class TestSqlAlchemyLedgerSource:

    def test_reads_through_small_pages(self, seeded):
        source = SqlAlchemyLedgerSource(seeded, page_size=1)

        records = source.get_flight_records()
        invoices = source.get_invoices(["paid", "imported"])

        assert [r.record_id for r in records] == ["f1", "f2", "f3"]
        assert len(invoices) == 2

    def test_client_scoped_reads(self, seeded):
        source = SqlAlchemyLedgerSource(seeded, page_size=2)

        assert [i.invoice_id for i in source.get_invoices(["paid"], client_id="c1")] == ["FS-0001"]
        assert [r.record_id for r in source.get_flight_records(client_id="c2")] == ["f2", "f3"]
        assert source.get_client("c2").name == "Dan Ionescu"
        assert set(source.get_clients(["c1", "c2"])) == {"c1", "c2"}
