"""
Tests for LedgerService.

Runs the full pipeline (classification, course allocation, flight
aggregation, FIFO, reconciliation) over an in-memory LedgerDataSource.
"""

from datetime import date
from decimal import Decimal

import pytest

from hours_engines.fifo import PackageStatus
from hours_engines.line_items import PackageSource
from hours_kernel.domain.dtos import NoteCode
from hours_kernel.exceptions import ClientNotFoundError, IncompleteRetrievalError, InputError
from hours_kernel.selectors.chunked import BulkRetriever
from hours_services import LedgerService
from tests.factories import make_client, make_course_item, make_flight, make_invoice, make_item


class InMemoryLedgerSource:
    """LedgerDataSource over lists, paged like the real store."""

    def __init__(self, clients=(), invoices=(), flights=(), page_size=2, fail_flights=False):
        self.clients = {c.client_id: c for c in clients}
        self.invoices = list(invoices)
        self.flights = list(flights)
        self.page_size = page_size
        self.fail_flights = fail_flights

    def get_client(self, client_id):
        return self.clients.get(client_id)

    def get_clients(self, client_ids):
        return {cid: self.clients[cid] for cid in client_ids if cid in self.clients}

    def get_invoices(self, statuses, client_id=None):
        rows = [
            i for i in self.invoices
            if i.status in statuses and (client_id is None or i.client_id == client_id)
        ]
        return BulkRetriever("invoices", self.page_size).fetch_all(
            lambda offset, limit: rows[offset:offset + limit]
        )

    def get_flight_records(self, start_date=None, end_date=None, client_id=None):
        rows = [
            f for f in self.flights
            if client_id is None or client_id in (f.pilot_id, f.payer_id, f.instructor_id)
        ]

        def fetch(offset, limit):
            if self.fail_flights and offset > 0:
                raise TimeoutError("store timed out")
            return rows[offset:offset + limit]

        return BulkRetriever("flight_records", self.page_size).fetch_all(fetch)


@pytest.fixture
def source():
    return InMemoryLedgerSource(
        clients=[
            make_client("ana", name="Ana Pop", email="ana@example.com"),
            make_client("dan", name="Dan Ionescu", email="dan@example.com"),
            make_client("eva", name="Eva Marin", email="eva@example.com"),
        ],
        invoices=[
            make_invoice(make_item("5", client_id="ana", issue_date=date(2024, 1, 1), invoice_id="A1")),
            make_invoice(make_item("10", client_id="ana", issue_date=date(2024, 2, 1), invoice_id="A2")),
            make_invoice(make_item("10", client_id="dan", issue_date=date(2024, 1, 15), invoice_id="D1")),
            make_invoice(
                make_item("20", client_id="dan", issue_date=date(2024, 3, 1), invoice_id="D-DRAFT"),
                status="draft",
            ),
            make_invoice(
                make_course_item("Tranșa 1/4", client_id="eva", invoice_id="E1",
                                 issue_date=date(2024, 1, 20)),
            ),
            make_invoice(
                make_course_item("Curs PPL(A) avans", client_id="eva", invoice_id="E2",
                                 issue_date=date(2024, 2, 20)),
            ),
        ],
        flights=[
            make_flight("7", pilot_id="ana", flight_date=date(2024, 3, 1)),
            make_flight("1", pilot_id="ana", flight_type="FERRY", flight_date=date(2024, 3, 2)),
            make_flight("3", pilot_id="ana", payer_id="dan", flight_date=date(2024, 4, 1)),
            make_flight("2", pilot_id="eva", instructor_id="dan", flight_date=date(2024, 5, 1)),
            make_flight("1", pilot_id="ghost", flight_date=date(2024, 5, 2)),
            make_flight("0", pilot_id="eva", flight_date=date(2024, 5, 3)),
        ],
    )


@pytest.fixture
def service(source, ledger_config, clock):
    return LedgerService(source, config=ledger_config, clock=clock)


class TestClientLedger:

    def test_fifo_and_exclusions(self, service):
        summary = service.get_client_ledger("ana")

        assert summary.total_purchased_hours == Decimal("15")
        assert summary.total_flown_hours == Decimal("7")
        assert summary.total_ferry_hours == Decimal("1")
        assert summary.total_charter_hours == Decimal("3")
        assert summary.total_remaining_hours == Decimal("8")
        assert [(p.invoice_id, p.used_hours, p.remaining_hours) for p in summary.packages] == [
            ("A1", Decimal("5"), Decimal("0")),
            ("A2", Decimal("2"), Decimal("8")),
        ]

    def test_payer_is_charged(self, service):
        summary = service.get_client_ledger("dan")

        # Draft invoice is not read
        assert summary.total_purchased_hours == Decimal("10")
        assert summary.total_chartered_hours == Decimal("3")
        assert summary.total_flown_hours == Decimal("0")
        assert summary.total_remaining_hours == Decimal("7")

    def test_course_client(self, service):
        summary = service.get_client_ledger("eva")

        assert summary.total_purchased_hours == Decimal("11")
        assert summary.packages[0].source_kind == PackageSource.COURSE
        assert summary.course_progress.hours_allocated == Decimal("11")
        assert summary.total_remaining_hours == Decimal("9")
        codes = {n.code for n in summary.notes}
        assert codes == {NoteCode.UNPARSEABLE_TRANCHE, NoteCode.NON_POSITIVE_HOURS}

    def test_drilldown(self, service):
        rows = service.get_package_drilldown("ana")
        assert [r.status for r in rows] == [PackageStatus.OVERDRAWN, PackageStatus.IN_PROGRESS]

    def test_unknown_client(self, service):
        with pytest.raises(ClientNotFoundError) as exc_info:
            service.get_client_ledger("nobody")
        assert exc_info.value.client_id == "nobody"

    def test_logs_carry_client_context(self, service, captured_logs):
        service.get_client_ledger("ana")

        computed = [r for r in captured_logs() if r["message"] == "client_ledger_computed"]
        assert computed[0]["client_id"] == "ana"
        assert "computation_id" in computed[0]
        assert computed[0]["config_id"] == "default"


class TestSettlementStatement:

    def test_final_balance_matches_ledger(self, service):
        for client_id in ("ana", "dan", "eva"):
            statement = service.get_settlement_statement(client_id)
            summary = service.get_client_ledger(client_id)
            assert statement.final_balance == summary.total_remaining_hours

    def test_unknown_client(self, service):
        with pytest.raises(ClientNotFoundError):
            service.get_settlement_statement("nobody")


class TestPopulationLedger:

    def test_universe_and_stats(self, service):
        ledger = service.get_population_ledger(page=1, page_size=2)

        # ghost flew but has no client row
        assert ledger.pagination.total == 4
        assert ledger.pagination.total_pages == 2
        assert len(ledger.clients) == 2
        assert ledger.aggregate_stats.total_purchased_hours == Decimal("36")
        assert ledger.aggregate_stats.total_flown_hours == Decimal("10")
        assert ledger.aggregate_stats.total_chartered_hours == Decimal("3")

    def test_population_matches_single_client(self, service):
        ledger = service.get_population_ledger(page=1, page_size=10, search="ana")

        (row,) = ledger.clients
        assert row == service.get_client_ledger("ana")

    def test_sorted_by_remaining(self, service):
        ledger = service.get_population_ledger(
            page=1, page_size=10, sort_by="remaining", sort_order="asc",
        )
        remaining = [s.total_remaining_hours for s in ledger.clients]
        assert remaining == sorted(remaining)

    def test_parallel_matches_serial(self, source, ledger_config, clock):
        serial = LedgerService(source, config=ledger_config, clock=clock)
        parallel = LedgerService(source, config=ledger_config, clock=clock, max_workers=4)

        a = serial.get_population_ledger(page=1, page_size=10)
        b = parallel.get_population_ledger(page=1, page_size=10)

        assert a == b

    def test_client_without_row_is_listed_under_its_id(self, service):
        ledger = service.get_population_ledger(page=1, page_size=10, search="ghost")

        (row,) = ledger.clients
        assert row.client_id == "ghost"
        assert row.name == "ghost"
        assert row.total_flown_hours == Decimal("1")

    def test_parallel_logs_keep_computation_id(self, source, ledger_config, clock, captured_logs):
        service = LedgerService(source, config=ledger_config, clock=clock, max_workers=4)

        service.get_population_ledger(page=1, page_size=10)

        records = captured_logs()
        (computed,) = [r for r in records if r["message"] == "population_ledger_computed"]
        reconciler_traces = [
            r for r in records
            if r["message"] == "HOURS_ENGINE_TRACE" and r["engine_name"] == "ledger_reconciler"
        ]
        assert len(reconciler_traces) == 4
        assert {r.get("computation_id") for r in reconciler_traces} == {computed["computation_id"]}

    @pytest.mark.parametrize("page,page_size", [(0, 10), (1, 0)])
    def test_invalid_page(self, service, page, page_size):
        with pytest.raises(InputError):
            service.get_population_ledger(page=page, page_size=page_size)

    def test_failed_chunk_propagates(self, source, ledger_config, clock):
        source.fail_flights = True
        service = LedgerService(source, config=ledger_config, clock=clock)

        with pytest.raises(IncompleteRetrievalError):
            service.get_population_ledger(page=1, page_size=10)


class TestCreditNotes:
    """Storno hour lines reduce the purchased total."""

    @pytest.fixture
    def credited_service(self, ledger_config, clock):
        source = InMemoryLedgerSource(
            clients=[make_client("x", name="Ion Radu", email="ion@example.com")],
            invoices=[
                make_invoice(make_item("10", client_id="x", issue_date=date(2024, 1, 5))),
                make_invoice(make_item("-10", client_id="x", issue_date=date(2024, 1, 25))),
            ],
            flights=[make_flight("2", pilot_id="x", flight_date=date(2024, 2, 1))],
        )
        return LedgerService(source, config=ledger_config, clock=clock)

    def test_population_ledger_nets_credit(self, credited_service):
        ledger = credited_service.get_population_ledger(page=1, page_size=10)

        assert ledger.aggregate_stats.total_purchased_hours == Decimal("0")
        (row,) = ledger.clients
        assert row.total_purchased_hours == Decimal("0")
        assert row.total_remaining_hours == Decimal("-2")

    def test_client_ledger_nets_credit(self, credited_service):
        summary = credited_service.get_client_ledger("x")

        assert summary.total_purchased_hours == Decimal("0")
        assert summary.packages == ()
        assert summary.total_remaining_hours == Decimal("-2")

    def test_statement_ends_on_ledger_balance(self, credited_service):
        statement = credited_service.get_settlement_statement("x")
        assert statement.final_balance == Decimal("-2")
