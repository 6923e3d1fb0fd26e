"""
hours_services.retrieval -- Narrow retrieval interface for the ledger.

Responsibility:
    Declares ``LedgerDataSource``, the only way LedgerService reads input
    data, and ``SqlAlchemyLedgerSource``, its implementation over the
    kernel selectors.  The engines never see a session.

Architecture position:
    Services -- the one I/O boundary of a ledger computation.

Invariants enforced:
    - Completeness: invoices and flight records are read through
      BulkRetriever, so a store page cap never truncates a result set.
    - Read-only: the source never adds, flushes or commits.

Failure modes:
    - IncompleteRetrievalError from BulkRetriever when a chunk fails.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Protocol

from sqlalchemy.orm import Session

from hours_kernel.domain.dtos import Client, FlightRecord, Invoice
from hours_kernel.selectors.chunked import DEFAULT_PAGE_SIZE, BulkRetriever
from hours_kernel.selectors.client_selector import ClientSelector
from hours_kernel.selectors.flight_selector import FlightSelector
from hours_kernel.selectors.invoice_selector import InvoiceSelector


class LedgerDataSource(Protocol):
    """What a ledger computation needs from the backing store."""

    def get_client(self, client_id: str) -> Client | None:
        ...

    def get_clients(self, client_ids: Iterable[str]) -> Mapping[str, Client]:
        ...

    def get_invoices(
        self,
        statuses: Sequence[str],
        client_id: str | None = None,
    ) -> Sequence[Invoice]:
        ...

    def get_flight_records(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        client_id: str | None = None,
    ) -> Sequence[FlightRecord]:
        ...


class SqlAlchemyLedgerSource:
    """
    LedgerDataSource over a caller-owned SQLAlchemy session.

    Usage:
        with session_scope() as session:
            source = SqlAlchemyLedgerSource(session, page_size=config.page_size)
    """

    def __init__(self, session: Session, page_size: int = DEFAULT_PAGE_SIZE):
        self._clients = ClientSelector(session)
        self._invoices = InvoiceSelector(session)
        self._flights = FlightSelector(session)
        self._page_size = page_size

    def get_client(self, client_id: str) -> Client | None:
        return self._clients.get(client_id)

    def get_clients(self, client_ids: Iterable[str]) -> Mapping[str, Client]:
        return self._clients.get_many(client_ids)

    def get_invoices(
        self,
        statuses: Sequence[str],
        client_id: str | None = None,
    ) -> Sequence[Invoice]:
        retriever: BulkRetriever[Invoice] = BulkRetriever("invoices", self._page_size)
        return retriever.fetch_all(
            lambda offset, limit: self._invoices.fetch_page(
                offset, limit, statuses=statuses, client_id=client_id,
            )
        )

    def get_flight_records(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        client_id: str | None = None,
    ) -> Sequence[FlightRecord]:
        retriever: BulkRetriever[FlightRecord] = BulkRetriever(
            "flight_records", self._page_size,
        )
        return retriever.fetch_all(
            lambda offset, limit: self._flights.fetch_page(
                offset, limit,
                start_date=start_date, end_date=end_date, client_id=client_id,
            )
        )
