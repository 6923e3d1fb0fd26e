"""
hours_services.ledger_service -- LedgerService.

Responsibility:
    Orchestrates one ledger computation: read invoices and flight records
    through a LedgerDataSource, run the engines, and return the single
    client ledger, the paginated population ledger, the per-package
    drill-down or the chronological settlement statement.

Architecture position:
    Services -- orchestration over engines + kernel.
    The only layer that reads the clock (``as_of`` for the engines) and
    the only layer that touches I/O (through the data source).

Invariants enforced:
    - No stored balance: every call recomputes from source records.
    - Pagination safety: population statistics are computed over every
      matching client before the page is sliced (LedgerReconciler).
    - Per-record problems are returned as notes; per-computation failures
      (retrieval, invariant breach) propagate to the caller.

Failure modes:
    - ClientNotFoundError: unknown client id.
    - IncompleteRetrievalError: a retrieval chunk failed.
    - InputError: page < 1 or page_size < 1, unknown sort arguments.
    - LedgerInvariantError subclasses: a defect in an engine.

Usage:
    from hours_config import get_active_config
    from hours_kernel.db.engine import session_scope
    from hours_services import LedgerService, SqlAlchemyLedgerSource

    config = get_active_config()
    with session_scope() as session:
        service = LedgerService(
            SqlAlchemyLedgerSource(session, page_size=config.page_size),
            config=config,
        )
        summary = service.get_client_ledger(client_id)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from contextvars import copy_context
from dataclasses import dataclass
from uuid import uuid4

from hours_config import get_active_config
from hours_config.bridges import build_ledger_engines
from hours_config.schema import LedgerConfig
from hours_engines import (
    ClientFlightAggregate,
    HourPackage,
    LedgerSummary,
    PackageDrilldown,
    PopulationLedger,
    SettlementStatement,
    SortField,
    SortOrder,
)
from hours_kernel.domain.clock import Clock, SystemClock
from hours_kernel.domain.dtos import Client, FlightRecord, ProcessingNote
from hours_kernel.exceptions import ClientNotFoundError, InputError
from hours_kernel.logging_config import LogContext, get_logger
from hours_services.retrieval import LedgerDataSource

logger = get_logger("services.ledger")


@dataclass(frozen=True)
class _ClientInputs:
    """Engine-ready inputs of one client."""

    packages: tuple[HourPackage, ...]
    records: tuple[FlightRecord, ...]
    flights: ClientFlightAggregate
    notes: tuple[ProcessingNote, ...]


class LedgerService:
    """
    Flight-hour ledger queries.

    Contract:
        Read-only.  Each call is an independent, idempotent computation.
    Guarantees:
        - Results for one client are identical whether computed alone or
          as part of a population page.
        - Population pages are in the requested sort order regardless of
          ``max_workers``.
    """

    def __init__(
        self,
        source: LedgerDataSource,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
        max_workers: int = 1,
    ):
        self._source = source
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._engines = build_ledger_engines(self._config)
        self._max_workers = max(1, max_workers)

    # ------------------------------------------------------------------
    # Single client
    # ------------------------------------------------------------------

    def get_client_ledger(self, client_id: str) -> LedgerSummary:
        """
        Ledger of one client.

        Raises:
            ClientNotFoundError: If the client does not exist.
        """
        with LogContext.bind(
            client_id=client_id,
            computation_id=str(uuid4()),
            config_id=self._config.config_id,
        ):
            client = self._require_client(client_id)
            inputs = self._load_client_inputs(client_id)
            summary = self._engines.reconciler.summarize(
                client=client,
                packages=inputs.packages,
                flights=inputs.flights,
                notes=inputs.notes,
            )
            logger.info("client_ledger_computed", extra={
                "purchased_hours": summary.total_purchased_hours,
                "flown_hours": summary.total_flown_hours,
                "chartered_hours": summary.total_chartered_hours,
                "remaining_hours": summary.total_remaining_hours,
                "note_count": len(summary.notes),
            })
            return summary

    def get_package_drilldown(self, client_id: str) -> tuple[PackageDrilldown, ...]:
        """Per-package used/remaining/status of one client, in FIFO order."""
        return self.get_client_ledger(client_id).packages

    def get_settlement_statement(self, client_id: str) -> SettlementStatement:
        """
        Chronological statement of one client.

        Raises:
            ClientNotFoundError: If the client does not exist.
        """
        with LogContext.bind(
            client_id=client_id,
            computation_id=str(uuid4()),
            config_id=self._config.config_id,
        ):
            self._require_client(client_id)
            inputs = self._load_client_inputs(client_id)
            return self._engines.settlement.build(
                client_id=client_id,
                packages=inputs.packages,
                flights=inputs.records,
            )

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def get_population_ledger(
        self,
        page: int,
        page_size: int,
        search: str | None = None,
        sort_by: SortField | str = SortField.EMAIL,
        sort_order: SortOrder | str = SortOrder.ASC,
    ) -> PopulationLedger:
        """
        One page of client ledgers, with statistics over every client that
        matches ``search``.

        The client universe is every client that flew, paid for a flight,
        or owns an hour or course package.  A client with no client row is
        listed with its id as the name.

        Raises:
            InputError: If page or page_size is below 1.
            IncompleteRetrievalError: If a retrieval chunk fails.
        """
        if page < 1 or page_size < 1:
            raise InputError(f"page and page_size must be >= 1 (got {page}, {page_size})")

        with LogContext.bind(
            computation_id=str(uuid4()),
            config_id=self._config.config_id,
        ):
            engines = self._engines
            invoices = self._source.get_invoices(self._config.invoice_statuses)
            records = self._source.get_flight_records()

            classification = engines.classifier.classify_invoices(invoices)
            course = engines.course_calculator.build_tranches(classification.course_items)
            aggregation = engines.aggregator.aggregate(records, as_of=self._clock.today())

            packages_by_client: dict[str, list[HourPackage]] = defaultdict(list)
            for package in classification.packages + course.packages:
                packages_by_client[package.client_id].append(package)

            notes_by_client: dict[str | None, list[ProcessingNote]] = defaultdict(list)
            for note in classification.notes + course.notes + aggregation.notes:
                notes_by_client[note.client_id].append(note)

            universe = sorted(set(packages_by_client) | aggregation.client_ids)
            known = self._source.get_clients(universe)
            clients = [
                known.get(client_id) or Client(client_id=client_id, name=client_id, email="")
                for client_id in universe
            ]

            def summarize(client: Client) -> LedgerSummary:
                return engines.reconciler.summarize(
                    client=client,
                    packages=packages_by_client.get(client.client_id, ()),
                    flights=aggregation.for_client(client.client_id),
                    notes=notes_by_client.get(client.client_id, ()),
                )

            summaries = self._map(summarize, clients)

            logger.info("population_ledger_computed", extra={
                "client_count": len(summaries),
                "invoice_count": len(invoices),
                "flight_record_count": len(records),
                "max_workers": self._max_workers,
            })

            return engines.reconciler.paginate(
                summaries=summaries,
                page=page,
                page_size=page_size,
                search=search,
                sort_by=sort_by,
                sort_order=sort_order,
                notes=notes_by_client.get(None, ()),
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _map(self, fn, clients: Sequence[Client]) -> list[LedgerSummary]:
        if self._max_workers == 1 or len(clients) < 2:
            return [fn(client) for client in clients]
        # One context copy per task keeps LogContext fields in worker log records
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            futures = [pool.submit(copy_context().run, fn, client) for client in clients]
            return [future.result() for future in futures]

    def _require_client(self, client_id: str) -> Client:
        client = self._source.get_client(client_id)
        if client is None:
            logger.warning("client_not_found", extra={"client_id": client_id})
            raise ClientNotFoundError(client_id)
        return client

    def _load_client_inputs(self, client_id: str) -> _ClientInputs:
        engines = self._engines
        invoices = self._source.get_invoices(
            self._config.invoice_statuses, client_id=client_id,
        )
        records = tuple(self._source.get_flight_records(client_id=client_id))

        classification = engines.classifier.classify_invoices(invoices)
        course = engines.course_calculator.build_tranches(
            classification.course_items_for(client_id),
        )
        aggregation = engines.aggregator.aggregate(records, as_of=self._clock.today())

        packages = classification.packages_for(client_id) + course.packages
        notes = tuple(
            note
            for note in classification.notes + course.notes + aggregation.notes
            if note.client_id in (client_id, None)
        )
        return _ClientInputs(
            packages=packages,
            records=records,
            flights=aggregation.for_client(client_id),
            notes=notes,
        )
