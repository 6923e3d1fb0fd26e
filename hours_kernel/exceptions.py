"""
Typed Exception Hierarchy for the flight-hour ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A ledger that returns a plausible-looking but wrong balance is worse than one
that fails. Every failure the engine surfaces is therefore a TYPED exception
with a machine-readable CODE and its context stored as attributes, so the
service layer can map it to a response without parsing message strings:

    try:
        summary = ledger_service.get_client_ledger(client_id)
    except ClientNotFoundError as e:
        api_response(status=404, code=e.code, client=e.client_id)
    except IncompleteRetrievalError as e:
        api_response(status=503, code=e.code, fetched=e.rows_fetched)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    HoursKernelError (base)
    |
    +-- InputError
    |   +-- InvalidHoursError
    |   +-- InvalidTrancheError
    |
    +-- RetrievalError
    |   +-- IncompleteRetrievalError
    |   +-- ClientNotFoundError
    |
    +-- LedgerInvariantError
        +-- TrancheSumMismatchError
        +-- ConsumptionInvariantError
        +-- ReconciliationMismatchError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                            | When Raised
-------------|---------------------------------|-----------------------------------
Input        | INVALID_HOURS                   | Negative/NaN hour value in a DTO
             | INVALID_TRANCHE                 | Tranche number outside 1..total
-------------|---------------------------------|-----------------------------------
Retrieval    | INCOMPLETE_RETRIEVAL            | A chunk failed mid-pagination
             | CLIENT_NOT_FOUND                | Unknown client id
-------------|---------------------------------|-----------------------------------
Invariant    | TRANCHE_SUM_MISMATCH            | Tranche hours != course total
             | CONSUMPTION_INVARIANT_VIOLATION | FIFO used/remaining out of range
             | RECONCILIATION_MISMATCH         | Package view != summary total

===============================================================================
PROPAGATION
===============================================================================

Per-record problems (an unparseable tranche description, a flight record
without a pilot, an invoice without a client) are NOT exceptions. They are
recorded as processing notes next to the result. Only per-computation
failures raise: a failed retrieval or a broken ledger invariant.
"""


class HoursKernelError(Exception):
    """
    Base exception for all flight-hour ledger errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "HOURS_KERNEL_ERROR"


# Input-related exceptions


class InputError(HoursKernelError):
    """Base exception for malformed caller input."""

    code: str = "INPUT_ERROR"


class InvalidHoursError(InputError):
    """An hour value is negative or not a finite number."""

    code: str = "INVALID_HOURS"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid hour value for {field}: {value}")


class InvalidTrancheError(InputError):
    """Tranche number does not fit the declared tranche count."""

    code: str = "INVALID_TRANCHE"

    def __init__(self, tranche_number: int, total_tranches: int):
        self.tranche_number = tranche_number
        self.total_tranches = total_tranches
        super().__init__(
            f"Tranche {tranche_number} is outside 1..{total_tranches}"
        )


# Retrieval-related exceptions


class RetrievalError(HoursKernelError):
    """Base exception for backing-store read failures."""

    code: str = "RETRIEVAL_ERROR"


class IncompleteRetrievalError(RetrievalError):
    """
    A chunk failed while paging through a result set.

    The rows fetched so far are NOT returned: a short result must never be
    mistaken for a complete one.
    """

    code: str = "INCOMPLETE_RETRIEVAL"

    def __init__(self, source: str, offset: int, page_size: int, rows_fetched: int):
        self.source = source
        self.offset = offset
        self.page_size = page_size
        self.rows_fetched = rows_fetched
        super().__init__(
            f"Retrieval of {source} failed at offset {offset} "
            f"(page size {page_size}) after {rows_fetched} rows"
        )


class ClientNotFoundError(RetrievalError):
    """Client with given id does not exist."""

    code: str = "CLIENT_NOT_FOUND"

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"Client not found: {client_id}")


# Invariant violations


class LedgerInvariantError(HoursKernelError):
    """
    Base exception for ledger invariant breaches.

    These are defects, not recoverable conditions. They are raised so that a
    wrong number never reaches a caller.
    """

    code: str = "LEDGER_INVARIANT_VIOLATION"


class TrancheSumMismatchError(LedgerInvariantError):
    """Hours allocated across a course contract do not sum to the course total."""

    code: str = "TRANCHE_SUM_MISMATCH"

    def __init__(self, total_tranches: int, expected: str, actual: str):
        self.total_tranches = total_tranches
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Tranche allocation over {total_tranches} installments sums to "
            f"{actual}, expected {expected}"
        )


class ConsumptionInvariantError(LedgerInvariantError):
    """FIFO consumption produced an out-of-range package or a lost hour."""

    code: str = "CONSUMPTION_INVARIANT_VIOLATION"

    def __init__(self, client_id: str, detail: str):
        self.client_id = client_id
        self.detail = detail
        super().__init__(f"FIFO consumption invariant violated for {client_id}: {detail}")


class ReconciliationMismatchError(LedgerInvariantError):
    """Per-package remaining hours disagree with the recomputed summary total."""

    code: str = "RECONCILIATION_MISMATCH"

    def __init__(self, client_id: str, package_total: str, summary_total: str):
        self.client_id = client_id
        self.package_total = package_total
        self.summary_total = summary_total
        super().__init__(
            f"Ledger mismatch for {client_id}: packages={package_total}, "
            f"summary={summary_total}"
        )
