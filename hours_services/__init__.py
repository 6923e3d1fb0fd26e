"""
hours_services -- orchestration layer of the flight-hour ledger.

LedgerService answers the ledger queries; LedgerDataSource is the narrow
retrieval interface it reads through, with SqlAlchemyLedgerSource as the
database-backed implementation.
"""

from hours_services.ledger_service import LedgerService
from hours_services.retrieval import LedgerDataSource, SqlAlchemyLedgerSource

__all__ = ["LedgerDataSource", "LedgerService", "SqlAlchemyLedgerSource"]
