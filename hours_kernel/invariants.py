"""
Ledger Invariants Contract.

These invariants are structural law for every ledger computation. No
configuration value may switch them off.

This module exists solely to declare them explicitly. Enforcement is
distributed across CourseAllocationCalculator, FIFOConsumptionAllocator
and LedgerReconciler.
"""

from decimal import Decimal
from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the engines.

    Each value names one guarantee that holds for every computation
    regardless of configuration.
    """

    RECONCILIATION = "reconciliation"
    """remaining == purchased - flown - chartered for every client.
    Enforced by LedgerReconciler."""

    FIFO_CONSERVATION = "fifo_conservation"
    """sum(used) == min(flown, sum(total)) and 0 <= used <= total for every
    package. Enforced by FIFOConsumptionAllocator."""

    TRANCHE_EXACT_SUM = "tranche_exact_sum"
    """Installment hours of one course contract sum to the course total
    exactly. Enforced by CourseAllocationCalculator."""

    CATEGORY_EXCLUSION = "category_exclusion"
    """FERRY and DEMO records never deplete packages. Enforced by
    FlightCategoryAggregator."""

    NO_STORED_BALANCE = "no_stored_balance"
    """Balances are recomputed from source records on every read. Enforced
    by construction: no engine or service persists a ledger."""


# All invariants as a frozenset for programmatic checks.
ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# Two hour totals agree when they differ by at most one hundredth.
RECONCILIATION_TOLERANCE: Decimal = Decimal("0.01")

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_layer_boundaries.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "hours_engines",
    "hours_services",
    "hours_config",
)
