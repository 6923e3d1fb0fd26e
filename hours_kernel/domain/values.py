"""
Value helpers for hour quantities.

Responsibility:
    Canonical conversion of external numbers into ``Decimal`` hours, plus
    the helpers the engines floor and compare hours with.  Hours are never floats inside the
    ledger; a float coming from a collaborator is converted through ``str``
    so that ``1.1`` stays ``Decimal("1.1")`` and not its binary expansion.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal, InvalidOperation

from hours_kernel.exceptions import InvalidHoursError

ZERO_HOURS = Decimal("0")

# Hour totals are compared to the hundredth.
HOURS_QUANTUM = Decimal("0.01")


def to_decimal(value: Decimal | int | float | str | None, field: str = "value") -> Decimal:
    """Convert a number from a collaborator into a finite Decimal.

    ``None`` maps to zero: the source system stores missing quantities and
    hours as NULL.

    Raises:
        InvalidHoursError: if the value is not a finite number.
    """
    if value is None:
        return ZERO_HOURS
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise InvalidHoursError(field, str(value)) from e
    if not result.is_finite():
        raise InvalidHoursError(field, str(value))
    return result


def to_hours(value: Decimal | int | float | str | None, field: str = "hours") -> Decimal:
    """Convert a number into non-negative Decimal hours.

    Raises:
        InvalidHoursError: if the value is negative or not a finite number.
    """
    result = to_decimal(value, field)
    if result < ZERO_HOURS:
        raise InvalidHoursError(field, str(value))
    return result


def floor_hours(value: Decimal) -> Decimal:
    """Floor to whole hours."""
    return value.to_integral_value(rounding=ROUND_FLOOR)


def hours_agree(a: Decimal, b: Decimal, tolerance: Decimal = HOURS_QUANTUM) -> bool:
    """True when two hour totals differ by at most ``tolerance``."""
    return abs(a - b) <= tolerance
