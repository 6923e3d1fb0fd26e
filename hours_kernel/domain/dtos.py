"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable input records the ledger is computed from: Client,
    Invoice, InvoiceLineItem and FlightRecord, plus ProcessingNote, the value
    used to report a skipped record without failing the computation.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  from_model() class methods exist as boundary
    converters but are only invoked from selectors (never from engines).

Invariants enforced:
    - Hours and quantities are Decimal, never float.
    - Hours are finite numbers (InvalidHoursError otherwise).  Non-positive
      flight hours are accepted here and skipped with a note by the engines.
      Negative hour quantities on invoice lines are credit notes.
    - Every DTO is a frozen dataclass; engines cannot mutate their inputs.

Data flow:
    ORM row -> DTO (selector) -> engines -> LedgerSummary
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from hours_kernel.domain.values import to_decimal

if TYPE_CHECKING:
    from hours_kernel.models.client import Client as ClientModel
    from hours_kernel.models.flight_record import FlightRecord as FlightRecordModel
    from hours_kernel.models.invoice import Invoice as InvoiceModel
    from hours_kernel.models.invoice import InvoiceLineItem as InvoiceLineItemModel


@dataclass(frozen=True)
class Client:
    """Reference data for one client, owned by the user-management collaborator."""

    client_id: str
    name: str
    email: str

    @classmethod
    def from_model(cls, model: ClientModel) -> Client:
        return cls(
            client_id=model.id,
            name=model.display_name or "",
            email=model.email or "",
        )


@dataclass(frozen=True)
class InvoiceLineItem:
    """
    One line of an issued invoice.

    The owning invoice's id, client, issue date and currency are carried on
    the line so that classifiers can work on a flat stream of items.
    """

    invoice_id: str
    line_id: str
    name: str
    description: str
    quantity: Decimal
    unit: str
    unit_price: Decimal
    total: Decimal
    currency: str
    issue_date: date
    client_id: str | None

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", to_decimal(self.quantity, "quantity"))
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price, "unit_price"))
        object.__setattr__(self, "total", to_decimal(self.total, "total"))

    @property
    def text(self) -> str:
        """Description, falling back to the item name when empty."""
        return self.description or self.name

    @classmethod
    def from_model(cls, item: InvoiceLineItemModel, invoice: InvoiceModel) -> InvoiceLineItem:
        return cls(
            invoice_id=invoice.external_ref or invoice.id,
            line_id=item.id,
            name=item.name or "",
            description=item.description or "",
            quantity=item.quantity,
            unit=item.unit or "",
            unit_price=item.unit_price,
            total=item.total_amount,
            currency=invoice.currency,
            issue_date=invoice.issue_date,
            client_id=invoice.client_id,
        )


@dataclass(frozen=True)
class Invoice:
    """An issued invoice with its line items. Append-only in the source system."""

    invoice_id: str
    client_id: str | None
    issue_date: date
    currency: str
    status: str
    line_items: tuple[InvoiceLineItem, ...] = ()

    @classmethod
    def from_model(cls, model: InvoiceModel) -> Invoice:
        return cls(
            invoice_id=model.external_ref or model.id,
            client_id=model.client_id,
            issue_date=model.issue_date,
            currency=model.currency,
            status=model.status,
            line_items=tuple(
                InvoiceLineItem.from_model(item, model)
                for item in sorted(model.line_items, key=lambda i: (i.position, i.id))
            ),
        )


@dataclass(frozen=True)
class FlightRecord:
    """
    One logged flight.

    ``payer_id`` differs from ``pilot_id`` when a third party funds the
    flight (a charter).  ``flight_type`` is a free-form tag.
    """

    record_id: str
    pilot_id: str | None
    total_hours: Decimal
    flight_date: date
    flight_type: str = ""
    instructor_id: str | None = None
    payer_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_hours", to_decimal(self.total_hours, "total_hours"))
        object.__setattr__(self, "flight_type", self.flight_type or "")

    @property
    def effective_payer_id(self) -> str | None:
        """Who pays for the flight: the payer when set, otherwise the pilot."""
        return self.payer_id or self.pilot_id

    @property
    def is_third_party_funded(self) -> bool:
        return self.payer_id is not None and self.payer_id != self.pilot_id

    @classmethod
    def from_model(cls, model: FlightRecordModel) -> FlightRecord:
        return cls(
            record_id=model.id,
            pilot_id=model.pilot_id,
            total_hours=model.total_hours,
            flight_date=model.flight_date,
            flight_type=model.flight_type or "",
            instructor_id=model.instructor_id,
            payer_id=model.payer_id,
        )


class NoteCode(str, Enum):
    """Why a record was left out of a computation."""

    UNPARSEABLE_TRANCHE = "unparseable_tranche"
    MISSING_CLIENT = "missing_client"
    MISSING_PILOT = "missing_pilot"
    NON_POSITIVE_HOURS = "non_positive_hours"
    INVALID_TRANCHE = "invalid_tranche"
    CREDIT_EXCEEDS_PURCHASES = "credit_exceeds_purchases"


@dataclass(frozen=True)
class ProcessingNote:
    """A per-record problem that was recovered locally (skip + note)."""

    code: NoteCode
    reference: str
    message: str
    client_id: str | None = None
