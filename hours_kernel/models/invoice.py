"""
Module: hours_kernel.models.invoice
Responsibility: Read models for issued invoices and their line items, as
    written by the invoice-import collaborator.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Invoices are append-only in the source system.  Nothing in this
      project updates or deletes them.
    - Quantities and amounts are Decimal (Numeric(38, 9)).
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hours_kernel.db.base import Base


class Invoice(Base):
    """
    An issued invoice.

    ``external_ref`` is the number printed on the invoice; when present it is
    used as the invoice id in every ledger output.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        Index("idx_invoice_client", "client_id"),
        Index("idx_invoice_status", "status"),
        Index("idx_invoice_issue_date", "issue_date"),
    )

    external_ref: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    client_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("clients.id"),
        nullable=True,
    )

    issue_date: Mapped[date] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="EUR",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="imported",
    )

    line_items: Mapped[list["InvoiceLineItem"]] = relationship(
        back_populates="invoice",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.external_ref or self.id} ({self.status})>"


class InvoiceLineItem(Base):
    """One line of an invoice. ``unit`` is the UN/ECE unit code (HUR for hours)."""

    __tablename__ = "invoice_line_items"

    __table_args__ = (
        Index("idx_line_item_invoice", "invoice_id"),
    )

    invoice_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("invoices.id"),
        nullable=False,
    )

    # Order of the line on the printed invoice
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    quantity: Mapped[Decimal | None] = mapped_column(nullable=True)

    unit: Mapped[str | None] = mapped_column(
        String(10),
        nullable=True,
    )

    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    total_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    invoice: Mapped[Invoice] = relationship(back_populates="line_items")

    def __repr__(self) -> str:
        return f"<InvoiceLineItem {self.id}: {self.quantity} {self.unit}>"
