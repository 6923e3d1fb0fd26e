"""
Module: hours_kernel.selectors.invoice_selector
Responsibility: Read-only access to issued invoices and their line items.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Pages are ordered by (issue_date, id) so that offset windows neither
      skip nor repeat an invoice.
    - Only invoices whose status is in the requested status filter are read.
"""

from collections.abc import Sequence

from sqlalchemy import select

from hours_kernel.domain.dtos import Invoice
from hours_kernel.models.invoice import Invoice as InvoiceModel
from hours_kernel.selectors.base import BaseSelector


class InvoiceSelector(BaseSelector):
    """Selector for invoices."""

    def fetch_page(
        self,
        offset: int,
        limit: int,
        statuses: Sequence[str],
        client_id: str | None = None,
    ) -> list[Invoice]:
        """
        One window of invoices, with their line items.

        Args:
            offset: Number of invoices to skip.
            limit: Maximum number of invoices to return.
            statuses: Status filter (e.g. paid, imported).
            client_id: If given, only invoices of this client.
        """
        stmt = select(InvoiceModel).where(InvoiceModel.status.in_(list(statuses)))
        if client_id is not None:
            stmt = stmt.where(InvoiceModel.client_id == client_id)
        stmt = (
            stmt.order_by(InvoiceModel.issue_date, InvoiceModel.id)
            .offset(offset)
            .limit(limit)
        )
        return [Invoice.from_model(model) for model in self.session.scalars(stmt)]
