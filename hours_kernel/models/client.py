"""
Module: hours_kernel.models.client
Responsibility: Read model for clients (students, pilots and third-party
    payers) owned by the user-management collaborator.
Architecture position: Kernel > Models.  May import from db/base.py only.

Audit relevance:
    The ledger never stores a balance on this row.  Purchased, flown and
    remaining hours are always recomputed from invoices and flight records.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from hours_kernel.db.base import Base


class Client(Base):
    """A client known to the back office."""

    __tablename__ = "clients"

    __table_args__ = (
        Index("idx_client_email", "email"),
    )

    display_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Client {self.id}: {self.email}>"
