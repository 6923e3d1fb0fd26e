"""
Module: hours_kernel.models.flight_record
Responsibility: Read model for logged flights, owned by the flight-log
    collaborator.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - total_hours is Decimal, never float.
    - payer_id is set only when someone other than the pilot funds the
      flight (a charter).
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from hours_kernel.db.base import Base


class FlightRecord(Base):
    """One logged flight."""

    __tablename__ = "flight_records"

    __table_args__ = (
        Index("idx_flight_pilot", "pilot_id"),
        Index("idx_flight_payer", "payer_id"),
        Index("idx_flight_date", "flight_date"),
    )

    pilot_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("clients.id"),
        nullable=True,
    )

    instructor_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("clients.id"),
        nullable=True,
    )

    payer_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("clients.id"),
        nullable=True,
    )

    total_hours: Mapped[Decimal | None] = mapped_column(nullable=True)

    flight_date: Mapped[date] = mapped_column(nullable=False)

    # Free-form tag: TRAINING, CHARTER, FERRY, DEMO, ...
    flight_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<FlightRecord {self.id}: {self.pilot_id} {self.total_hours}h {self.flight_type}>"
