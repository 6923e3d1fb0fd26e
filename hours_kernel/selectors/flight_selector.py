"""
Module: hours_kernel.selectors.flight_selector
Responsibility: Read-only access to logged flights.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Pages are ordered by (flight_date, id) so that offset windows neither
      skip nor repeat a record.
"""

from datetime import date

from sqlalchemy import or_, select

from hours_kernel.domain.dtos import FlightRecord
from hours_kernel.models.flight_record import FlightRecord as FlightRecordModel
from hours_kernel.selectors.base import BaseSelector


class FlightSelector(BaseSelector):
    """Selector for flight records."""

    def fetch_page(
        self,
        offset: int,
        limit: int,
        start_date: date | None = None,
        end_date: date | None = None,
        client_id: str | None = None,
    ) -> list[FlightRecord]:
        """
        One window of flight records.

        Args:
            offset: Number of records to skip.
            limit: Maximum number of records to return.
            start_date: Inclusive lower bound on flight_date.
            end_date: Inclusive upper bound on flight_date.
            client_id: If given, only records where this client is the
                pilot, the payer or the instructor.
        """
        stmt = select(FlightRecordModel)
        if start_date is not None:
            stmt = stmt.where(FlightRecordModel.flight_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(FlightRecordModel.flight_date <= end_date)
        if client_id is not None:
            stmt = stmt.where(
                or_(
                    FlightRecordModel.pilot_id == client_id,
                    FlightRecordModel.payer_id == client_id,
                    FlightRecordModel.instructor_id == client_id,
                )
            )
        stmt = (
            stmt.order_by(FlightRecordModel.flight_date, FlightRecordModel.id)
            .offset(offset)
            .limit(limit)
        )
        return [FlightRecord.from_model(model) for model in self.session.scalars(stmt)]
