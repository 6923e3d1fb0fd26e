"""
Module: hours_kernel.selectors.client_selector
Responsibility: Read-only access to client reference data.
Architecture position: Kernel > Selectors.
"""

from collections.abc import Iterable

from sqlalchemy import select

from hours_kernel.domain.dtos import Client
from hours_kernel.models.client import Client as ClientModel
from hours_kernel.selectors.base import BaseSelector


class ClientSelector(BaseSelector):
    """Selector for clients."""

    def get(self, client_id: str) -> Client | None:
        model = self.session.get(ClientModel, client_id)
        return Client.from_model(model) if model is not None else None

    def get_many(self, client_ids: Iterable[str]) -> dict[str, Client]:
        """Clients by id. Unknown ids are absent from the result."""
        ids = sorted(set(client_ids))
        if not ids:
            return {}
        stmt = select(ClientModel).where(ClientModel.id.in_(ids))
        return {
            model.id: Client.from_model(model)
            for model in self.session.scalars(stmt)
        }

    def fetch_page(self, offset: int, limit: int) -> list[Client]:
        stmt = (
            select(ClientModel)
            .order_by(ClientModel.id)
            .offset(offset)
            .limit(limit)
        )
        return [Client.from_model(model) for model in self.session.scalars(stmt)]
