"""SQLAlchemy read models. Importing this package registers every table."""

from hours_kernel.models.client import Client
from hours_kernel.models.flight_record import FlightRecord
from hours_kernel.models.invoice import Invoice, InvoiceLineItem

__all__ = ["Client", "FlightRecord", "Invoice", "InvoiceLineItem"]
