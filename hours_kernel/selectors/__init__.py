"""Read-only selectors returning frozen DTOs."""

from hours_kernel.selectors.chunked import BulkRetriever
from hours_kernel.selectors.client_selector import ClientSelector
from hours_kernel.selectors.flight_selector import FlightSelector
from hours_kernel.selectors.invoice_selector import InvoiceSelector

__all__ = ["BulkRetriever", "ClientSelector", "FlightSelector", "InvoiceSelector"]
