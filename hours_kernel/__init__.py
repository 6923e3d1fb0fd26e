"""
hours_kernel -- foundation layer of the flight-hour ledger.

Exceptions, invariants, structured logging, the injectable clock, immutable
input DTOs, SQLAlchemy read models and read-only selectors. Nothing in this
package imports from hours_engines, hours_config or hours_services.
"""
