"""
Module: hours_kernel.db.base
Responsibility: Declarative base class for the read models the ledger is
    computed from.  Provides the string primary key convention and the type
    annotation map for consistent column types.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  This module MUST NOT import
    from models/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Decimal precision: type_annotation_map maps Python Decimal to
      Numeric(38, 9).  Hours and amounts are NEVER stored as float.
    - Opaque identifiers: ids are strings owned by the external collaborators
      (user management, invoice import, flight log).  A uuid4 string is
      generated only when a row is created locally (tests, fixtures).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import uuid4

from sqlalchemy import Date, DateTime, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is a String(64) primary key, defaulting to a uuid4 string.
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True); date maps to Date.
    """

    type_annotation_map: ClassVar[dict] = {
        # 38 digits total, 9 decimal places
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date,
    }

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=_new_id,
    )
