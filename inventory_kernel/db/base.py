"""
Module: inventory_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the integer primary key convention, the type annotation map for consistent
    column types, and the TimestampedBase mixin for row timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Monotonic integer primary keys: ledger entry ids double as the FIFO
      ordering key, so every table uses a database-generated integer id.
    - Money is never stored as float: unit costs are persisted as integer
      minor units (see domain/values.py).
    - Timestamps are timezone-aware and supplied by the injected Clock.
"""

from datetime import datetime
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
IdentityInteger = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is a database-generated, monotonically increasing integer.
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger (quantities and minor-unit costs).
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }

    id: Mapped[int] = mapped_column(
        IdentityInteger,
        primary_key=True,
        autoincrement=True,
    )


class TimestampedBase(Base):
    """
    Abstract base adding created_at / updated_at.

    Values are set explicitly by services from the injected Clock so that
    tests and replays are deterministic; there is no server default.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
