"""
Module: inventory_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Valuation is derived from ledger rows only; StockRecord quantities are
      never used to answer a point-in-time question.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Selectors accept a Session from the caller and only read through it."""

    def __init__(self, session: Session):
        self.session = session
