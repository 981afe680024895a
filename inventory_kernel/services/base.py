"""
BaseService -- abstract base for kernel write services.

Responsibility:
    Common constructor and session-handling contract.  Concrete services
    receive a SQLAlchemy ``Session`` and persist with ``session.flush()``,
    never ``session.commit()``.

Invariants enforced:
    Transaction boundaries belong to the caller (``session_scope`` in the
    InventoryService facade, or a test fixture).  A transfer's source
    deduction and destination additions therefore commit or roll back
    together.
"""

from abc import ABC

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read-only query methods; those live in
          ``inventory_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
