"""
ORM-level append-only enforcement for the cost-lot ledger.

===============================================================================
RULES
===============================================================================

Ledger entries are history.  Once flushed, a LedgerEntry row may change in
exactly two ways:

  Consumption   remaining_quantity decreases on a positive entry
                (never below zero).
  Merge         quantity_change and remaining_quantity of a positive entry
                both increase by the same delta (equal-cost addition).

updated_at may change with either.  Every other column is frozen, and rows
are never deleted.  LotIncrement rows (one per merge) are never updated or
deleted at all.

    session.flush()
         |
         v
    [before_update] --> _check_ledger_entry_update() --> ImmutabilityViolationError
    [before_delete] --> _check_ledger_entry_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

These listeners guard against programming errors in this codebase; they are
not a tamper-proofing mechanism (raw SQL bypasses them).
"""

from sqlalchemy import event, inspect

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

LEDGER_ENTRY_MUTABLE_FIELDS = frozenset({
    "quantity_change",
    "remaining_quantity",
    "updated_at",
})


def _history_pair(state, key: str) -> tuple[int, int] | None:
    """Return (old, new) for a changed attribute, or None if unchanged."""
    hist = state.attrs[key].history
    if not hist.has_changes():
        return None
    old = hist.deleted[0] if hist.deleted else None
    new = hist.added[0] if hist.added else None
    return old, new


def _reject(
    target,
    operation: str,
    reason: str,
    field: str | None = None,
    entity_type: str = "LedgerEntry",
) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_ledger_entry_update(mapper, connection, target):
    """Allow only consumption and equal-cost merge on positive entries."""
    state = inspect(target)

    for attr in state.attrs:
        if attr.key in LEDGER_ENTRY_MUTABLE_FIELDS:
            continue
        if attr.history.has_changes():
            _reject(
                target,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on a ledger entry",
                field=attr.key,
            )

    qty = _history_pair(state, "quantity_change")
    rem = _history_pair(state, "remaining_quantity")

    if qty is None and rem is None:
        return

    if target.quantity_change <= 0 or (qty is not None and qty[0] is not None and qty[0] <= 0):
        _reject(target, "UPDATE", "Negative ledger entries are never modified")

    if qty is not None:
        old_qty, new_qty = qty
        if old_qty is None or new_qty is None or new_qty <= old_qty:
            _reject(
                target,
                "UPDATE",
                "quantity_change may only grow through an equal-cost merge",
                field="quantity_change",
            )
        if rem is None or rem[0] is None or rem[1] is None:
            _reject(
                target,
                "UPDATE",
                "A merge must grow remaining_quantity by the same amount",
                field="remaining_quantity",
            )
        if rem[1] - rem[0] != new_qty - old_qty:
            _reject(
                target,
                "UPDATE",
                "A merge must grow remaining_quantity by the same amount",
                field="remaining_quantity",
            )
        return

    old_rem, new_rem = rem
    if old_rem is None or new_rem is None or new_rem > old_rem or new_rem < 0:
        _reject(
            target,
            "UPDATE",
            "remaining_quantity may only decrease through consumption",
            field="remaining_quantity",
        )


def _check_ledger_entry_delete(mapper, connection, target):
    """Ledger entries are never deleted."""
    _reject(target, "DELETE", "Ledger entries cannot be deleted")


def _check_lot_increment_update(mapper, connection, target):
    _reject(target, "UPDATE", "Lot increments are append-only", entity_type="LotIncrement")


def _check_lot_increment_delete(mapper, connection, target):
    _reject(target, "DELETE", "Lot increments cannot be deleted", entity_type="LotIncrement")


def _listeners():
    from inventory_kernel.models.ledger_entry import LedgerEntry
    from inventory_kernel.models.lot_increment import LotIncrement

    return (
        (LedgerEntry, "before_update", _check_ledger_entry_update),
        (LedgerEntry, "before_delete", _check_ledger_entry_delete),
        (LotIncrement, "before_update", _check_lot_increment_update),
        (LotIncrement, "before_delete", _check_lot_increment_delete),
    )


def register_immutability_listeners() -> None:
    """
    Register the ledger immutability listeners (idempotent).

    Called by init_engine_from_url(); tests that build their own engine call
    it directly.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the ledger immutability listeners.

    WARNING: Only use this in tests that need to write history directly.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
