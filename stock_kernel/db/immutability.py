"""
ORM-level immutability enforcement for the stock ledger and closed
inventory sessions.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners registered here check the append-only rules and
raise ImmutabilityViolationError, which aborts the flush (and with it the
unit of work):

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Protected entities:

Entity          | When immutable                      | Notes
----------------|-------------------------------------|---------------------------------
StockMovement   | Always (from creation)              | The ledger is append-only
Inventory       | After status = CLOSED               | OPEN -> CLOSED is the last write
InventoryItem   | Snapshots always; all fields once   | actual_stock editable while OPEN;
                | the parent session is CLOSED        | difference/revenue set at close

The parent status of an InventoryItem is read through the flush connection,
not the identity map, so the check sees what the database holds.  The
close workflow therefore flushes its item computations BEFORE it flips the
session status.

Usage:

    from stock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (tests only):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect, text
from sqlalchemy.orm.attributes import get_history

from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = ("updated_at", "updated_by_id")

_FROZEN_ITEM_FIELDS = ("expected_stock", "cost_price_snapshot", "selling_price_snapshot")


def _blocked(entity_type: str, entity_id, operation: str, reason: str, **fields):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **fields,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_movement_immutability(mapper, connection, target):
    """Ledger rows never change."""
    raise _blocked(
        "StockMovement",
        target.id,
        "UPDATE",
        "Stock movements are append-only and cannot be modified",
    )


def _check_movement_delete(mapper, connection, target):
    raise _blocked(
        "StockMovement",
        target.id,
        "DELETE",
        "Stock movements are append-only and cannot be deleted",
    )


def _check_inventory_immutability(mapper, connection, target):
    """
    Allow the OPEN -> CLOSED transition, block everything after it.

    The attribute history tells whether this flush IS the close (old value
    OPEN, new value CLOSED) or a write to an already closed session.
    """
    status_history = get_history(target, "status")

    if status_history.deleted:
        was_closed = status_history.deleted[0] == "CLOSED"
    elif not status_history.added:
        was_closed = target.status == "CLOSED"
    else:
        was_closed = False

    if not was_closed:
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            raise _blocked(
                "Inventory",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on a closed inventory",
                field=attr.key,
            )


def _check_inventory_delete(mapper, connection, target):
    if target.status == "CLOSED":
        raise _blocked(
            "Inventory",
            target.id,
            "DELETE",
            "Closed inventories cannot be deleted",
        )


def _parent_is_closed(connection, inventory_id) -> bool:
    status = connection.execute(
        text("SELECT status FROM inventories WHERE id = :inventory_id"),
        {"inventory_id": str(inventory_id)},
    ).scalar()
    return status == "CLOSED"


def _check_inventory_item_immutability(mapper, connection, target):
    for field in _FROZEN_ITEM_FIELDS:
        if get_history(target, field).deleted:
            raise _blocked(
                "InventoryItem",
                target.id,
                "UPDATE",
                f"Field '{field}' is a snapshot and cannot be modified",
                field=field,
            )

    if _parent_is_closed(connection, target.inventory_id):
        raise _blocked(
            "InventoryItem",
            target.id,
            "UPDATE",
            "Inventory items cannot be modified after the inventory is closed",
        )


def _check_inventory_item_delete(mapper, connection, target):
    if _parent_is_closed(connection, target.inventory_id):
        raise _blocked(
            "InventoryItem",
            target.id,
            "DELETE",
            "Inventory items cannot be deleted after the inventory is closed",
        )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already present are not added twice.
    """
    from stock_kernel.models.inventory import Inventory, InventoryItem
    from stock_kernel.models.stock_movement import StockMovement

    for target, event_name, listener_fn in _listeners(
        StockMovement, Inventory, InventoryItem
    ):
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _listeners(stock_movement, inventory, inventory_item):
    return (
        (stock_movement, "before_update", _check_movement_immutability),
        (stock_movement, "before_delete", _check_movement_delete),
        (inventory, "before_update", _check_inventory_immutability),
        (inventory, "before_delete", _check_inventory_delete),
        (inventory_item, "before_update", _check_inventory_item_immutability),
        (inventory_item, "before_delete", _check_inventory_item_delete),
    )


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that must write forbidden rows to prove
    other layers (CHECK constraints) catch them.
    """
    from stock_kernel.models.inventory import Inventory, InventoryItem
    from stock_kernel.models.stock_movement import StockMovement

    for target, event_name, listener_fn in _listeners(
        StockMovement, Inventory, InventoryItem
    ):
        _safe_remove_listener(target, event_name, listener_fn)
