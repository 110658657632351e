"""
ORM-Level Immutability Enforcement for the stock movement log.

===============================================================================
WHY THIS EXISTS
===============================================================================

Stock balances are a cache of the movement log.  If a movement row could be
edited or removed, replaying the log would no longer reproduce the balance
and the audit trail would lie about who changed what.  Corrections are made
by appending an ADJUSTMENT movement, never by rewriting history.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_update event] --> _check_movement_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_movement_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity     | When Immutable          | Why
-----------|-------------------------|-----------------------------------
Movement   | ALWAYS (from creation)  | Append-only audit log of stock

PostgreSQL trigger enforcement is not installed by this package; raw SQL
and bulk statements bypass these listeners.

===============================================================================
USAGE
===============================================================================

Called during kernel bootstrap (build_inventory_kernel):

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY - never in production):

    from inventory_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_movement_immutability(mapper, connection, target):
    """Prevent any updates to Movement records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Movement",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Movement",
        entity_id=str(target.id),
        reason="Stock movements are append-only and cannot be modified",
    )


def _check_movement_delete(mapper, connection, target):
    """Prevent deletion of Movement records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "Movement",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="Movement",
        entity_id=str(target.id),
        reason="Stock movements are append-only and cannot be deleted",
    )


def register_immutability_listeners():
    """
    Register the movement-log immutability listeners.

    Idempotent: registering twice does not install duplicate listeners.
    """
    from inventory_kernel.models.movement import Movement

    if not event.contains(Movement, "before_update", _check_movement_immutability):
        event.listen(Movement, "before_update", _check_movement_immutability)
    if not event.contains(Movement, "before_delete", _check_movement_delete):
        event.listen(Movement, "before_delete", _check_movement_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the immutability listeners.

    WARNING: Only use this in tests that need to verify database-level
    behavior or set up corrupt fixtures deliberately.
    """
    from inventory_kernel.models.movement import Movement

    _safe_remove_listener(Movement, "before_update", _check_movement_immutability)
    _safe_remove_listener(Movement, "before_delete", _check_movement_delete)
