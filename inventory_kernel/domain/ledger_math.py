"""
Ledger arithmetic -- pure balance transitions and input normalization.

Responsibility:
    Computes the new balance of one bucket for a movement type, and
    normalizes raw caller input (strings, enums) into typed values.  The
    ledger engine and the movement-log replay both use ``apply_movement`` so
    that the forward path and the replay path cannot diverge.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Balances never go below zero: OUT clamps at 0.
    - The applied quantity is ``abs(new - previous)``, which is what the
      movement log records.
"""

from __future__ import annotations

from typing import Any

from inventory_kernel.domain.dtos import MovementType, ReferenceType
from inventory_kernel.exceptions import (
    InvalidMovementTypeError,
    InvalidQuantityError,
    InvalidReferenceTypeError,
    InvalidThresholdError,
)


def parse_movement_type(value: Any) -> MovementType:
    if isinstance(value, MovementType):
        return value
    try:
        return MovementType(str(value).upper())
    except ValueError:
        raise InvalidMovementTypeError(value) from None


def parse_reference_type(value: Any) -> ReferenceType | None:
    if value is None:
        return None
    if isinstance(value, ReferenceType):
        return value
    try:
        return ReferenceType(str(value).upper())
    except ValueError:
        raise InvalidReferenceTypeError(value) from None


def parse_quantity(value: Any, movement_type: MovementType) -> int:
    """
    Validate a requested quantity.

    Rules:
        - Must be an integer (bool is rejected).
        - Must be non-negative.
        - Zero is only meaningful for ADJUSTMENT (set bucket to zero).
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(value, "quantity must be an integer")
    if value < 0:
        raise InvalidQuantityError(value, "quantity must not be negative")
    if value == 0 and movement_type is not MovementType.ADJUSTMENT:
        raise InvalidQuantityError(
            value, f"quantity must be positive for {movement_type.value} movements"
        )
    return value


def parse_threshold(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidThresholdError(value)
    return value


def apply_movement(previous: int, quantity: int, movement_type: MovementType) -> int:
    """Return the new bucket balance after applying ``movement_type``."""
    if movement_type in (MovementType.IN, MovementType.RETURN):
        return previous + quantity
    if movement_type is MovementType.OUT:
        return max(0, previous - quantity)
    if movement_type is MovementType.ADJUSTMENT:
        return quantity
    raise InvalidMovementTypeError(movement_type)


def applied_quantity(previous: int, new: int) -> int:
    return abs(new - previous)


def replay_movement(
    balance: int, movement_type: MovementType, quantity: int, new_stock: int
) -> int:
    """
    Re-apply a logged movement to a running bucket balance.

    Logged quantities are magnitudes, so an ADJUSTMENT replays as a set to
    its recorded ``new_stock``; the other types replay their quantity.
    """
    if movement_type is MovementType.ADJUSTMENT:
        return apply_movement(balance, new_stock, movement_type)
    return apply_movement(balance, quantity, movement_type)
