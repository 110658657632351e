"""
MovementLog -- append-only stock movement persistence and replay.

Responsibility:
    Appends Movement rows inside the ledger transaction and replays them to
    prove that the stored balances are exactly what the log says they are.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by LedgerEngine (append) and by tests / maintenance jobs
    (replay, verify).

Invariants enforced:
    - Append-only: rows are never updated or deleted (ORM listeners in
      db/immutability.py reject both).
    - Sequence: each append takes ``StockRecord.movement_count + 1`` so the
      per-product order is total and gap-free.
    - Consistency: for every movement ``abs(new - previous) == quantity`` and
      ``previous`` equals the running balance of its bucket.

Failure modes:
    - LedgerInconsistencyError from verify() when replay disagrees with the
      stored balance or a movement breaks the chain.
    - ProductNotFoundError from verify() for an unknown product.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import (
    BASE_BUCKET,
    MovementDetails,
    MovementType,
    ReferenceType,
)
from inventory_kernel.domain.ledger_math import applied_quantity, replay_movement
from inventory_kernel.exceptions import LedgerInconsistencyError, ProductNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import Movement
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.services.base import BaseService

logger = get_logger("services.movement_log")


class MovementLog(BaseService[Movement]):
    """
    Session-bound writer and replayer for the movement log.

    Non-goals:
        - Does NOT decide balances; LedgerEngine computes them and passes the
          before/after values in.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def append(
        self,
        record: StockRecord,
        variant_id: str | None,
        movement_type: MovementType,
        previous_stock: int,
        new_stock: int,
        reason: str,
        performed_by: str,
        occurred_at: datetime,
        reference_id: str | None = None,
        reference_type: ReferenceType | None = None,
        extension: Mapping[str, Any] | None = None,
    ) -> MovementDetails:
        """
        Append one movement for ``record`` and advance its sequence.

        Preconditions:
            - Caller holds the product lock and has already written the new
              balance onto ``record``.
        """
        record.movement_count += 1
        movement = Movement(
            product_id=record.product_id,
            variant_id=variant_id,
            sequence=record.movement_count,
            movement_type=movement_type.value,
            quantity=applied_quantity(previous_stock, new_stock),
            previous_stock=previous_stock,
            new_stock=new_stock,
            reason=reason,
            reference_id=reference_id,
            reference_type=reference_type.value if reference_type else None,
            performed_by=performed_by,
            occurred_at=occurred_at,
            extension=dict(extension) if extension is not None else None,
        )
        self.session.add(movement)
        self.session.flush()

        logger.debug(
            "movement_appended",
            extra={
                "product_id": record.product_id,
                "variant_id": variant_id,
                "sequence": movement.sequence,
                "movement_type": movement_type.value,
                "quantity": movement.quantity,
            },
        )
        return MovementDetails.from_model(movement)

    def movements(self, product_id: str) -> list[MovementDetails]:
        """All movements for a product in sequence order (oldest first)."""
        rows = self.session.execute(
            select(Movement)
            .where(Movement.product_id == product_id)
            .order_by(Movement.sequence)
        ).scalars().all()
        return [MovementDetails.from_model(row) for row in rows]

    def replay(self, product_id: str) -> dict[str, int]:
        """
        Rebuild every bucket balance from zero.

        Returns:
            Mapping of bucket (variant_id, or BASE_BUCKET) to replayed balance.
        """
        balances: dict[str, int] = {}
        for movement in self.movements(product_id):
            bucket = movement.bucket
            balances[bucket] = replay_movement(
                balances.get(bucket, 0),
                movement.movement_type,
                movement.quantity,
                movement.new_stock,
            )
        return balances

    def verify(self, product_id: str) -> int:
        """
        Check the log against the stored StockRecord.

        Returns:
            The replayed total stock, equal to the stored total.

        Raises:
            ProductNotFoundError: No StockRecord for ``product_id``.
            LedgerInconsistencyError: Any bucket disagrees.
        """
        record = self.session.execute(
            select(StockRecord).where(StockRecord.product_id == product_id)
        ).scalar_one_or_none()
        if record is None:
            raise ProductNotFoundError(product_id)

        running: dict[str, int] = {}
        for movement in self.movements(product_id):
            bucket = movement.bucket
            expected_previous = running.get(bucket, 0)
            if movement.previous_stock != expected_previous:
                raise LedgerInconsistencyError(
                    product_id, bucket, expected_previous, movement.previous_stock
                )
            if applied_quantity(movement.previous_stock, movement.new_stock) != movement.quantity:
                raise LedgerInconsistencyError(
                    product_id, bucket, movement.quantity, movement.signed_quantity
                )
            running[bucket] = replay_movement(
                expected_previous,
                movement.movement_type,
                movement.quantity,
                movement.new_stock,
            )
            if running[bucket] != movement.new_stock:
                raise LedgerInconsistencyError(
                    product_id, bucket, movement.new_stock, running[bucket]
                )

        stored = {BASE_BUCKET: record.base_quantity}
        stored.update({v.variant_id: v.quantity for v in record.variants})
        for bucket, quantity in stored.items():
            replayed = running.get(bucket, 0)
            if replayed != quantity:
                logger.error(
                    "ledger_inconsistency_detected",
                    extra={
                        "product_id": product_id,
                        "bucket": bucket,
                        "expected": quantity,
                        "replayed": replayed,
                    },
                )
                raise LedgerInconsistencyError(product_id, bucket, quantity, replayed)

        return sum(running.values())
