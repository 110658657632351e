"""
MovementSelector -- read access to the movement log.

Responsibility:
    Returns a product's movement history, most recent first, as typed
    MovementDetails.

Architecture position:
    Kernel > Selectors -- read-only.
"""

from sqlalchemy import select

from inventory_kernel.domain.dtos import MovementDetails
from inventory_kernel.exceptions import InvalidInputError, ProductNotFoundError
from inventory_kernel.models.movement import Movement
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.selectors.base import BaseSelector


class MovementSelector(BaseSelector[Movement]):
    def get_movement_history(self, product_id: str, limit: int = 50) -> list[MovementDetails]:
        """
        Most recent movements of a product, newest first.

        Ordering uses the per-product sequence, so movements stamped with
        the same timestamp still come back in the order they were applied.

        Raises:
            ProductNotFoundError: No StockRecord for ``product_id``.
            InvalidInputError: ``limit`` is not positive.
        """
        if limit <= 0:
            raise InvalidInputError(f"limit must be positive, got {limit}")

        exists = self.session.execute(
            select(StockRecord.id).where(StockRecord.product_id == product_id)
        ).scalar_one_or_none()
        if exists is None:
            raise ProductNotFoundError(product_id)

        rows = self.session.execute(
            select(Movement)
            .where(Movement.product_id == product_id)
            .order_by(Movement.sequence.desc())
            .limit(limit)
        ).scalars().all()
        return [MovementDetails.from_model(row) for row in rows]
