"""
Module: inventory_kernel.models.movement
Responsibility: ORM persistence for the append-only stock movement log.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - Append-only: UPDATE and DELETE are rejected by the ORM listeners in
      db/immutability.py.
    - (product_id, sequence) is unique; sequence is strictly increasing per
      product and gives a total order even when timestamps tie.
    - quantity >= 0, previous_stock >= 0, new_stock >= 0 (CHECK constraints).

Failure modes:
    - ImmutabilityViolationError on any attempted modification.
    - IntegrityError on a duplicate (product_id, sequence).

Audit relevance:
    Each row records who changed which bucket, from what level to what level,
    and why.  Replaying the rows of a product in sequence order from zero
    reproduces the StockRecord balances.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base
from inventory_kernel.db.types import (
    ActorId,
    ExternalId,
    Quantity,
    ReasonText,
    ShortCode,
)


class Movement(Base):
    """
    One applied stock change.

    Contract:
        Created only by MovementLog.append() inside a LedgerEngine
        transaction.  ``variant_id`` is NULL for the base bucket.
        ``previous_stock`` and ``new_stock`` describe that bucket, not the
        product total.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("product_id", "sequence", name="uq_movement_sequence"),
        CheckConstraint("quantity >= 0", name="ck_movement_quantity_nonneg"),
        CheckConstraint("new_stock >= 0", name="ck_movement_new_stock_nonneg"),
        Index("idx_movement_product_occurred", "product_id", "occurred_at"),
        Index("idx_movement_reference", "reference_type", "reference_id"),
    )

    product_id: Mapped[ExternalId] = mapped_column(
        ForeignKey("stock_records.product_id"),
        nullable=False,
    )

    variant_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Per-product sequence (StockRecord.movement_count at append time)
    sequence: Mapped[Quantity] = mapped_column(nullable=False)

    movement_type: Mapped[ShortCode] = mapped_column(nullable=False)

    # Magnitude actually applied to the bucket
    quantity: Mapped[Quantity] = mapped_column(nullable=False)

    previous_stock: Mapped[Quantity] = mapped_column(nullable=False)

    new_stock: Mapped[Quantity] = mapped_column(nullable=False)

    reason: Mapped[ReasonText] = mapped_column(nullable=False)

    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    reference_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    performed_by: Mapped[ActorId] = mapped_column(nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    extension: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Movement {self.product_id}#{self.sequence} {self.movement_type} "
            f"{self.previous_stock}->{self.new_stock}>"
        )
