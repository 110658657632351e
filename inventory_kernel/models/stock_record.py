"""
Module: inventory_kernel.models.stock_record
Responsibility: ORM persistence for the authoritative stock balance of a
    product: the base (product-level) bucket plus an ordered list of variant
    buckets.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - product_id is unique (uq_stock_record_product).
    - base_quantity >= 0 and every variant quantity >= 0 (CHECK constraints).
    - (stock_record_id, variant_id) is unique per variant bucket.
    - total_stock is computed on read and never stored.
    - version is the SQLAlchemy version_id_col; a concurrent writer that
      loaded a stale row fails with StaleDataError.

Failure modes:
    - IntegrityError on duplicate product_id or negative balance.
    - StaleDataError on a lost optimistic-version race (mapped to
      OptimisticLockError by LedgerEngine).

Audit relevance:
    The balance columns are a cache of the movement log.  Every change goes
    through LedgerEngine, which appends a Movement in the same transaction,
    so replaying the log from zero reproduces each bucket.
"""

from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString


class StockRecord(TrackedBase):
    """
    Current stock levels for one product.

    Contract:
        Mutated only by LedgerEngine under the per-product lock.
        ``movement_count`` is the sequence number of the last Movement
        appended for this product.

    Guarantees:
        - low_stock_threshold >= 0 and reorder_point >= low_stock_threshold
          whenever the reorder multiplier is >= 1.
        - variants are returned ordered by ``position``.
    """

    __tablename__ = "stock_records"

    __table_args__ = (
        UniqueConstraint("product_id", name="uq_stock_record_product"),
        CheckConstraint("base_quantity >= 0", name="ck_stock_record_base_nonneg"),
        CheckConstraint(
            "low_stock_threshold >= 0", name="ck_stock_record_threshold_nonneg"
        ),
        Index("idx_stock_record_registration", "registration_seq"),
    )

    product_id: Mapped[str] = mapped_column(String(100), nullable=False)

    base_quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    low_stock_threshold: Mapped[int] = mapped_column(BigInteger, nullable=False)

    reorder_point: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Sequence of the last appended movement (0 = none yet)
    movement_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Global insertion order, from SequenceService
    registration_seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    variants: Mapped[list["VariantBalance"]] = relationship(
        back_populates="stock_record",
        order_by="VariantBalance.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<StockRecord {self.product_id}: {self.total_stock}>"

    @property
    def total_stock(self) -> int:
        """Base quantity plus every variant quantity."""
        return self.base_quantity + sum(v.quantity for v in self.variants)

    def find_variant(self, variant_id: str) -> "VariantBalance | None":
        for variant in self.variants:
            if variant.variant_id == variant_id:
                return variant
        return None

    def bucket_quantity(self, variant_id: str | None) -> int:
        if variant_id is None:
            return self.base_quantity
        variant = self.find_variant(variant_id)
        return variant.quantity if variant is not None else 0


class VariantBalance(Base):
    """Stock held for one variant of a product."""

    __tablename__ = "stock_variant_balances"

    __table_args__ = (
        UniqueConstraint(
            "stock_record_id", "variant_id", name="uq_variant_balance_variant"
        ),
        CheckConstraint("quantity >= 0", name="ck_variant_balance_nonneg"),
    )

    stock_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_records.id", ondelete="CASCADE"),
        nullable=False,
    )

    variant_id: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Declaration order within the product
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    stock_record: Mapped[StockRecord] = relationship(back_populates="variants")

    def __repr__(self) -> str:
        return f"<VariantBalance {self.variant_id}: {self.quantity}>"
