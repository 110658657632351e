"""
Module: inventory_kernel.models.catalog
Responsibility: Read-only mirrors of the catalog, vendor and order data that
    the ledger consumes but does not own.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

The catalog and order subsystems write these tables.  Inventory code only
reads them: product names and prices for alerts and reports, vendor contact
details for notifications, order lines for top-seller figures.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base
from inventory_kernel.db.types import ExternalId, Money, Quantity, ShortCode


class ProductStatus(str, Enum):
    APPROVED = "APPROVED"
    PENDING = "PENDING"
    REJECTED = "REJECTED"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class Vendor(Base):
    __tablename__ = "vendors"

    __table_args__ = (UniqueConstraint("vendor_id", name="uq_vendor_id"),)

    vendor_id: Mapped[ExternalId] = mapped_column(nullable=False)

    business_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Notifications are skipped when this is empty
    contact_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    def __repr__(self) -> str:
        return f"<Vendor {self.vendor_id}: {self.business_name}>"


class CatalogProduct(Base):
    """
    Catalog entry for a product.

    Only APPROVED, active products are in scope for reports and the
    monitoring sweep.
    """

    __tablename__ = "catalog_products"

    __table_args__ = (
        UniqueConstraint("product_id", name="uq_catalog_product_id"),
        Index("idx_catalog_vendor", "vendor_id"),
        Index("idx_catalog_status", "status"),
    )

    product_id: Mapped[ExternalId] = mapped_column(nullable=False)

    name: Mapped[str] = mapped_column(String(300), nullable=False)

    vendor_id: Mapped[ExternalId] = mapped_column(nullable=False)

    category_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    category_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    unit_price: Mapped[Money] = mapped_column(nullable=False)

    status: Mapped[ShortCode] = mapped_column(
        nullable=False, default=ProductStatus.APPROVED.value
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    listed_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<CatalogProduct {self.product_id}: {self.name}>"


class OrderLine(Base):
    __tablename__ = "order_lines"

    __table_args__ = (
        Index("idx_order_line_product", "product_id"),
        Index("idx_order_line_status", "order_status"),
    )

    order_id: Mapped[ExternalId] = mapped_column(nullable=False)

    product_id: Mapped[ExternalId] = mapped_column(nullable=False)

    quantity: Mapped[Quantity] = mapped_column(nullable=False)

    unit_price: Mapped[Money] = mapped_column(nullable=False)

    order_status: Mapped[ShortCode] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<OrderLine {self.order_id}/{self.product_id} x{self.quantity}>"
