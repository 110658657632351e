"""SQLAlchemy ORM models for the inventory kernel."""

from inventory_kernel.models.alert_state import AlertState
from inventory_kernel.models.catalog import (
    CatalogProduct,
    OrderLine,
    OrderStatus,
    ProductStatus,
    Vendor,
)
from inventory_kernel.models.movement import Movement
from inventory_kernel.models.stock_record import StockRecord, VariantBalance

__all__ = [
    "AlertState",
    "CatalogProduct",
    "Movement",
    "OrderLine",
    "OrderStatus",
    "ProductStatus",
    "StockRecord",
    "VariantBalance",
    "Vendor",
]
