"""Selectors for the inventory kernel (read side)."""

from inventory_kernel.selectors.inventory_selector import (
    AlertListing,
    InventorySelector,
    ListedAlert,
)
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.selectors.report_selector import (
    CategorySummary,
    InventoryReport,
    ReportSelector,
    SlowMover,
    TopSeller,
)

__all__ = [
    "AlertListing",
    "CategorySummary",
    "InventoryReport",
    "InventorySelector",
    "ListedAlert",
    "MovementSelector",
    "ReportSelector",
    "SlowMover",
    "TopSeller",
]
