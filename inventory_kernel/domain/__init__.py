"""Pure domain core: DTOs, classifier, ledger arithmetic and clocks."""

from inventory_kernel.domain.classifier import (
    classify,
    compute_reorder_point,
    is_low_stock,
    is_out_of_stock,
    needs_reorder,
)
from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    BASE_BUCKET,
    Alert,
    AlertType,
    BatchItemResult,
    InventorySnapshot,
    MovementDetails,
    MovementType,
    MutationRequest,
    MutationResult,
    ReferenceType,
    Severity,
    StockChanged,
    StockSnapshot,
    ThresholdChange,
    VariantBalanceView,
)

__all__ = [
    "BASE_BUCKET",
    "Alert",
    "AlertType",
    "BatchItemResult",
    "Clock",
    "DeterministicClock",
    "InventorySnapshot",
    "MovementDetails",
    "MovementType",
    "MutationRequest",
    "MutationResult",
    "ReferenceType",
    "Severity",
    "StockChanged",
    "StockSnapshot",
    "SystemClock",
    "ThresholdChange",
    "VariantBalanceView",
    "classify",
    "compute_reorder_point",
    "is_low_stock",
    "is_out_of_stock",
    "needs_reorder",
]
