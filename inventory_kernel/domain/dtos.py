"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow through the ledger:
    movement and reference enums, MutationRequest (input), MovementDetails
    (the typed audit record), MutationResult / BatchItemResult (output),
    StockChanged (the event emitted after commit), and the alert types the
    classifier produces.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  from_model() class methods exist as boundary
    converters and are only invoked from services and selectors.

Invariants enforced:
    - Movement metadata is a closed set of typed fields; the only open map
      is the explicit ``extension`` field (frozen on construction).
    - Severity is ordinal: LOW < MEDIUM < HIGH < CRITICAL.

Data flow:
    MutationRequest -> LedgerEngine -> MovementDetails + MutationResult
                    -> StockChanged -> classify() -> Alert
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

if TYPE_CHECKING:
    from inventory_kernel.models.movement import Movement as MovementModel
    from inventory_kernel.models.stock_record import StockRecord as StockRecordModel


class MovementType(str, Enum):
    """
    Kind of stock change.

    IN and RETURN add stock, OUT removes it (clamped at zero), ADJUSTMENT
    sets an absolute level.
    """

    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"
    RETURN = "RETURN"


class ReferenceType(str, Enum):
    """Kind of business document a movement points back to."""

    ORDER = "ORDER"
    RETURN = "RETURN"
    ADJUSTMENT = "ADJUSTMENT"
    PURCHASE = "PURCHASE"


class AlertType(str, Enum):
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    REORDER_POINT = "REORDER_POINT"


class Severity(str, Enum):
    """Ordinal urgency tier attached to an alert."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


def _freeze_extension(value: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if value is None:
        return None
    frozen: dict[str, Any] = {}
    for k, v in value.items():
        if isinstance(v, Mapping):
            frozen[k] = _freeze_extension(v)
        elif isinstance(v, list):
            frozen[k] = tuple(v)
        else:
            frozen[k] = v
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class MutationRequest:
    """
    One requested stock change, as submitted by a caller or a batch.

    Values are kept as received; validation happens in the ledger engine so
    that a batch can report per-item validation failures.
    """

    product_id: str
    quantity: Any
    movement_type: Any
    reason: str
    reference_id: str | None = None
    reference_type: Any = None
    variant_id: str | None = None
    extension: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class MovementDetails:
    """
    Immutable audit view of a single stock movement.

    Contract:
        ``quantity`` is always the magnitude actually applied, so
        ``new_stock - previous_stock`` equals ``signed_quantity``.
        ``variant_id`` is None for the product-level (base) bucket.
    """

    id: UUID
    product_id: str
    variant_id: str | None
    sequence: int
    movement_type: MovementType
    quantity: int
    previous_stock: int
    new_stock: int
    reason: str
    performed_by: str
    occurred_at: datetime
    reference_id: str | None = None
    reference_type: ReferenceType | None = None
    extension: Mapping[str, Any] | None = None

    def __post_init__(self):
        object.__setattr__(self, "extension", _freeze_extension(self.extension))

    @property
    def signed_quantity(self) -> int:
        """Quantity with direction: positive when stock went up."""
        return self.new_stock - self.previous_stock

    @property
    def bucket(self) -> str:
        """Balance bucket this movement applies to."""
        return self.variant_id if self.variant_id is not None else BASE_BUCKET

    @classmethod
    def from_model(cls, model: MovementModel) -> MovementDetails:
        return cls(
            id=model.id,
            product_id=model.product_id,
            variant_id=model.variant_id,
            sequence=model.sequence,
            movement_type=MovementType(model.movement_type),
            quantity=model.quantity,
            previous_stock=model.previous_stock,
            new_stock=model.new_stock,
            reason=model.reason,
            performed_by=model.performed_by,
            occurred_at=model.occurred_at,
            reference_id=model.reference_id,
            reference_type=(
                ReferenceType(model.reference_type) if model.reference_type else None
            ),
            extension=model.extension,
        )


BASE_BUCKET = "__base__"


@dataclass(frozen=True)
class StockSnapshot:
    """Point-in-time stock figures consumed by the classifier."""

    product_id: str
    total_stock: int
    low_stock_threshold: int
    reorder_point: int

    @classmethod
    def from_model(cls, model: StockRecordModel) -> StockSnapshot:
        return cls(
            product_id=model.product_id,
            total_stock=model.total_stock,
            low_stock_threshold=model.low_stock_threshold,
            reorder_point=model.reorder_point,
        )


@dataclass(frozen=True)
class Alert:
    """
    A derived stock alert.  Identity is ``(product_id, alert_type)``.

    ``threshold`` is the level that was crossed: 0 for OUT_OF_STOCK, the
    low-stock threshold for LOW_STOCK, the reorder point for REORDER_POINT.
    """

    product_id: str
    alert_type: AlertType
    severity: Severity
    current_stock: int
    threshold: int
    last_alert_sent: datetime | None = None
    is_active: bool = True

    @property
    def key(self) -> tuple[str, AlertType]:
        return (self.product_id, self.alert_type)


@dataclass(frozen=True)
class StockChanged:
    """Event emitted by the ledger engine after a committed change."""

    product_id: str
    snapshot: StockSnapshot
    performed_by: str
    occurred_at: datetime
    movement_id: UUID | None = None
    movement_type: MovementType | None = None
    threshold_changed: bool = False


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a successful mutation."""

    product_id: str
    previous_stock: int
    new_stock: int
    movement_type: MovementType
    quantity: int
    movement_id: UUID
    total_stock: int
    variant_id: str | None = None


@dataclass(frozen=True)
class BatchItemResult:
    """Per-item outcome of ``apply_mutation_batch``."""

    product_id: str
    success: bool
    result: MutationResult | None = None
    error_code: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class VariantBalanceView:
    variant_id: str
    quantity: int


@dataclass(frozen=True)
class InventorySnapshot:
    """
    Read model returned by ``get_inventory``.

    Flags are non-exclusive: a product with zero stock is out of stock, low
    on stock and below its reorder point at the same time.
    """

    product_id: str
    product_name: str
    base_quantity: int
    variants: tuple[VariantBalanceView, ...]
    total_stock: int
    low_stock_threshold: int
    reorder_point: int
    is_low_stock: bool
    is_out_of_stock: bool
    needs_reorder: bool
    vendor_id: str | None = None
    category_name: str | None = None

    def to_snapshot(self) -> StockSnapshot:
        return StockSnapshot(
            product_id=self.product_id,
            total_stock=self.total_stock,
            low_stock_threshold=self.low_stock_threshold,
            reorder_point=self.reorder_point,
        )


@dataclass(frozen=True)
class ThresholdChange:
    """Outcome of ``set_threshold``."""

    product_id: str
    previous_threshold: int
    low_stock_threshold: int
    reorder_point: int
    alert: Alert | None = None
