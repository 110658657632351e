"""
Inventory Policy Schema.

Defines the tunable settings of the inventory ledger and sensible defaults
for each.  Actual values are loaded from YAML at runtime through
``inventory_config.get_active_policy()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping, Self

logger = logging.getLogger("inventory_kernel.config")

DEFAULT_LOW_STOCK_THRESHOLD = 10
DEFAULT_REORDER_MULTIPLIER = Decimal("1.5")
DEFAULT_ALERT_COOLDOWN_SECONDS = 3600


@dataclass(frozen=True)
class InventoryPolicy:
    """
    Configuration schema for the inventory ledger.

    Field defaults mirror the platform's historical behavior.  Override at
    instantiation or via YAML:

        policy = InventoryPolicy(
            default_low_stock_threshold=25,
            vendor_thresholds={"vendor-42": 5},
        )
    """

    # Thresholds
    default_low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD
    vendor_thresholds: Mapping[str, int] = field(default_factory=dict)
    reorder_multiplier: Decimal = DEFAULT_REORDER_MULTIPLIER

    # Alerting
    alert_cooldown_seconds: int = DEFAULT_ALERT_COOLDOWN_SECONDS
    dispatch_workers: int = 1  # 0 = deliver inline on the caller's thread

    # Concurrency
    lock_timeout_seconds: float = 5.0

    # Read side
    history_default_limit: int = 50
    report_top_n: int = 10
    reportable_statuses: tuple[str, ...] = ("APPROVED",)
    sales_order_statuses: tuple[str, ...] = ("CONFIRMED", "SHIPPED", "DELIVERED")

    def __post_init__(self):
        if self.default_low_stock_threshold < 0:
            raise ValueError("default_low_stock_threshold cannot be negative")

        for vendor_id, threshold in self.vendor_thresholds.items():
            if not isinstance(threshold, int) or threshold < 0:
                raise ValueError(
                    f"vendor_thresholds[{vendor_id!r}] must be a non-negative "
                    f"integer, got {threshold!r}"
                )
        object.__setattr__(
            self, "vendor_thresholds", MappingProxyType(dict(self.vendor_thresholds))
        )

        if not isinstance(self.reorder_multiplier, Decimal):
            raise ValueError("reorder_multiplier must be a Decimal")
        if self.reorder_multiplier < 1:
            raise ValueError(
                f"reorder_multiplier must be at least 1, got {self.reorder_multiplier}"
            )

        if self.alert_cooldown_seconds < 0:
            raise ValueError("alert_cooldown_seconds cannot be negative")
        if self.dispatch_workers < 0:
            raise ValueError("dispatch_workers cannot be negative")
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be positive")
        if self.history_default_limit <= 0:
            raise ValueError("history_default_limit must be positive")
        if self.report_top_n <= 0:
            raise ValueError("report_top_n must be positive")
        if not self.reportable_statuses:
            raise ValueError("reportable_statuses cannot be empty")
        if not self.sales_order_statuses:
            raise ValueError("sales_order_statuses cannot be empty")

        logger.debug(
            "inventory_policy_initialized",
            extra={
                "default_low_stock_threshold": self.default_low_stock_threshold,
                "vendor_threshold_count": len(self.vendor_thresholds),
                "alert_cooldown_seconds": self.alert_cooldown_seconds,
                "dispatch_workers": self.dispatch_workers,
            },
        )

    def threshold_for(self, vendor_id: str | None) -> int:
        """Low-stock threshold for a new product of ``vendor_id``."""
        if vendor_id is not None and vendor_id in self.vendor_thresholds:
            return self.vendor_thresholds[vendor_id]
        return self.default_low_stock_threshold

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["vendor_thresholds"] = dict(self.vendor_thresholds)
        data["reorder_multiplier"] = str(self.reorder_multiplier)
        data["reportable_statuses"] = list(self.reportable_statuses)
        data["sales_order_statuses"] = list(self.sales_order_statuses)
        return data

    @classmethod
    def with_defaults(cls) -> Self:
        """Create a policy with the built-in defaults."""
        logger.info("inventory_policy_created_with_defaults")
        return cls()
