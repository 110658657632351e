"""
Alert classifier -- pure mapping from a stock snapshot to zero or one alert.

Responsibility:
    Decides whether a product's current stock warrants an alert, and at
    which severity.  Also owns the threshold predicates and the reorder
    point formula so that selectors and reports share a single definition.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O, no clock, no state.

Rules (first match wins, mutually exclusive):
    1. total == 0                    -> OUT_OF_STOCK / CRITICAL
    2. total <= low_stock_threshold  -> LOW_STOCK / HIGH when
                                        total <= ceil(threshold / 2),
                                        otherwise MEDIUM
    3. total <= reorder_point        -> REORDER_POINT / LOW
    4. otherwise                     -> None (active alerts are cleared)

    A threshold of 0 alerts only on literal stock-out: rule 2 cannot fire
    for non-negative stock once rule 1 has been checked.
"""

from __future__ import annotations

import math
from decimal import ROUND_CEILING, Decimal

from inventory_kernel.domain.dtos import Alert, AlertType, Severity, StockSnapshot

DEFAULT_REORDER_MULTIPLIER = Decimal("1.5")


def compute_reorder_point(
    low_stock_threshold: int,
    multiplier: Decimal = DEFAULT_REORDER_MULTIPLIER,
) -> int:
    """Return ``ceil(low_stock_threshold * multiplier)`` using exact decimal math."""
    scaled = Decimal(low_stock_threshold) * multiplier
    return int(scaled.to_integral_value(rounding=ROUND_CEILING))


def high_severity_ceiling(low_stock_threshold: int) -> int:
    """Stock at or below this level is a HIGH (rather than MEDIUM) low-stock alert."""
    return math.ceil(low_stock_threshold / 2)


def is_out_of_stock(total_stock: int) -> bool:
    return total_stock == 0


def is_low_stock(total_stock: int, low_stock_threshold: int) -> bool:
    return total_stock <= low_stock_threshold


def needs_reorder(total_stock: int, reorder_point: int) -> bool:
    return total_stock <= reorder_point


def classify(snapshot: StockSnapshot) -> Alert | None:
    """
    Classify a snapshot.

    Postconditions:
        - Returns None or an active Alert with ``last_alert_sent=None``.
        - Deterministic: equal snapshots give equal results.
    """
    total = snapshot.total_stock
    threshold = snapshot.low_stock_threshold

    if is_out_of_stock(total):
        return Alert(
            product_id=snapshot.product_id,
            alert_type=AlertType.OUT_OF_STOCK,
            severity=Severity.CRITICAL,
            current_stock=total,
            threshold=0,
        )

    if is_low_stock(total, threshold):
        severity = (
            Severity.HIGH
            if total <= high_severity_ceiling(threshold)
            else Severity.MEDIUM
        )
        return Alert(
            product_id=snapshot.product_id,
            alert_type=AlertType.LOW_STOCK,
            severity=severity,
            current_stock=total,
            threshold=threshold,
        )

    if needs_reorder(total, snapshot.reorder_point):
        return Alert(
            product_id=snapshot.product_id,
            alert_type=AlertType.REORDER_POINT,
            severity=Severity.LOW,
            current_stock=total,
            threshold=snapshot.reorder_point,
        )

    return None
