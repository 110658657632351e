"""
InventoryMonitor -- periodic sweep over the catalog's stock health.

Responsibility:
    Classifies every active, reportable product that has a StockRecord and
    routes the results through the AlertDispatcher, the way a scheduled job
    catches anything the event path missed (alerts that failed to send,
    cooldowns that have since expired, threshold edits made elsewhere).

Architecture position:
    Kernel > Services -- batch orchestrator.  Reads snapshots in one short
    session, closes it, then dispatches product by product.  The dispatcher
    re-reads each product's current stock before it raises or clears
    anything, so a snapshot that went stale mid-sweep only skews the counts.

Failure modes:
    - A failure for one product is logged (``monitor_product_failed``) and
      counted in ``errors``; the sweep continues with the next product.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from inventory_kernel.db.engine import session_scope
from inventory_kernel.domain.classifier import (
    classify,
    is_low_stock,
    is_out_of_stock,
    needs_reorder,
)
from inventory_kernel.domain.dtos import StockSnapshot
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.inventory_selector import InventorySelector
from inventory_kernel.services.alert_dispatcher import (
    AlertDispatcher,
    DispatchResult,
    DispatchStatus,
)

logger = get_logger("services.monitoring")


@dataclass(frozen=True)
class MonitoringSummary:
    products_checked: int
    alerts_sent: int
    alerts_suppressed: int
    errors: int
    low_stock_products: int
    out_of_stock_products: int
    reorder_needed: int
    total_products: int


class InventoryMonitor:
    """Runs stock-health sweeps and on-demand product checks."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        dispatcher: AlertDispatcher,
        reportable_statuses: tuple[str, ...] = ("APPROVED",),
    ):
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._statuses = reportable_statuses

    def run_sweep(self, vendor_id: str | None = None) -> MonitoringSummary:
        """
        Classify and dispatch for every active product in scope.

        ``alerts_sent`` counts SENT and QUEUED results; SKIPPED and FAILED
        results are neither sent nor suppressed.
        """
        with session_scope(self._session_factory) as session:
            snapshots = [
                StockSnapshot.from_model(record)
                for record, _ in BaseSelector(session).scoped_products(
                    self._statuses, vendor_id, active_only=True
                )
            ]

        logger.info(
            "monitoring_sweep_started",
            extra={"vendor_id": vendor_id, "product_count": len(snapshots)},
        )

        checked = sent = suppressed = errors = 0
        low = out = reorder = 0
        for snapshot in snapshots:
            total = snapshot.total_stock
            if is_low_stock(total, snapshot.low_stock_threshold):
                low += 1
            if is_out_of_stock(total):
                out += 1
            if needs_reorder(total, snapshot.reorder_point):
                reorder += 1

            try:
                result = self._evaluate(snapshot)
            except Exception:
                errors += 1
                logger.error(
                    "monitor_product_failed",
                    extra={"product_id": snapshot.product_id},
                    exc_info=True,
                )
                continue

            checked += 1
            if result is None:
                continue
            if result.delivered:
                sent += 1
            elif result.status is DispatchStatus.SUPPRESSED:
                suppressed += 1
            elif result.status is DispatchStatus.FAILED:
                errors += 1

        summary = MonitoringSummary(
            products_checked=checked,
            alerts_sent=sent,
            alerts_suppressed=suppressed,
            errors=errors,
            low_stock_products=low,
            out_of_stock_products=out,
            reorder_needed=reorder,
            total_products=len(snapshots),
        )
        logger.info(
            "monitoring_sweep_completed",
            extra={
                "vendor_id": vendor_id,
                "products_checked": summary.products_checked,
                "alerts_sent": summary.alerts_sent,
                "alerts_suppressed": summary.alerts_suppressed,
                "errors": summary.errors,
            },
        )
        return summary

    def check_product(self, product_id: str) -> DispatchResult | None:
        """
        Re-evaluate a single product now.

        Raises:
            ProductNotFoundError: No StockRecord for ``product_id``.
        """
        with session_scope(self._session_factory) as session:
            snapshot = InventorySelector(session).get_inventory(product_id).to_snapshot()
        return self._evaluate(snapshot)

    def _evaluate(self, snapshot: StockSnapshot) -> DispatchResult | None:
        with LogContext.bind(product_id=snapshot.product_id):
            alert = classify(snapshot)
            if alert is None:
                self._dispatcher.clear(snapshot.product_id)
                return None
            return self._dispatcher.notify(alert)
