"""
InventoryKernel -- the public facade and its composition root.

Responsibility:
    Creates every kernel service exactly once, wires the alert monitor into
    the ledger engine, and exposes the operations callers use: stock reads,
    mutations, alert listing, reporting, movement history and the
    monitoring sweep.

Architecture position:
    Kernel > Services -- top of the service layer.  This module is the only
    place where services are constructed and composed; no service creates
    another internally.

Invariants enforced:
    - Reads use their own short transaction and never take product locks.
    - Writes go through LedgerEngine only.
    - Alert delivery never runs inside a ledger transaction.

Usage:
    kernel = build_inventory_kernel("sqlite:///inventory.db")
    kernel.apply_mutation("SKU-1", 5, "IN", "restock", performed_by="u-1")
    kernel.list_alerts(severity="CRITICAL")
    kernel.close()
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from inventory_config import InventoryPolicy, get_active_policy
from inventory_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    AlertType,
    BatchItemResult,
    InventorySnapshot,
    MovementDetails,
    MutationRequest,
    MutationResult,
    Severity,
    StockSnapshot,
    ThresholdChange,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.reporting.export import export_report_xlsx
from inventory_kernel.selectors.inventory_selector import AlertListing, InventorySelector
from inventory_kernel.selectors.movement_selector import MovementSelector
from inventory_kernel.selectors.report_selector import InventoryReport, ReportSelector
from inventory_kernel.services.alert_dispatcher import AlertDispatcher, DispatchResult
from inventory_kernel.services.alert_monitor import AlertMonitor
from inventory_kernel.services.ledger_engine import LedgerEngine
from inventory_kernel.services.lock_registry import KeyedLockRegistry
from inventory_kernel.services.monitoring_service import InventoryMonitor, MonitoringSummary
from inventory_kernel.services.movement_log import MovementLog
from inventory_kernel.services.notification import LoggingNotificationSink, NotificationSink
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.kernel")

DATABASE_URL_ENV = "DATABASE_URL"
DEFAULT_DATABASE_URL = "sqlite:///inventory.db"


class InventoryKernel:
    """Facade over the ledger engine, alert pipeline and selectors."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        policy: InventoryPolicy | None = None,
        sink: NotificationSink | None = None,
        clock: Clock | None = None,
        executor: ThreadPoolExecutor | None = None,
        owns_engine: bool = False,
    ):
        self._session_factory = session_factory
        self._policy = policy or InventoryPolicy()
        self._clock = clock or SystemClock()
        self._executor = executor
        self._owns_engine = owns_engine

        self._ledger = LedgerEngine(session_factory, policy=self._policy, clock=self._clock)
        self._dispatcher = AlertDispatcher(
            session_factory,
            sink or LoggingNotificationSink(),
            clock=self._clock,
            cooldown_seconds=self._policy.alert_cooldown_seconds,
            executor=executor,
            lock_registry=KeyedLockRegistry(self._policy.lock_timeout_seconds),
        )
        self._alert_monitor = AlertMonitor(self._dispatcher)
        self._ledger.add_listener(self._alert_monitor)
        self._monitor = InventoryMonitor(
            session_factory,
            self._dispatcher,
            reportable_statuses=self._policy.reportable_statuses,
        )

    @property
    def policy(self) -> InventoryPolicy:
        return self._policy

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def ledger(self) -> LedgerEngine:
        return self._ledger

    @property
    def dispatcher(self) -> AlertDispatcher:
        return self._dispatcher

    @property
    def alert_monitor(self) -> AlertMonitor:
        return self._alert_monitor

    @property
    def monitor(self) -> InventoryMonitor:
        return self._monitor

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def register_product(
        self,
        product_id: str,
        performed_by: str,
        base_quantity: int = 0,
        variants: Mapping[str, int] | None = None,
        low_stock_threshold: int | None = None,
    ) -> StockSnapshot:
        return self._ledger.register_product(
            product_id,
            performed_by=performed_by,
            base_quantity=base_quantity,
            variants=variants,
            low_stock_threshold=low_stock_threshold,
        )

    def apply_mutation(
        self,
        product_id: str,
        quantity: Any,
        movement_type: Any,
        reason: str,
        performed_by: str,
        reference_id: str | None = None,
        reference_type: Any = None,
        variant_id: str | None = None,
        extension: Mapping[str, Any] | None = None,
    ) -> MutationResult:
        return self._ledger.apply_mutation(
            product_id,
            quantity,
            movement_type,
            reason,
            performed_by,
            reference_id=reference_id,
            reference_type=reference_type,
            variant_id=variant_id,
            extension=extension,
        )

    def apply_mutation_batch(
        self, requests: Iterable[MutationRequest], performed_by: str
    ) -> list[BatchItemResult]:
        return self._ledger.apply_mutation_batch(requests, performed_by)

    def set_threshold(
        self, product_id: str, low_stock_threshold: int, performed_by: str
    ) -> ThresholdChange:
        return self._ledger.set_threshold(product_id, low_stock_threshold, performed_by)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_inventory(self, product_id: str) -> InventorySnapshot:
        with session_scope(self._session_factory) as session:
            return InventorySelector(session, self._policy.reportable_statuses).get_inventory(
                product_id
            )

    def list_alerts(
        self,
        vendor_id: str | None = None,
        severity: Severity | str | None = None,
        alert_type: AlertType | str | None = None,
    ) -> AlertListing:
        with session_scope(self._session_factory) as session:
            return InventorySelector(session, self._policy.reportable_statuses).list_alerts(
                vendor_id=vendor_id, severity=severity, alert_type=alert_type
            )

    def build_report(self, vendor_id: str | None = None) -> InventoryReport:
        with session_scope(self._session_factory) as session:
            return ReportSelector(
                session,
                clock=self._clock,
                reportable_statuses=self._policy.reportable_statuses,
                sales_order_statuses=self._policy.sales_order_statuses,
                top_n=self._policy.report_top_n,
            ).build_report(vendor_id)

    def get_movement_history(
        self, product_id: str, limit: int | None = None
    ) -> list[MovementDetails]:
        if limit is None:
            limit = self._policy.history_default_limit
        with session_scope(self._session_factory) as session:
            return MovementSelector(session).get_movement_history(product_id, limit)

    def verify_ledger(self, product_id: str) -> int:
        """Replay the product's movements and check them against its balances."""
        with session_scope(self._session_factory) as session:
            return MovementLog(session).verify(product_id)

    # ------------------------------------------------------------------
    # Monitoring and export
    # ------------------------------------------------------------------

    def run_monitoring_sweep(self, vendor_id: str | None = None) -> MonitoringSummary:
        return self._monitor.run_sweep(vendor_id)

    def check_product_alerts(self, product_id: str) -> DispatchResult | None:
        return self._monitor.check_product(product_id)

    def export_report(self, path: Path | str, vendor_id: str | None = None) -> Path:
        report = self.build_report(vendor_id)
        listing = self.list_alerts(vendor_id=vendor_id)
        return export_report_xlsx(
            report, listing.alerts, path, generated_at=self._clock.now()
        )

    def close(self) -> None:
        """Wait for queued alert deliveries, then release the engine if owned."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        if self._owns_engine:
            reset_engine()
        logger.info("inventory_kernel_closed")


def build_inventory_kernel(
    database_url: str | None = None,
    policy: InventoryPolicy | None = None,
    sink: NotificationSink | None = None,
    clock: Clock | None = None,
    create_schema: bool = True,
) -> InventoryKernel:
    """
    Initialize persistence and return a ready InventoryKernel.

    ``database_url`` defaults to the DATABASE_URL environment variable, then
    a local SQLite file.  ``policy`` defaults to ``get_active_policy()``.
    Alert delivery runs on a thread pool of ``policy.dispatch_workers``
    threads, so a slow sink never holds up a mutation.  A policy with
    ``dispatch_workers=0`` opts into inline delivery on the caller's thread.
    """
    url = database_url or os.environ.get(DATABASE_URL_ENV, DEFAULT_DATABASE_URL)
    policy = policy or get_active_policy()

    init_engine_from_url(url)
    register_immutability_listeners()
    if create_schema:
        create_tables()
    with session_scope() as session:
        SequenceService(session).initialize_sequences()

    executor = None
    if policy.dispatch_workers > 0:
        executor = ThreadPoolExecutor(
            max_workers=policy.dispatch_workers,
            thread_name_prefix="alert-dispatch",
        )

    logger.info(
        "inventory_kernel_built",
        extra={
            "dispatch_workers": policy.dispatch_workers,
            "alert_cooldown_seconds": policy.alert_cooldown_seconds,
        },
    )
    return InventoryKernel(
        get_session_factory(),
        policy=policy,
        sink=sink,
        clock=clock,
        executor=executor,
        owns_engine=True,
    )
