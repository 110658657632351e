"""
AlertDispatcher -- deduplicates alerts and forwards them to a sink.

Responsibility:
    Keeps the persisted alert state for every (product_id, alert_type),
    enforces the per-key cooldown, and delivers non-suppressed alerts to the
    NotificationSink, either inline or on a concurrent.futures executor.

Architecture position:
    Kernel > Services -- imperative shell, owns its own transactions.
    Called by AlertMonitor (after ledger commits) and InventoryMonitor
    (periodic sweep).  Never called while a product's ledger lock is held.

Invariants enforced:
    - Current state wins: ``notify`` and ``clear`` re-read the StockRecord
      under the product's alert lock and act on its classification, not on
      the snapshot the caller classified.  An event overtaken by a later
      commit therefore cannot re-raise or clear an alert wrongly.
    - Cooldown: at most one send per (product_id, alert_type) within
      ``cooldown_seconds``.  The check and the reservation of the send slot
      happen atomically under the product's alert lock, so concurrent
      notifies for the same key produce a single send.
    - One active alert type per product: activating a type deactivates the
      product's other types.
    - A failed send releases its reservation, so the next pass retries.

Failure modes:
    - Sink exceptions are caught, logged as ``alert_dispatch_failed`` and
      reported as FAILED.  They never propagate to the caller.
    - LockTimeoutError (BUSY) when the product's alert lock is contended.
    - SQLAlchemyError from the state table propagates to the caller
      (AlertMonitor logs it; InventoryMonitor counts it as an error).
"""

from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from inventory_kernel.db.engine import session_scope
from inventory_kernel.domain.classifier import classify
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import Alert, AlertType, StockSnapshot
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.alert_state import AlertState
from inventory_kernel.models.catalog import CatalogProduct, Vendor
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.services.lock_registry import KeyedLockRegistry
from inventory_kernel.services.notification import (
    AlertPayload,
    NotificationSink,
    render_alert_message,
)

logger = get_logger("services.alert_dispatcher")

DISPATCHER_ACTOR = "system:alert-dispatcher"


class DispatchStatus(str, Enum):
    SENT = "SENT"
    QUEUED = "QUEUED"
    SUPPRESSED = "SUPPRESSED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one ``notify`` call."""

    product_id: str
    alert_type: AlertType
    status: DispatchStatus
    reason: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status in (DispatchStatus.SENT, DispatchStatus.QUEUED)


class AlertDispatcher:
    """
    Cooldown-aware alert forwarder.

    Contract:
        ``notify(alert)`` returns SENT, QUEUED (executor supplied),
        SUPPRESSED (reason ``cooldown``), SKIPPED (reason
        ``missing_contact``, or ``resolved`` when the product's current
        stock no longer warrants an alert) or FAILED (sink raised).
        The delivered alert is the one derived from current stock, which
        may differ from the one passed in.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        sink: NotificationSink,
        clock: Clock | None = None,
        cooldown_seconds: int = 3600,
        executor: Executor | None = None,
        lock_registry: KeyedLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._sink = sink
        self._clock = clock or SystemClock()
        self._cooldown = timedelta(seconds=cooldown_seconds)
        self._executor = executor
        self._locks = lock_registry or KeyedLockRegistry()

    @property
    def lock_registry(self) -> KeyedLockRegistry:
        return self._locks

    def notify(self, alert: Alert) -> DispatchResult:
        """Record the product's current alert and deliver it if due."""
        now = self._clock.now()
        with self._locks.hold(alert.product_id):
            with session_scope(self._session_factory) as session:
                current = self._current_alert(session, alert)
                if current is None:
                    cleared = self._deactivate_all(session, alert.product_id)
                    logger.info(
                        "alert_resolved_before_dispatch",
                        extra={
                            "product_id": alert.product_id,
                            "alert_type": alert.alert_type.value,
                            "cleared_count": cleared,
                        },
                    )
                    return DispatchResult(
                        alert.product_id,
                        alert.alert_type,
                        DispatchStatus.SKIPPED,
                        "resolved",
                    )
                alert = current

                state = self._activate(session, alert)
                payload = self._build_payload(session, alert)
                if payload is None:
                    logger.warning(
                        "alert_skipped_missing_contact",
                        extra={
                            "product_id": alert.product_id,
                            "alert_type": alert.alert_type.value,
                        },
                    )
                    return DispatchResult(
                        alert.product_id,
                        alert.alert_type,
                        DispatchStatus.SKIPPED,
                        "missing_contact",
                    )

                last_sent = state.last_alert_sent
                if last_sent is not None and now - last_sent < self._cooldown:
                    logger.info(
                        "alert_suppressed",
                        extra={
                            "product_id": alert.product_id,
                            "alert_type": alert.alert_type.value,
                            "last_alert_sent": state.last_alert_sent,
                            "cooldown_seconds": self._cooldown.total_seconds(),
                        },
                    )
                    return DispatchResult(
                        alert.product_id,
                        alert.alert_type,
                        DispatchStatus.SUPPRESSED,
                        "cooldown",
                    )

                previous_sent = state.last_alert_sent
                state.last_alert_sent = now

        if self._executor is not None:
            self._executor.submit(self._deliver, payload, now, previous_sent)
            return DispatchResult(alert.product_id, alert.alert_type, DispatchStatus.QUEUED)
        return self._deliver(payload, now, previous_sent)

    def clear(self, product_id: str) -> int:
        """
        Deactivate every active alert for ``product_id``.

        Nothing is cleared while the product's current stock still warrants
        an alert; the commit that caused it raises its own notify.
        ``last_alert_sent`` is kept, so the cooldown still applies if the
        same alert comes back.  Returns the number of alerts cleared.
        """
        with self._locks.hold(product_id):
            with session_scope(self._session_factory) as session:
                record = self._load_record(session, product_id)
                if record is not None and classify(StockSnapshot.from_model(record)) is not None:
                    logger.debug("alert_clear_skipped", extra={"product_id": product_id})
                    return 0
                cleared = self._deactivate_all(session, product_id)

        if cleared:
            logger.info(
                "alerts_cleared",
                extra={"product_id": product_id, "cleared_count": cleared},
            )
        return cleared

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _load_record(session: Session, product_id: str) -> StockRecord | None:
        return session.execute(
            select(StockRecord).where(StockRecord.product_id == product_id)
        ).scalar_one_or_none()

    def _current_alert(self, session: Session, alert: Alert) -> Alert | None:
        record = self._load_record(session, alert.product_id)
        if record is None:
            return alert
        current = classify(StockSnapshot.from_model(record))
        if current != alert:
            logger.debug(
                "alert_reclassified",
                extra={
                    "product_id": alert.product_id,
                    "alert_type": alert.alert_type.value,
                    "current_stock": record.total_stock,
                },
            )
        return current

    @staticmethod
    def _deactivate_all(session: Session, product_id: str) -> int:
        states = session.execute(
            select(AlertState).where(
                AlertState.product_id == product_id,
                AlertState.is_active.is_(True),
            )
        ).scalars().all()
        for state in states:
            state.is_active = False
            state.updated_by = DISPATCHER_ACTOR
        return len(states)

    def _activate(self, session: Session, alert: Alert) -> AlertState:
        states = session.execute(
            select(AlertState).where(AlertState.product_id == alert.product_id)
        ).scalars().all()

        target = None
        for state in states:
            if state.alert_type == alert.alert_type.value:
                target = state
            elif state.is_active:
                state.is_active = False
                state.updated_by = DISPATCHER_ACTOR

        if target is None:
            target = AlertState(
                product_id=alert.product_id,
                alert_type=alert.alert_type.value,
                created_by=DISPATCHER_ACTOR,
                last_alert_sent=None,
            )
            session.add(target)

        target.severity = alert.severity.value
        target.current_stock = alert.current_stock
        target.threshold = alert.threshold
        target.is_active = True
        target.updated_by = DISPATCHER_ACTOR
        session.flush()
        return target

    def _build_payload(self, session: Session, alert: Alert) -> AlertPayload | None:
        row = session.execute(
            select(CatalogProduct, Vendor, StockRecord)
            .join(Vendor, Vendor.vendor_id == CatalogProduct.vendor_id, isouter=True)
            .join(
                StockRecord,
                StockRecord.product_id == CatalogProduct.product_id,
                isouter=True,
            )
            .where(CatalogProduct.product_id == alert.product_id)
        ).one_or_none()
        if row is None:
            return None
        product, vendor, record = row
        if vendor is None or not vendor.contact_email:
            return None

        return AlertPayload(
            product_id=alert.product_id,
            product_name=product.name,
            alert_type=alert.alert_type,
            severity=alert.severity,
            current_stock=alert.current_stock,
            threshold=alert.threshold,
            low_stock_threshold=record.low_stock_threshold if record else alert.threshold,
            reorder_point=record.reorder_point if record else alert.threshold,
            category_name=product.category_name,
            vendor_id=product.vendor_id,
            vendor_name=vendor.business_name,
            destination=vendor.contact_email,
        )

    def _deliver(
        self,
        payload: AlertPayload,
        reserved_at: datetime,
        previous_sent: datetime | None,
    ) -> DispatchResult:
        try:
            self._sink.send(payload, render_alert_message(payload))
        except Exception as exc:
            logger.error(
                "alert_dispatch_failed",
                extra={
                    "product_id": payload.product_id,
                    "alert_type": payload.alert_type.value,
                    "error": str(exc),
                },
                exc_info=True,
            )
            self._release(payload, reserved_at, previous_sent)
            return DispatchResult(
                payload.product_id, payload.alert_type, DispatchStatus.FAILED, str(exc)
            )

        logger.info(
            "alert_dispatched",
            extra={
                "product_id": payload.product_id,
                "alert_type": payload.alert_type.value,
                "severity": payload.severity.value,
                "current_stock": payload.current_stock,
            },
        )
        return DispatchResult(payload.product_id, payload.alert_type, DispatchStatus.SENT)

    def _release(
        self,
        payload: AlertPayload,
        reserved_at: datetime,
        previous_sent: datetime | None,
    ) -> None:
        with self._locks.hold(payload.product_id):
            with session_scope(self._session_factory) as session:
                state = session.execute(
                    select(AlertState).where(
                        AlertState.product_id == payload.product_id,
                        AlertState.alert_type == payload.alert_type.value,
                    )
                ).scalar_one_or_none()
                # Only undo our own reservation
                if state is not None and state.last_alert_sent == reserved_at:
                    state.last_alert_sent = previous_sent
                    state.updated_by = DISPATCHER_ACTOR
