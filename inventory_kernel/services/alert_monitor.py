"""
AlertMonitor -- connects committed stock changes to the alert pipeline.

Responsibility:
    Subscribes to LedgerEngine's StockChanged events, classifies the new
    snapshot and either hands the alert to the dispatcher or clears the
    product's active alerts.

Architecture position:
    Kernel > Services -- event listener.  Runs on the thread that committed
    the change, after the product lock is released.

Failure modes:
    - Dispatcher or database errors are logged as ``alert_evaluation_failed``
      and swallowed here: an alert problem never turns a committed mutation
      into a reported failure.
"""

from inventory_kernel.domain.classifier import classify
from inventory_kernel.domain.dtos import StockChanged
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.alert_dispatcher import AlertDispatcher, DispatchResult

logger = get_logger("services.alert_monitor")


class AlertMonitor:
    """Callable StockChanged listener."""

    def __init__(self, dispatcher: AlertDispatcher):
        self._dispatcher = dispatcher

    def __call__(self, event: StockChanged) -> None:
        self.evaluate(event)

    def evaluate(self, event: StockChanged) -> DispatchResult | None:
        alert = classify(event.snapshot)
        try:
            if alert is None:
                self._dispatcher.clear(event.product_id)
                return None
            return self._dispatcher.notify(alert)
        except Exception:
            logger.error(
                "alert_evaluation_failed",
                extra={
                    "product_id": event.product_id,
                    "alert_type": alert.alert_type.value if alert else None,
                },
                exc_info=True,
            )
            return None
