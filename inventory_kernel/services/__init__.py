"""Services for the inventory kernel (write side and orchestration)."""

from inventory_kernel.services.alert_dispatcher import (
    AlertDispatcher,
    DispatchResult,
    DispatchStatus,
)
from inventory_kernel.services.alert_monitor import AlertMonitor
from inventory_kernel.services.kernel import InventoryKernel, build_inventory_kernel
from inventory_kernel.services.ledger_engine import LedgerEngine
from inventory_kernel.services.lock_registry import KeyedLockRegistry
from inventory_kernel.services.monitoring_service import InventoryMonitor, MonitoringSummary
from inventory_kernel.services.movement_log import MovementLog
from inventory_kernel.services.notification import (
    AlertMessage,
    AlertPayload,
    LoggingNotificationSink,
    NotificationSink,
    render_alert_message,
)
from inventory_kernel.services.sequence_service import SequenceService

__all__ = [
    "AlertDispatcher",
    "AlertMessage",
    "AlertMonitor",
    "AlertPayload",
    "DispatchResult",
    "DispatchStatus",
    "InventoryKernel",
    "InventoryMonitor",
    "KeyedLockRegistry",
    "LedgerEngine",
    "LoggingNotificationSink",
    "MonitoringSummary",
    "MovementLog",
    "NotificationSink",
    "SequenceService",
    "build_inventory_kernel",
    "render_alert_message",
]
