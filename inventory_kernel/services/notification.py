"""
Notification contract for stock alerts.

Responsibility:
    Defines what the dispatcher hands to the outside world (AlertPayload and
    a rendered AlertMessage) and the NotificationSink protocol a transport
    must implement.  Ships a LoggingNotificationSink that writes alerts to
    the structured log, used by the CLI and local runs.

Architecture position:
    Kernel > Services -- boundary contract.  The concrete transport (email
    provider, chat webhook) lives outside this package.

Failure modes:
    - Sinks signal delivery failure by raising (DispatchFailureError is the
      conventional type).  AlertDispatcher catches, logs and reports FAILED.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from inventory_kernel.domain.dtos import AlertType, Severity
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.notification")


@dataclass(frozen=True)
class AlertPayload:
    """Everything a transport needs to tell a vendor about one alert."""

    product_id: str
    product_name: str
    alert_type: AlertType
    severity: Severity
    current_stock: int
    threshold: int
    low_stock_threshold: int
    reorder_point: int
    category_name: str | None
    vendor_id: str | None
    vendor_name: str | None
    destination: str


@dataclass(frozen=True)
class AlertMessage:
    subject: str
    body: str


@runtime_checkable
class NotificationSink(Protocol):
    """Transport for rendered alerts."""

    def send(self, payload: AlertPayload, message: AlertMessage) -> None:
        ...


_HEADLINES = {
    AlertType.OUT_OF_STOCK: (
        "CRITICAL: {name} is OUT OF STOCK",
        'Your product "{name}" is completely out of stock. '
        "Immediate action required!",
    ),
    AlertType.LOW_STOCK: (
        "LOW STOCK ALERT: {name}",
        'Your product "{name}" is running low on stock ({stock} remaining). '
        "Consider restocking soon.",
    ),
    AlertType.REORDER_POINT: (
        "REORDER ALERT: {name}",
        'Your product "{name}" has reached the reorder point ({stock} remaining). '
        "Consider placing a reorder.",
    ),
}


def render_alert_message(payload: AlertPayload) -> AlertMessage:
    """Render the subject line and plain-text body for an alert."""
    subject_tpl, lead_tpl = _HEADLINES[payload.alert_type]
    subject = subject_tpl.format(name=payload.product_name)
    lead = lead_tpl.format(name=payload.product_name, stock=payload.current_stock)
    body = "\n".join([
        lead,
        "",
        "Product Details:",
        f"  Product: {payload.product_name}",
        f"  Current Stock: {payload.current_stock}",
        f"  Low Stock Threshold: {payload.low_stock_threshold}",
        f"  Reorder Point: {payload.reorder_point}",
        f"  Category: {payload.category_name or 'N/A'}",
        "",
        "Please log in to your vendor dashboard to manage your inventory.",
    ])
    return AlertMessage(subject=subject, body=body)


class LoggingNotificationSink:
    """Sink that records each alert as a structured log entry."""

    def send(self, payload: AlertPayload, message: AlertMessage) -> None:
        logger.warning(
            "stock_alert",
            extra={
                "product_id": payload.product_id,
                "alert_type": payload.alert_type.value,
                "severity": payload.severity.value,
                "current_stock": payload.current_stock,
                "destination": payload.destination,
                "subject": message.subject,
            },
        )
