"""
InventorySelector -- current stock views and the active alert listing.

Responsibility:
    Answers "how much stock does this product have, and is it healthy?" for
    one product, and "which products need attention?" across the catalog.
    Alerts in the listing are classified from the current balances on every
    call; the dispatcher's persisted state only contributes
    ``last_alert_sent``.

Architecture position:
    Kernel > Selectors -- read-only.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from types import MappingProxyType

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.classifier import (
    classify,
    is_low_stock,
    is_out_of_stock,
    needs_reorder,
)
from inventory_kernel.domain.dtos import (
    Alert,
    AlertType,
    InventorySnapshot,
    Severity,
    StockSnapshot,
    VariantBalanceView,
)
from inventory_kernel.exceptions import InvalidInputError, ProductNotFoundError
from inventory_kernel.models.alert_state import AlertState
from inventory_kernel.models.catalog import CatalogProduct
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class ListedAlert:
    """An alert with the catalog context needed to display it."""

    alert: Alert
    product_name: str
    vendor_id: str | None
    category_name: str | None


@dataclass(frozen=True)
class AlertListing:
    """
    Active alerts, most severe first, with per-severity counts.

    ``counts`` always holds every Severity, zero when absent.
    """

    alerts: tuple[ListedAlert, ...]
    counts: Mapping[Severity, int]

    @property
    def total(self) -> int:
        return len(self.alerts)

    @property
    def critical(self) -> int:
        return self.counts[Severity.CRITICAL]

    @property
    def high(self) -> int:
        return self.counts[Severity.HIGH]

    @property
    def medium(self) -> int:
        return self.counts[Severity.MEDIUM]

    @property
    def low(self) -> int:
        return self.counts[Severity.LOW]


def _parse_filter(enum_cls, value):
    if value is None or value == "":
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        raise InvalidInputError(f"Unknown {enum_cls.__name__}: {value!r}") from None


def build_inventory_snapshot(
    record: StockRecord, product: CatalogProduct | None
) -> InventorySnapshot:
    total = record.total_stock
    return InventorySnapshot(
        product_id=record.product_id,
        product_name=product.name if product is not None else record.product_id,
        base_quantity=record.base_quantity,
        variants=tuple(
            VariantBalanceView(variant_id=v.variant_id, quantity=v.quantity)
            for v in record.variants
        ),
        total_stock=total,
        low_stock_threshold=record.low_stock_threshold,
        reorder_point=record.reorder_point,
        is_low_stock=is_low_stock(total, record.low_stock_threshold),
        is_out_of_stock=is_out_of_stock(total),
        needs_reorder=needs_reorder(total, record.reorder_point),
        vendor_id=product.vendor_id if product is not None else None,
        category_name=product.category_name if product is not None else None,
    )


class InventorySelector(BaseSelector[StockRecord]):
    """Read-only inventory and alert queries."""

    def __init__(self, session: Session, reportable_statuses: tuple[str, ...] = ("APPROVED",)):
        super().__init__(session)
        self._statuses = reportable_statuses

    def get_inventory(self, product_id: str) -> InventorySnapshot:
        """
        Current stock of one product.

        Raises:
            ProductNotFoundError: No StockRecord for ``product_id``.
        """
        row = self.session.execute(
            select(StockRecord, CatalogProduct)
            .join(
                CatalogProduct,
                CatalogProduct.product_id == StockRecord.product_id,
                isouter=True,
            )
            .where(StockRecord.product_id == product_id)
        ).one_or_none()
        if row is None:
            raise ProductNotFoundError(product_id)
        record, product = row
        return build_inventory_snapshot(record, product)

    def list_alerts(
        self,
        vendor_id: str | None = None,
        severity: Severity | str | None = None,
        alert_type: AlertType | str | None = None,
    ) -> AlertListing:
        """
        Classify every in-scope product and list the resulting alerts.

        Filters by vendor, severity and alert type; sorts CRITICAL > HIGH >
        MEDIUM > LOW, then by registration order.
        """
        severity_filter = _parse_filter(Severity, severity)
        type_filter = _parse_filter(AlertType, alert_type)

        last_sent = {
            (state.product_id, state.alert_type): state.last_alert_sent
            for state in self.session.execute(select(AlertState)).scalars()
        }

        listed: list[ListedAlert] = []
        for record, product in self.scoped_products(self._statuses, vendor_id):
            alert = classify(StockSnapshot.from_model(record))
            if alert is None:
                continue
            if severity_filter is not None and alert.severity is not severity_filter:
                continue
            if type_filter is not None and alert.alert_type is not type_filter:
                continue
            sent = last_sent.get((alert.product_id, alert.alert_type.value))
            if sent is not None:
                alert = replace(alert, last_alert_sent=sent)
            listed.append(
                ListedAlert(
                    alert=alert,
                    product_name=product.name,
                    vendor_id=product.vendor_id,
                    category_name=product.category_name,
                )
            )

        # sorted() is stable, so registration order survives within a tier
        listed = sorted(listed, key=lambda item: -item.alert.severity.rank)
        counts = {s: 0 for s in Severity}
        for item in listed:
            counts[item.alert.severity] += 1

        return AlertListing(alerts=tuple(listed), counts=MappingProxyType(counts))
