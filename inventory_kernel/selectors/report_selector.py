"""
ReportSelector -- point-in-time inventory report.

Responsibility:
    Aggregates stock counts, stock value, top sellers, slow movers and a
    category breakdown over the reportable catalog.  Computed on demand and
    never persisted.

Architecture position:
    Kernel > Selectors -- read-only.

Invariants enforced:
    - Money math is Decimal end to end (unit_price is Numeric(38, 9)).
    - Flag counts use the classifier predicates, so a product with zero
      stock counts as out of stock, low stock and reorder-needed at once.
    - Rankings are stable: equal keys keep registration order.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.db.types import money_from_value
from inventory_kernel.domain.classifier import is_low_stock, is_out_of_stock, needs_reorder
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.models.catalog import OrderLine
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.selectors.base import BaseSelector

UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class TopSeller:
    product_id: str
    product_name: str
    quantity_sold: int
    revenue: Decimal


@dataclass(frozen=True)
class SlowMover:
    product_id: str
    product_name: str
    current_stock: int
    days_in_stock: int


@dataclass(frozen=True)
class CategorySummary:
    category_id: str | None
    category_name: str
    product_count: int
    total_value: Decimal


@dataclass(frozen=True)
class InventoryReport:
    total_products: int
    total_value: Decimal
    low_stock_products: int
    out_of_stock_products: int
    reorder_needed: int
    top_selling_products: tuple[TopSeller, ...]
    slow_moving_products: tuple[SlowMover, ...]
    category_breakdown: tuple[CategorySummary, ...]
    vendor_id: str | None = None


class ReportSelector(BaseSelector[StockRecord]):
    """Builds InventoryReport from the stock, catalog and order tables."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        reportable_statuses: tuple[str, ...] = ("APPROVED",),
        sales_order_statuses: tuple[str, ...] = ("CONFIRMED", "SHIPPED", "DELIVERED"),
        top_n: int = 10,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._reportable_statuses = reportable_statuses
        self._sales_order_statuses = sales_order_statuses
        self._top_n = top_n

    def build_report(self, vendor_id: str | None = None) -> InventoryReport:
        products = self.scoped_products(self._reportable_statuses, vendor_id)
        sales = self._sales_by_product([record.product_id for record, _ in products])
        now = self._clock.now()

        total_value = Decimal("0")
        low = out = reorder = 0
        top_sellers: list[TopSeller] = []
        slow_movers: list[SlowMover] = []
        categories: dict[str | None, dict] = defaultdict(
            lambda: {"name": UNCATEGORIZED, "count": 0, "value": Decimal("0")}
        )

        for record, product in products:
            stock = record.total_stock
            value = stock * money_from_value(product.unit_price)
            total_value += value

            if is_low_stock(stock, record.low_stock_threshold):
                low += 1
            if is_out_of_stock(stock):
                out += 1
            if needs_reorder(stock, record.reorder_point):
                reorder += 1

            quantity_sold, revenue = sales.get(record.product_id, (0, Decimal("0")))
            top_sellers.append(
                TopSeller(
                    product_id=record.product_id,
                    product_name=product.name,
                    quantity_sold=quantity_sold,
                    revenue=revenue,
                )
            )

            if stock > 0:
                slow_movers.append(
                    SlowMover(
                        product_id=record.product_id,
                        product_name=product.name,
                        current_stock=stock,
                        days_in_stock=(now - product.listed_at).days,
                    )
                )

            bucket = categories[product.category_id]
            if product.category_id is not None and product.category_name:
                bucket["name"] = product.category_name
            bucket["count"] += 1
            bucket["value"] += value

        top_sellers.sort(key=lambda t: -t.quantity_sold)
        slow_movers.sort(key=lambda s: -s.days_in_stock)

        return InventoryReport(
            total_products=len(products),
            total_value=total_value,
            low_stock_products=low,
            out_of_stock_products=out,
            reorder_needed=reorder,
            top_selling_products=tuple(top_sellers[: self._top_n]),
            slow_moving_products=tuple(slow_movers[: self._top_n]),
            category_breakdown=tuple(
                CategorySummary(
                    category_id=category_id,
                    category_name=data["name"],
                    product_count=data["count"],
                    total_value=data["value"],
                )
                for category_id, data in categories.items()
            ),
            vendor_id=vendor_id,
        )

    def _sales_by_product(self, product_ids: list[str]) -> dict[str, tuple[int, Decimal]]:
        if not product_ids:
            return {}
        lines = self.session.execute(
            select(OrderLine.product_id, OrderLine.quantity, OrderLine.unit_price).where(
                OrderLine.product_id.in_(product_ids),
                OrderLine.order_status.in_(list(self._sales_order_statuses)),
            )
        ).all()
        # SQLite aggregates Numeric as float; Decimal sums stay in Python
        totals: dict[str, tuple[int, Decimal]] = {}
        for product_id, quantity, unit_price in lines:
            sold, revenue = totals.get(product_id, (0, Decimal("0")))
            totals[product_id] = (
                sold + quantity,
                revenue + quantity * money_from_value(unit_price),
            )
        return totals
