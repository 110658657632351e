"""
Pytest fixtures for the inventory kernel test suite.

Provides:
- A fresh database per test (SQLite file under tmp_path by default)
- A fully wired InventoryKernel with a deterministic clock and a recording
  notification sink
- Catalog seeding helpers for the read-only collaborator tables
- Structured log capture

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  the per-test SQLite file.  Tables are dropped after every test.
"""

import json
import logging
import os
import threading
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import timedelta
from io import StringIO

import pytest
from sqlalchemy import select

from inventory_config import InventoryPolicy
from inventory_kernel.db.engine import (
    drop_tables,
    get_session_factory,
    is_postgres,
    session_scope,
)
from inventory_kernel.db.immutability import unregister_immutability_listeners
from inventory_kernel.db.types import money_from_value
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from inventory_kernel.models.catalog import CatalogProduct, OrderLine, Vendor
from inventory_kernel.services.kernel import build_inventory_kernel
from inventory_kernel.services.notification import AlertMessage, AlertPayload

ACTOR = "user-1"
DEFAULT_VENDOR = "V-1"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, kernel):
            kernel.apply_mutation(...)
            logs = captured_logs()
            assert any(r["message"] == "mutation_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Notification sink
# =============================================================================


class RecordingSink:
    """NotificationSink that keeps every delivered alert in memory."""

    def __init__(self):
        self._lock = threading.Lock()
        self.sent: list[tuple[AlertPayload, AlertMessage]] = []
        self.fail_with: Exception | None = None
        self.attempts = 0
        self.on_send: Callable[[AlertPayload], None] | None = None

    def send(self, payload: AlertPayload, message: AlertMessage) -> None:
        with self._lock:
            self.attempts += 1
            if self.fail_with is not None:
                raise self.fail_with
            self.sent.append((payload, message))
        if self.on_send is not None:
            self.on_send(payload)

    def payloads(self) -> list[AlertPayload]:
        with self._lock:
            return [payload for payload, _ in self.sent]

    def alert_types(self, product_id: str | None = None) -> list[str]:
        return [
            p.alert_type.value
            for p in self.payloads()
            if product_id is None or p.product_id == product_id
        ]


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


# =============================================================================
# Database and kernel fixtures
# =============================================================================


def get_database_url(tmp_path) -> str:
    """DATABASE_URL if set, otherwise a fresh SQLite file for this test."""
    return os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'inventory.db'}"


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def policy() -> InventoryPolicy:
    """Default policy; override in a test module to change settings."""
    return InventoryPolicy()


@pytest.fixture
def inline_delivery() -> bool:
    """
    Deliver alerts on the mutating thread so assertions can follow the call.

    Override to return False in modules that exercise the dispatch pool.
    """
    return True


@pytest.fixture
def make_kernel(tmp_path, recording_sink, deterministic_clock, inline_delivery):
    """
    Factory for kernels bound to this test's database.

    Only one kernel should be live at a time: the engine is process-global.
    """
    url = get_database_url(tmp_path)
    built = []

    def _make(policy: InventoryPolicy | None = None, sink=None):
        policy = policy or InventoryPolicy()
        if inline_delivery:
            policy = replace(policy, dispatch_workers=0)
        kernel = build_inventory_kernel(
            url,
            policy=policy,
            sink=sink if sink is not None else recording_sink,
            clock=deterministic_clock,
        )
        built.append(kernel)
        return kernel

    yield _make

    if built and is_postgres():
        drop_tables()
    for kernel in built:
        kernel.close()
    unregister_immutability_listeners()


@pytest.fixture
def kernel(make_kernel, policy):
    return make_kernel(policy)


@pytest.fixture
def session_factory(kernel):
    return get_session_factory()


# =============================================================================
# Catalog seeding
# =============================================================================


class CatalogSeeder:
    """Writes rows into the catalog/order mirror tables, one transaction each."""

    def __init__(self, factory, clock: DeterministicClock):
        self._factory = factory
        self._clock = clock

    def vendor(
        self,
        vendor_id: str = DEFAULT_VENDOR,
        business_name: str = "Acme Supplies",
        contact_email: str | None = "ops@acme.test",
    ) -> None:
        with session_scope(self._factory) as session:
            session.add(
                Vendor(
                    vendor_id=vendor_id,
                    business_name=business_name,
                    contact_email=contact_email,
                )
            )

    def _ensure_vendor(self, vendor_id: str) -> None:
        with session_scope(self._factory) as session:
            exists = session.execute(
                select(Vendor.id).where(Vendor.vendor_id == vendor_id)
            ).scalar_one_or_none()
        if exists is None:
            self.vendor(vendor_id, f"Vendor {vendor_id}", f"{vendor_id.lower()}@vendors.test")

    def product(
        self,
        product_id: str,
        name: str | None = None,
        vendor_id: str = DEFAULT_VENDOR,
        category_id: str | None = "CAT-1",
        category_name: str | None = "Widgets",
        unit_price: str = "10.00",
        status: str = "APPROVED",
        is_active: bool = True,
        listed_days_ago: int = 0,
    ) -> None:
        self._ensure_vendor(vendor_id)
        with session_scope(self._factory) as session:
            session.add(
                CatalogProduct(
                    product_id=product_id,
                    name=name or f"Product {product_id}",
                    vendor_id=vendor_id,
                    category_id=category_id,
                    category_name=category_name,
                    unit_price=money_from_value(unit_price),
                    status=status,
                    is_active=is_active,
                    listed_at=self._clock.now() - timedelta(days=listed_days_ago),
                )
            )

    def order_line(
        self,
        order_id: str,
        product_id: str,
        quantity: int,
        unit_price: str = "10.00",
        order_status: str = "DELIVERED",
    ) -> None:
        with session_scope(self._factory) as session:
            session.add(
                OrderLine(
                    order_id=order_id,
                    product_id=product_id,
                    quantity=quantity,
                    unit_price=money_from_value(unit_price),
                    order_status=order_status,
                )
            )


@pytest.fixture
def catalog(session_factory, deterministic_clock) -> CatalogSeeder:
    return CatalogSeeder(session_factory, deterministic_clock)


@pytest.fixture
def stocked_product(kernel, catalog):
    """
    Seed a catalog product and register its stock record.

    Usage::

        stocked_product("SKU-1", 20, threshold=10)
    """

    def _create(
        product_id: str,
        quantity: int = 0,
        threshold: int | None = 10,
        variants: Mapping[str, int] | None = None,
        **catalog_fields,
    ):
        catalog.product(product_id, **catalog_fields)
        return kernel.register_product(
            product_id,
            performed_by=ACTOR,
            base_quantity=quantity,
            variants=variants,
            low_stock_threshold=threshold,
        )

    return _create
