"""
Tests for AlertDispatcher.

Verifies:
- Cooldown per (product_id, alert_type), and expiry after the window
- A different alert type for the same product is not suppressed
- Missing vendor contact skips delivery
- Sink failures are logged, reported FAILED and release the cooldown slot
- Executor delivery reports QUEUED
- Clearing keeps last_alert_sent
- Alerts follow the product's current stock, not the caller's snapshot
- The alert lock is per product
- Message rendering per alert type
"""

from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import select

from inventory_kernel.db.engine import session_scope
from inventory_kernel.domain.dtos import Alert, AlertType, Severity
from inventory_kernel.exceptions import DispatchFailureError
from inventory_kernel.models.alert_state import AlertState
from inventory_kernel.services.alert_dispatcher import AlertDispatcher, DispatchStatus
from inventory_kernel.services.notification import AlertPayload, render_alert_message

ACTOR = "user-1"


def low_stock(product_id="SKU-1", stock=3):
    return Alert(product_id, AlertType.LOW_STOCK, Severity.HIGH, stock, 10)


def states(session_factory, product_id):
    with session_scope(session_factory) as session:
        rows = session.execute(
            select(AlertState).where(AlertState.product_id == product_id)
        ).scalars().all()
        return {
            row.alert_type: (row.is_active, row.last_alert_sent) for row in rows
        }


class TestCooldown:
    def test_repeat_within_cooldown_suppressed(self, kernel, stocked_product, recording_sink):
        stocked_product("SKU-1", 5, threshold=10)
        assert recording_sink.alert_types("SKU-1") == ["LOW_STOCK"]

        kernel.apply_mutation("SKU-1", 1, "OUT", "sale", ACTOR)
        kernel.apply_mutation("SKU-1", 1, "OUT", "sale", ACTOR)

        assert recording_sink.alert_types("SKU-1") == ["LOW_STOCK"]

    def test_cooldown_expires(
        self, kernel, stocked_product, recording_sink, deterministic_clock
    ):
        stocked_product("SKU-1", 5, threshold=10)
        deterministic_clock.advance(3600)

        kernel.apply_mutation("SKU-1", 1, "OUT", "sale", ACTOR)

        assert recording_sink.alert_types("SKU-1") == ["LOW_STOCK", "LOW_STOCK"]

    def test_type_change_not_suppressed(self, kernel, stocked_product, recording_sink):
        stocked_product("SKU-1", 5, threshold=10)
        kernel.apply_mutation("SKU-1", 5, "OUT", "sale", ACTOR)
        assert recording_sink.alert_types("SKU-1") == ["LOW_STOCK", "OUT_OF_STOCK"]

    def test_suppression_is_logged(self, kernel, stocked_product, captured_logs):
        stocked_product("SKU-1", 5, threshold=10)
        result = kernel.dispatcher.notify(low_stock(stock=5))
        assert result.status is DispatchStatus.SUPPRESSED
        assert result.reason == "cooldown"
        assert any(r["message"] == "alert_suppressed" for r in captured_logs())


class TestAlertState:
    def test_one_active_type_per_product(self, kernel, stocked_product, session_factory):
        stocked_product("SKU-1", 5, threshold=10)
        kernel.apply_mutation("SKU-1", 5, "OUT", "sale", ACTOR)

        current = states(session_factory, "SKU-1")
        assert current["OUT_OF_STOCK"][0] is True
        assert current["LOW_STOCK"][0] is False

    def test_clear_keeps_last_sent(
        self, kernel, stocked_product, session_factory, recording_sink
    ):
        stocked_product("SKU-1", 5, threshold=10)
        sent_at = states(session_factory, "SKU-1")["LOW_STOCK"][1]

        kernel.apply_mutation("SKU-1", 50, "IN", "restock", ACTOR)

        active, last_sent = states(session_factory, "SKU-1")["LOW_STOCK"]
        assert active is False
        assert last_sent == sent_at
        # Back below threshold inside the window: still suppressed
        kernel.apply_mutation("SKU-1", 50, "OUT", "sale", ACTOR)
        assert recording_sink.alert_types("SKU-1") == ["LOW_STOCK"]


class TestDelivery:
    def test_missing_contact_skips(self, kernel, catalog, recording_sink):
        catalog.vendor("V-QUIET", contact_email=None)
        catalog.product("SKU-Q", vendor_id="V-QUIET")
        kernel.register_product("SKU-Q", performed_by=ACTOR, base_quantity=1)

        result = kernel.dispatcher.notify(low_stock("SKU-Q", 1))

        assert result.status is DispatchStatus.SKIPPED
        assert result.reason == "missing_contact"
        assert recording_sink.sent == []

    def test_sink_failure_releases_reservation(
        self, kernel, stocked_product, recording_sink, session_factory, captured_logs
    ):
        recording_sink.fail_with = DispatchFailureError("SKU-1", "LOW_STOCK", "smtp down")
        stocked_product("SKU-1", 5, threshold=10)

        assert states(session_factory, "SKU-1")["LOW_STOCK"][1] is None
        assert any(r["message"] == "alert_dispatch_failed" for r in captured_logs())

        recording_sink.fail_with = None
        result = kernel.dispatcher.notify(low_stock(stock=5))
        assert result.status is DispatchStatus.SENT
        assert recording_sink.alert_types("SKU-1") == ["LOW_STOCK"]

    def test_failure_does_not_fail_mutation(self, kernel, stocked_product, recording_sink):
        stocked_product("SKU-1", 20, threshold=10)
        recording_sink.fail_with = RuntimeError("provider timeout")

        result = kernel.apply_mutation("SKU-1", 18, "OUT", "sale", ACTOR)

        assert result.new_stock == 2
        assert recording_sink.attempts == 1

    def test_executor_delivery_is_queued(
        self, kernel, stocked_product, session_factory, recording_sink, deterministic_clock
    ):
        stocked_product("SKU-1", 3, threshold=10)
        deterministic_clock.advance(3600)
        with ThreadPoolExecutor(max_workers=1) as executor:
            dispatcher = AlertDispatcher(
                session_factory,
                recording_sink,
                clock=deterministic_clock,
                executor=executor,
            )
            result = dispatcher.notify(low_stock(stock=3))
        assert result.status is DispatchStatus.QUEUED
        assert result.delivered
        assert recording_sink.alert_types("SKU-1") == ["LOW_STOCK", "LOW_STOCK"]

    def test_payload_carries_catalog_context(self, kernel, stocked_product, recording_sink):
        stocked_product(
            "SKU-1", 0, threshold=10, name="Blue Mug", category_name="Kitchen"
        )
        payload = recording_sink.payloads()[0]
        assert payload.product_name == "Blue Mug"
        assert payload.category_name == "Kitchen"
        assert payload.vendor_id == "V-1"
        assert payload.destination == "v-1@vendors.test"
        assert payload.low_stock_threshold == 10
        assert payload.reorder_point == 15


class TestCurrentStockWins:
    def test_overtaken_alert_is_not_sent(
        self, kernel, stocked_product, recording_sink, session_factory, deterministic_clock
    ):
        stocked_product("SKU-1", 10, threshold=5)
        kernel.apply_mutation("SKU-1", 10, "OUT", "sale", ACTOR)
        kernel.apply_mutation("SKU-1", 50, "IN", "restock", ACTOR)
        deterministic_clock.advance(3600)

        result = kernel.dispatcher.notify(
            Alert("SKU-1", AlertType.OUT_OF_STOCK, Severity.CRITICAL, 0, 0)
        )

        assert result.status is DispatchStatus.SKIPPED
        assert result.reason == "resolved"
        assert recording_sink.alert_types("SKU-1") == ["OUT_OF_STOCK"]
        assert not any(active for active, _ in states(session_factory, "SKU-1").values())

    def test_alert_reclassified_from_current_stock(
        self, kernel, stocked_product, recording_sink, session_factory
    ):
        stocked_product("SKU-1", 0, threshold=10)
        recording_sink.sent.clear()

        result = kernel.dispatcher.notify(low_stock(stock=4))

        assert result.alert_type is AlertType.OUT_OF_STOCK
        assert result.status is DispatchStatus.SUPPRESSED
        current = states(session_factory, "SKU-1")
        assert current["OUT_OF_STOCK"][0] is True
        assert "LOW_STOCK" not in current

    def test_clear_keeps_alert_warranted_by_current_stock(
        self, kernel, stocked_product, session_factory
    ):
        stocked_product("SKU-1", 0, threshold=10)

        assert kernel.dispatcher.clear("SKU-1") == 0
        assert states(session_factory, "SKU-1")["OUT_OF_STOCK"][0] is True

    def test_other_products_not_blocked(self, kernel, stocked_product, deterministic_clock):
        stocked_product("SKU-1", 3, threshold=10)
        stocked_product("SKU-2", 3, threshold=10)
        deterministic_clock.advance(3600)

        with kernel.dispatcher.lock_registry.hold("SKU-1"):
            result = kernel.dispatcher.notify(low_stock("SKU-2", 3))

        assert result.status is DispatchStatus.SENT


class TestRenderAlertMessage:
    def _payload(self, alert_type, stock, category="Kitchen"):
        return AlertPayload(
            product_id="SKU-1",
            product_name="Blue Mug",
            alert_type=alert_type,
            severity=Severity.HIGH,
            current_stock=stock,
            threshold=10,
            low_stock_threshold=10,
            reorder_point=15,
            category_name=category,
            vendor_id="V-1",
            vendor_name="Acme",
            destination="ops@acme.test",
        )

    def test_subjects(self):
        assert (
            render_alert_message(self._payload(AlertType.OUT_OF_STOCK, 0)).subject
            == "CRITICAL: Blue Mug is OUT OF STOCK"
        )
        assert (
            render_alert_message(self._payload(AlertType.LOW_STOCK, 4)).subject
            == "LOW STOCK ALERT: Blue Mug"
        )
        assert (
            render_alert_message(self._payload(AlertType.REORDER_POINT, 14)).subject
            == "REORDER ALERT: Blue Mug"
        )

    def test_body_lists_details(self):
        body = render_alert_message(self._payload(AlertType.LOW_STOCK, 4, category=None)).body
        assert "(4 remaining)" in body
        assert "Current Stock: 4" in body
        assert "Reorder Point: 15" in body
        assert "Category: N/A" in body
