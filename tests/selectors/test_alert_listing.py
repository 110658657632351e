"""
Tests for the active alert listing.

Verifies:
- Alerts are classified from current balances and sorted by severity
- Per-severity counts always include every tier
- Vendor, severity and alert-type filters (enum or string)
- last_alert_sent comes from the dispatcher state
"""

import pytest

from inventory_kernel.domain.dtos import AlertType, Severity
from inventory_kernel.exceptions import InvalidInputError


@pytest.fixture
def alerting_catalog(stocked_product):
    stocked_product("SKU-REORDER", 14)
    stocked_product("SKU-MEDIUM", 7, vendor_id="V-2")
    stocked_product("SKU-OK", 100)
    stocked_product("SKU-OUT", 0)
    stocked_product("SKU-HIGH", 4)
    stocked_product("SKU-PENDING", 0, status="PENDING")


class TestListAlerts:
    def test_sorted_most_severe_first(self, kernel, alerting_catalog):
        listing = kernel.list_alerts()

        assert [item.alert.product_id for item in listing.alerts] == [
            "SKU-OUT",
            "SKU-HIGH",
            "SKU-MEDIUM",
            "SKU-REORDER",
        ]
        assert [item.alert.severity for item in listing.alerts] == [
            Severity.CRITICAL,
            Severity.HIGH,
            Severity.MEDIUM,
            Severity.LOW,
        ]

    def test_counts(self, kernel, alerting_catalog):
        listing = kernel.list_alerts()
        assert listing.total == 4
        assert (listing.critical, listing.high, listing.medium, listing.low) == (1, 1, 1, 1)

    def test_counts_include_empty_tiers(self, kernel, alerting_catalog):
        listing = kernel.list_alerts(severity=Severity.HIGH)
        assert listing.total == 1
        assert listing.counts[Severity.CRITICAL] == 0
        assert set(listing.counts) == set(Severity)

    def test_catalog_context(self, kernel, alerting_catalog):
        item = kernel.list_alerts(vendor_id="V-2").alerts[0]
        assert item.alert.product_id == "SKU-MEDIUM"
        assert item.product_name == "Product SKU-MEDIUM"
        assert item.vendor_id == "V-2"
        assert item.category_name == "Widgets"

    def test_empty_when_everything_healthy(self, kernel, stocked_product):
        stocked_product("SKU-OK", 100)
        listing = kernel.list_alerts()
        assert listing.alerts == ()
        assert listing.total == 0


class TestFilters:
    def test_severity_as_string(self, kernel, alerting_catalog):
        listing = kernel.list_alerts(severity="high")
        assert [i.alert.product_id for i in listing.alerts] == ["SKU-HIGH"]

    def test_alert_type_as_enum(self, kernel, alerting_catalog):
        listing = kernel.list_alerts(alert_type=AlertType.LOW_STOCK)
        assert [i.alert.product_id for i in listing.alerts] == ["SKU-HIGH", "SKU-MEDIUM"]

    def test_combined_filters(self, kernel, alerting_catalog):
        listing = kernel.list_alerts(vendor_id="V-1", alert_type="LOW_STOCK")
        assert [i.alert.product_id for i in listing.alerts] == ["SKU-HIGH"]

    @pytest.mark.parametrize(
        "kwargs",
        [{"severity": "URGENT"}, {"alert_type": "OVERSTOCK"}],
    )
    def test_unknown_filter_value(self, kernel, kwargs):
        with pytest.raises(InvalidInputError):
            kernel.list_alerts(**kwargs)


class TestLastAlertSent:
    def test_attached_from_dispatch_state(self, kernel, alerting_catalog, deterministic_clock):
        registered_at = deterministic_clock.now()
        deterministic_clock.advance(60)

        listing = kernel.list_alerts()

        for item in listing.alerts:
            assert item.alert.last_alert_sent == registered_at

    def test_none_when_never_delivered(self, kernel, stocked_product, recording_sink):
        recording_sink.fail_with = RuntimeError("smtp down")
        stocked_product("SKU-OUT", 0)

        item = kernel.list_alerts().alerts[0]

        assert item.alert.alert_type is AlertType.OUT_OF_STOCK
        assert item.alert.last_alert_sent is None
