"""Tests for the structured logging system (inventory_kernel/logging_config.py)."""

import json
import logging
from datetime import UTC, datetime
from io import StringIO
from uuid import uuid4

import pytest

from inventory_kernel.domain.dtos import MovementType
from inventory_kernel.exceptions import LockTimeoutError
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Start each test unconfigured; restore the suite's configuration after."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


def _parse_log(stream: StringIO) -> dict:
    return _parse_all_logs(stream)[0]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "inventory_kernel.test"
        assert "ts" in record

    def test_extra_fields_at_top_level(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "mutation_applied", extra={"new_stock": 7, "movement_type": MovementType.OUT}
        )

        record = _parse_log(stream)
        assert record["new_stock"] == 7
        assert record["movement_type"] == "OUT"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", product_id="SKU-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["product_id"] == "SKU-1"

    def test_kernel_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise LockTimeoutError("SKU-1", 0.5)
        except LockTimeoutError:
            get_logger("test").error("lock_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "LockTimeoutError"
        assert record["exc_code"] == "BUSY"
        assert record["exc_product_id"] == "SKU-1"
        assert record["exc_timeout_seconds"] == 0.5
        assert "traceback" in record

    def test_uuid_and_datetime_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        at = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        get_logger("test").info("with_values", extra={"movement_id": uid, "at": at})

        record = _parse_log(stream)
        assert record["movement_id"] == str(uid)
        assert record["at"] == "2024-01-01T12:00:00+00:00"

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second")
        logger.debug("third")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_set_and_get(self):
        LogContext.set(correlation_id="x", actor_id="user-1")
        assert LogContext.get_all() == {"correlation_id": "x", "actor_id": "user-1"}

    def test_none_values_ignored(self):
        LogContext.set(product_id="SKU-1")
        LogContext.set(product_id=None)
        assert LogContext.get_all() == {"product_id": "SKU-1"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(product_id="outer")
        with LogContext.bind(product_id="inner", actor_id="user-1"):
            assert LogContext.get_all() == {"actor_id": "user-1", "product_id": "inner"}
        assert LogContext.get_all() == {"product_id": "outer"}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(product_id="SKU-1"):
                raise RuntimeError("boom")
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError):
            LogContext.set(event_id="e-1")


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert logging.getLogger("inventory_kernel").handlers == [h1]

    def test_get_logger_returns_child(self):
        assert get_logger("services.ledger").name == "inventory_kernel.services.ledger"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "inventory_kernel.deep.nested.module"
