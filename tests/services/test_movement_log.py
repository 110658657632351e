"""
Tests for MovementLog replay and verification.

Verifies:
- replay() rebuilds every bucket from zero
- verify() detects a balance that drifted from its log
"""

import pytest
from sqlalchemy import select

from inventory_kernel.db.engine import session_scope
from inventory_kernel.domain.dtos import BASE_BUCKET
from inventory_kernel.exceptions import LedgerInconsistencyError, ProductNotFoundError
from inventory_kernel.models.stock_record import StockRecord
from inventory_kernel.services.movement_log import MovementLog

ACTOR = "user-1"


class TestReplay:
    def test_replay_matches_buckets(self, kernel, stocked_product, session_factory):
        stocked_product("SKU-1", 4, variants={"S": 2})
        kernel.apply_mutation("SKU-1", 3, "OUT", "sale", ACTOR, variant_id="S")
        kernel.apply_mutation("SKU-1", 7, "ADJUSTMENT", "count", ACTOR)

        with session_scope(session_factory) as session:
            balances = MovementLog(session).replay("SKU-1")

        assert balances == {BASE_BUCKET: 7, "S": 0}

    def test_movements_oldest_first(self, kernel, stocked_product, session_factory):
        stocked_product("SKU-1", 4)
        kernel.apply_mutation("SKU-1", 1, "IN", "restock", ACTOR)
        with session_scope(session_factory) as session:
            sequences = [m.sequence for m in MovementLog(session).movements("SKU-1")]
        assert sequences == [1, 2]


class TestVerify:
    def test_drifted_balance_detected(
        self, kernel, stocked_product, session_factory, captured_logs
    ):
        stocked_product("SKU-1", 10)
        with session_scope(session_factory) as session:
            record = session.execute(
                select(StockRecord).where(StockRecord.product_id == "SKU-1")
            ).scalar_one()
            record.base_quantity = 99

        with pytest.raises(LedgerInconsistencyError) as exc_info:
            kernel.verify_ledger("SKU-1")

        assert exc_info.value.expected == 99
        assert exc_info.value.replayed == 10
        assert exc_info.value.code == "LEDGER_INCONSISTENT"
        assert any(r["message"] == "ledger_inconsistency_detected" for r in captured_logs())

    def test_unknown_product(self, kernel):
        with pytest.raises(ProductNotFoundError):
            kernel.verify_ledger("NOPE")
