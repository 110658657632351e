"""
Hypothesis-based property tests for the stock ledger.

Properties:
- Balances never go negative under any sequence of movements
- Replaying the logged (type, magnitude, new_stock) triples reproduces the
  final balance
- The classifier is total and its severity tracks the stock level
- The kernel agrees with the pure fold and its log verifies
"""

from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from inventory_kernel.domain.classifier import classify, compute_reorder_point
from inventory_kernel.domain.dtos import AlertType, MovementType, Severity, StockSnapshot
from inventory_kernel.domain.ledger_math import (
    applied_quantity,
    apply_movement,
    replay_movement,
)

ACTOR = "fuzzer"


@st.composite
def movements(draw):
    """A (movement_type, quantity) pair that the ledger accepts."""
    movement_type = draw(st.sampled_from(list(MovementType)))
    floor = 0 if movement_type is MovementType.ADJUSTMENT else 1
    return movement_type, draw(st.integers(min_value=floor, max_value=500))


movement_sequences = st.lists(movements(), min_size=1, max_size=40)


class TestLedgerMathProperties:
    @given(opening=st.integers(min_value=0, max_value=1000), sequence=movement_sequences)
    def test_balance_never_negative(self, opening, sequence):
        balance = opening
        for movement_type, quantity in sequence:
            balance = apply_movement(balance, quantity, movement_type)
            assert balance >= 0

    @given(opening=st.integers(min_value=0, max_value=1000), sequence=movement_sequences)
    def test_replay_reproduces_balance(self, opening, sequence):
        logged = [(MovementType.IN, opening, opening)] if opening else []
        balance = opening
        for movement_type, quantity in sequence:
            new = apply_movement(balance, quantity, movement_type)
            logged.append((movement_type, applied_quantity(balance, new), new))
            balance = new

        replayed = 0
        for movement_type, magnitude, new_stock in logged:
            replayed = replay_movement(replayed, movement_type, magnitude, new_stock)
            assert replayed == new_stock

        assert replayed == balance

    @given(
        previous=st.integers(min_value=0, max_value=1000),
        movement=movements(),
    )
    def test_applied_quantity_never_exceeds_requested_for_out(self, previous, movement):
        movement_type, quantity = movement
        new = apply_movement(previous, quantity, movement_type)
        if movement_type is MovementType.OUT:
            assert applied_quantity(previous, new) == min(previous, quantity)
        elif movement_type is not MovementType.ADJUSTMENT:
            assert applied_quantity(previous, new) == quantity


class TestClassifierProperties:
    @given(
        total=st.integers(min_value=0, max_value=10_000),
        threshold=st.integers(min_value=0, max_value=1_000),
        multiplier=st.decimals(min_value=Decimal("1"), max_value=Decimal("5"), places=2),
    )
    def test_severity_tracks_stock_level(self, total, threshold, multiplier):
        reorder_point = compute_reorder_point(threshold, multiplier)
        assert reorder_point >= threshold

        alert = classify(StockSnapshot("SKU", total, threshold, reorder_point))

        if total == 0:
            assert alert.alert_type is AlertType.OUT_OF_STOCK
            assert alert.severity is Severity.CRITICAL
        elif total <= threshold:
            assert alert.alert_type is AlertType.LOW_STOCK
            assert alert.severity in (Severity.HIGH, Severity.MEDIUM)
        elif total <= reorder_point:
            assert alert.alert_type is AlertType.REORDER_POINT
            assert alert.severity is Severity.LOW
        else:
            assert alert is None


class TestKernelAgreesWithFold:
    @settings(
        max_examples=15,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(opening=st.integers(min_value=0, max_value=200), sequence=movement_sequences)
    def test_kernel_matches_pure_fold(self, kernel, stocked_product, opening, sequence):
        product_id = f"SKU-{uuid4().hex[:12]}"
        stocked_product(product_id, opening)

        expected = opening
        for movement_type, quantity in sequence:
            expected = apply_movement(expected, quantity, movement_type)
            result = kernel.apply_mutation(
                product_id, quantity, movement_type, "fuzz", ACTOR
            )
            assert result.new_stock == expected

        assert kernel.get_inventory(product_id).total_stock == expected
        assert kernel.verify_ledger(product_id) == expected
