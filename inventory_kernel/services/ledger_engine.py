"""
LedgerEngine -- the single write path for stock balances.

Responsibility:
    Validates and applies stock mutations.  For every accepted request it
    updates the target bucket and appends a Movement in one transaction,
    commits under the per-product lock, and then emits a StockChanged event
    so the alert pipeline can react.  Also registers new products and
    changes thresholds, the two other operations that alter a StockRecord.

Architecture position:
    Kernel > Services -- imperative shell, owns transaction boundaries.
    Collaborators: KeyedLockRegistry (serialization), MovementLog (audit),
    SequenceService (registration order), InventoryPolicy (thresholds).

Invariants enforced:
    - Non-negative stock: OUT clamps each bucket at zero and records the
      amount actually removed.
    - Ledger consistency: the balance write and the movement append are
      flushed together and commit or roll back as one unit.
    - Ordering of effects: (1) balance, (2) movement, (3) commit, (4) lock
      release, (5) StockChanged.  A listener failure in (5) is logged and
      does not change the result of the mutation.

Failure modes:
    - InvalidInputError subclasses for malformed requests (raised before
      any lock is taken).
    - ProductNotFoundError / VariantNotFoundError for unknown targets.
    - LockTimeoutError (BUSY) when the product lock is contended too long.
    - OptimisticLockError (CONFLICT) when another process committed the
      same StockRecord first.
    - SQLAlchemyError propagates verbatim after rollback.

Audit relevance:
    Every committed change produces exactly one Movement with the actor,
    reason and optional business reference.  ``mutation_applied`` is logged
    at INFO with the before/after bucket levels.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from inventory_config import InventoryPolicy
from inventory_kernel.db.engine import session_scope
from inventory_kernel.domain.classifier import classify, compute_reorder_point
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    BatchItemResult,
    MovementType,
    MutationRequest,
    MutationResult,
    StockChanged,
    StockSnapshot,
    ThresholdChange,
)
from inventory_kernel.domain.ledger_math import (
    apply_movement,
    parse_movement_type,
    parse_quantity,
    parse_reference_type,
    parse_threshold,
)
from inventory_kernel.exceptions import (
    InventoryKernelError,
    InvalidInputError,
    MissingActorError,
    MissingReasonError,
    OptimisticLockError,
    ProductAlreadyRegisteredError,
    ProductNotFoundError,
    ProductNotInCatalogError,
    VariantNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.catalog import CatalogProduct
from inventory_kernel.models.stock_record import StockRecord, VariantBalance
from inventory_kernel.services.lock_registry import KeyedLockRegistry
from inventory_kernel.services.movement_log import MovementLog
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.ledger_engine")

StockChangedListener = Callable[[StockChanged], None]

OPENING_BALANCE_REASON = "Opening balance"


def _require_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


class LedgerEngine:
    """
    Applies stock mutations under per-product locks.

    Contract:
        Each public write runs in its own transaction obtained from
        ``session_factory`` and commits before returning.  Listeners are
        called after the commit, outside the product lock, on the calling
        thread.

    Non-goals:
        - Does NOT deliver alerts; AlertMonitor subscribes to StockChanged.
        - Does NOT authenticate ``performed_by``; it is recorded as given.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        policy: InventoryPolicy | None = None,
        clock: Clock | None = None,
        lock_registry: KeyedLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._policy = policy or InventoryPolicy()
        self._clock = clock or SystemClock()
        self._locks = lock_registry or KeyedLockRegistry(
            self._policy.lock_timeout_seconds
        )
        self._listeners: list[StockChangedListener] = []

    @property
    def lock_registry(self) -> KeyedLockRegistry:
        return self._locks

    def add_listener(self, listener: StockChangedListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StockChangedListener) -> None:
        self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def apply_mutation(
        self,
        product_id: str,
        quantity: Any,
        movement_type: Any,
        reason: str,
        performed_by: str,
        reference_id: str | None = None,
        reference_type: Any = None,
        variant_id: str | None = None,
        extension: Mapping[str, Any] | None = None,
    ) -> MutationResult:
        """
        Apply one stock mutation.

        Preconditions:
            - ``quantity`` is a non-negative int; zero only for ADJUSTMENT.
            - ``reason`` and ``performed_by`` are non-empty.

        Postconditions:
            - The target bucket holds the new level and exactly one Movement
              records the change, both committed.
            - ``result.new_stock - result.previous_stock`` is the signed
              change of the target bucket.
        """
        m_type = parse_movement_type(movement_type)
        qty = parse_quantity(quantity, m_type)
        reason_text = _require_text(reason)
        if reason_text is None:
            raise MissingReasonError(product_id)
        actor = _require_text(performed_by)
        if actor is None:
            raise MissingActorError(product_id)
        ref_type = parse_reference_type(reference_type)

        with LogContext.bind(product_id=product_id, actor_id=actor):
            with self._locks.hold(product_id):
                try:
                    with session_scope(self._session_factory) as session:
                        record = self._lock_record(session, product_id)
                        if variant_id is not None and record.find_variant(variant_id) is None:
                            raise VariantNotFoundError(product_id, variant_id)

                        previous = record.bucket_quantity(variant_id)
                        new = apply_movement(previous, qty, m_type)
                        self._write_bucket(record, variant_id, new)
                        record.updated_by = actor

                        occurred_at = self._clock.now()
                        movement = MovementLog(session).append(
                            record,
                            variant_id=variant_id,
                            movement_type=m_type,
                            previous_stock=previous,
                            new_stock=new,
                            reason=reason_text,
                            performed_by=actor,
                            occurred_at=occurred_at,
                            reference_id=reference_id,
                            reference_type=ref_type,
                            extension=extension,
                        )
                        snapshot = StockSnapshot.from_model(record)
                except StaleDataError:
                    logger.warning(
                        "mutation_version_conflict", extra={"product_id": product_id}
                    )
                    raise OptimisticLockError(product_id) from None

            logger.info(
                "mutation_applied",
                extra={
                    "product_id": product_id,
                    "variant_id": variant_id,
                    "movement_type": m_type.value,
                    "quantity": movement.quantity,
                    "previous_stock": previous,
                    "new_stock": new,
                    "total_stock": snapshot.total_stock,
                    "movement_id": str(movement.id),
                },
            )

            self._emit(
                StockChanged(
                    product_id=product_id,
                    snapshot=snapshot,
                    performed_by=actor,
                    occurred_at=occurred_at,
                    movement_id=movement.id,
                    movement_type=m_type,
                )
            )

        return MutationResult(
            product_id=product_id,
            previous_stock=previous,
            new_stock=new,
            movement_type=m_type,
            quantity=movement.quantity,
            movement_id=movement.id,
            total_stock=snapshot.total_stock,
            variant_id=variant_id,
        )

    def apply_mutation_batch(
        self,
        requests: Iterable[MutationRequest],
        performed_by: str,
    ) -> list[BatchItemResult]:
        """
        Apply several mutations, each in its own transaction.

        A failing item is reported with its error code and message and does
        not affect the others.  Results are in request order.
        """
        results: list[BatchItemResult] = []
        for request in requests:
            try:
                result = self.apply_mutation(
                    product_id=request.product_id,
                    quantity=request.quantity,
                    movement_type=request.movement_type,
                    reason=request.reason,
                    performed_by=performed_by,
                    reference_id=request.reference_id,
                    reference_type=request.reference_type,
                    variant_id=request.variant_id,
                    extension=request.extension,
                )
            except InventoryKernelError as exc:
                logger.warning(
                    "batch_item_failed",
                    extra={"product_id": request.product_id, "error_code": exc.code},
                )
                results.append(
                    BatchItemResult(
                        product_id=request.product_id,
                        success=False,
                        error_code=exc.code,
                        error=str(exc),
                    )
                )
            except SQLAlchemyError as exc:
                logger.error(
                    "batch_item_failed",
                    extra={"product_id": request.product_id, "error_code": "PERSISTENCE_ERROR"},
                    exc_info=True,
                )
                results.append(
                    BatchItemResult(
                        product_id=request.product_id,
                        success=False,
                        error_code="PERSISTENCE_ERROR",
                        error=str(exc),
                    )
                )
            else:
                results.append(
                    BatchItemResult(
                        product_id=request.product_id, success=True, result=result
                    )
                )

        logger.info(
            "mutation_batch_completed",
            extra={
                "item_count": len(results),
                "failed_count": sum(1 for r in results if not r.success),
            },
        )
        return results

    # ------------------------------------------------------------------
    # Registration and thresholds
    # ------------------------------------------------------------------

    def register_product(
        self,
        product_id: str,
        performed_by: str,
        base_quantity: int = 0,
        variants: Mapping[str, int] | None = None,
        low_stock_threshold: int | None = None,
    ) -> StockSnapshot:
        """
        Create the StockRecord for a catalog product.

        Opening balances are recorded as IN movements with reason
        "Opening balance", so replaying the log from zero reproduces them.
        When ``low_stock_threshold`` is None the policy default for the
        product's vendor applies; an explicit 0 is kept.

        Raises:
            ProductNotInCatalogError: No catalog entry for ``product_id``.
            ProductAlreadyRegisteredError: A StockRecord already exists.
        """
        if _require_text(product_id) is None:
            raise InvalidInputError("product_id is required")
        actor = _require_text(performed_by)
        if actor is None:
            raise MissingActorError(product_id)
        opening_base = parse_quantity(base_quantity, MovementType.ADJUSTMENT)
        opening_variants = {
            variant_id: parse_quantity(qty, MovementType.ADJUSTMENT)
            for variant_id, qty in (variants or {}).items()
        }
        threshold = (
            parse_threshold(low_stock_threshold)
            if low_stock_threshold is not None
            else None
        )

        with LogContext.bind(product_id=product_id, actor_id=actor):
            with self._locks.hold(product_id):
                try:
                    with session_scope(self._session_factory) as session:
                        catalog = session.execute(
                            select(CatalogProduct).where(
                                CatalogProduct.product_id == product_id
                            )
                        ).scalar_one_or_none()
                        if catalog is None:
                            raise ProductNotInCatalogError(product_id)

                        existing = session.execute(
                            select(StockRecord.id).where(
                                StockRecord.product_id == product_id
                            )
                        ).scalar_one_or_none()
                        if existing is not None:
                            raise ProductAlreadyRegisteredError(product_id)

                        if threshold is None:
                            threshold = self._policy.threshold_for(catalog.vendor_id)

                        record = StockRecord(
                            product_id=product_id,
                            base_quantity=0,
                            low_stock_threshold=threshold,
                            reorder_point=compute_reorder_point(
                                threshold, self._policy.reorder_multiplier
                            ),
                            movement_count=0,
                            registration_seq=SequenceService(session).next_value(
                                SequenceService.STOCK_RECORD
                            ),
                            created_by=actor,
                        )
                        record.variants = [
                            VariantBalance(variant_id=variant_id, quantity=0, position=i)
                            for i, variant_id in enumerate(opening_variants)
                        ]
                        session.add(record)
                        session.flush()

                        occurred_at = self._clock.now()
                        movement_log = MovementLog(session)
                        openings = [(None, opening_base)] + list(opening_variants.items())
                        for variant_id, qty in openings:
                            if qty == 0:
                                continue
                            self._write_bucket(record, variant_id, qty)
                            movement_log.append(
                                record,
                                variant_id=variant_id,
                                movement_type=MovementType.IN,
                                previous_stock=0,
                                new_stock=qty,
                                reason=OPENING_BALANCE_REASON,
                                performed_by=actor,
                                occurred_at=occurred_at,
                            )
                        snapshot = StockSnapshot.from_model(record)
                except IntegrityError:
                    raise ProductAlreadyRegisteredError(product_id) from None

            logger.info(
                "product_registered",
                extra={
                    "product_id": product_id,
                    "total_stock": snapshot.total_stock,
                    "variant_count": len(opening_variants),
                    "low_stock_threshold": snapshot.low_stock_threshold,
                    "reorder_point": snapshot.reorder_point,
                },
            )

            self._emit(
                StockChanged(
                    product_id=product_id,
                    snapshot=snapshot,
                    performed_by=actor,
                    occurred_at=occurred_at,
                )
            )
        return snapshot

    def set_threshold(
        self,
        product_id: str,
        low_stock_threshold: int,
        performed_by: str,
    ) -> ThresholdChange:
        """
        Change a product's low-stock threshold and recompute its reorder point.

        Listeners receive a StockChanged with ``threshold_changed=True`` so
        alerts are re-evaluated against the new levels immediately.
        """
        threshold = parse_threshold(low_stock_threshold)
        actor = _require_text(performed_by)
        if actor is None:
            raise MissingActorError(product_id)

        with LogContext.bind(product_id=product_id, actor_id=actor):
            with self._locks.hold(product_id):
                try:
                    with session_scope(self._session_factory) as session:
                        record = self._lock_record(session, product_id)
                        previous_threshold = record.low_stock_threshold
                        record.low_stock_threshold = threshold
                        record.reorder_point = compute_reorder_point(
                            threshold, self._policy.reorder_multiplier
                        )
                        record.updated_by = actor
                        session.flush()
                        snapshot = StockSnapshot.from_model(record)
                except StaleDataError:
                    raise OptimisticLockError(product_id) from None

            logger.info(
                "threshold_changed",
                extra={
                    "product_id": product_id,
                    "previous_threshold": previous_threshold,
                    "low_stock_threshold": threshold,
                    "reorder_point": snapshot.reorder_point,
                },
            )

            self._emit(
                StockChanged(
                    product_id=product_id,
                    snapshot=snapshot,
                    performed_by=actor,
                    occurred_at=self._clock.now(),
                    threshold_changed=True,
                )
            )

        return ThresholdChange(
            product_id=product_id,
            previous_threshold=previous_threshold,
            low_stock_threshold=threshold,
            reorder_point=snapshot.reorder_point,
            alert=classify(snapshot),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_record(self, session: Session, product_id: str) -> StockRecord:
        record = session.execute(
            select(StockRecord)
            .where(StockRecord.product_id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            raise ProductNotFoundError(product_id)
        return record

    @staticmethod
    def _write_bucket(record: StockRecord, variant_id: str | None, quantity: int) -> None:
        if variant_id is None:
            record.base_quantity = quantity
        else:
            record.find_variant(variant_id).quantity = quantity

    def _emit(self, event: StockChanged) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.error(
                    "stock_changed_listener_failed",
                    extra={
                        "product_id": event.product_id,
                        "listener": getattr(listener, "__qualname__", repr(listener)),
                    },
                    exc_info=True,
                )
