"""
Module: inventory_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors, plus
    the shared product-scope query used by listings, reports and the
    monitoring sweep.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/.  MUST NOT import from services/ or outer layers.
    Selectors NEVER create, modify, or delete data.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit(), or session.flush().
    - DTO return convention: selectors return frozen dataclasses, NOT raw
      ORM instances.
    - Session ownership: the caller owns the session and its transaction.
    - No locks: reads never take the per-product lock.
"""

from abc import ABC
from collections.abc import Iterable, Sequence
from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base
from inventory_kernel.models.catalog import CatalogProduct
from inventory_kernel.models.stock_record import StockRecord

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs or computed results.
    """

    def __init__(self, session: Session):
        """
        Initialize the selector.

        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session

    def scoped_products(
        self,
        statuses: Iterable[str],
        vendor_id: str | None = None,
        active_only: bool = False,
    ) -> Sequence[tuple[StockRecord, CatalogProduct]]:
        """
        Catalog products in ``statuses`` that have a StockRecord.

        Rows come back in registration order, which is the tie-breaker for
        every ranking built on top of them.
        """
        stmt = (
            select(StockRecord, CatalogProduct)
            .join(CatalogProduct, CatalogProduct.product_id == StockRecord.product_id)
            .where(CatalogProduct.status.in_(list(statuses)))
            .order_by(StockRecord.registration_seq)
        )
        if vendor_id is not None:
            stmt = stmt.where(CatalogProduct.vendor_id == vendor_id)
        if active_only:
            stmt = stmt.where(CatalogProduct.is_active.is_(True))
        return [(row[0], row[1]) for row in self.session.execute(stmt).all()]
