"""
Module: inventory_kernel.models.alert_state
Responsibility: ORM persistence for alert deduplication and cooldown state,
    one row per (product_id, alert_type).
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - (product_id, alert_type) is unique (uq_alert_state_key).
    - At most one row per product has is_active = True; AlertDispatcher
      deactivates the other types when it activates one.
"""

from datetime import datetime

from sqlalchemy import Boolean, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase
from inventory_kernel.db.types import ExternalId, Quantity, ShortCode


class AlertState(TrackedBase):
    """Last known alert for a product and alert type."""

    __tablename__ = "alert_states"

    __table_args__ = (
        UniqueConstraint("product_id", "alert_type", name="uq_alert_state_key"),
        Index("idx_alert_state_active", "is_active"),
    )

    product_id: Mapped[ExternalId] = mapped_column(nullable=False)

    alert_type: Mapped[ShortCode] = mapped_column(nullable=False)

    severity: Mapped[ShortCode] = mapped_column(nullable=False)

    current_stock: Mapped[Quantity] = mapped_column(nullable=False)

    threshold: Mapped[Quantity] = mapped_column(nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # None until a notification has actually been sent
    last_alert_sent: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        state = "active" if self.is_active else "cleared"
        return f"<AlertState {self.product_id}/{self.alert_type}: {state}>"
