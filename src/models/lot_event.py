"""
LotEvent model - append-only audit trail of lot balance changes.

Sign convention for ``quantity``: the change in *consumption*. Consuming
200 g from a lot records +200, adjusting an allocation from 100 g to
150 g records +50, reversing a 200 g allocation records -200. The
resulting balance is stored alongside in ``balance_after``. Receive events
record the received quantity; recall events record zero.
"""

from sqlalchemy import CheckConstraint, Column, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class LotEvent(BaseModel):
    """
    LotEvent model. IMMUTABLE after creation - no updated_at field.

    Attributes:
        lot_id: Lot whose balance changed
        event_type: LotEventType value
        quantity: Signed consumption change (see module docstring)
        balance_after: Lot balance after the change, in the lot unit
        batch_id: Batch the change belongs to (optional)
        allocation_id: Allocation that caused the change; a plain integer
            so the trail survives the allocation being reversed
        reason: Free-text reason
    """

    __tablename__ = "lot_events"

    updated_at = None

    lot_id = Column(Integer, ForeignKey("lots.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(20), nullable=False)
    quantity = Column(Float, nullable=False)
    balance_after = Column(Float, nullable=False)
    batch_id = Column(
        Integer, ForeignKey("batches.id", ondelete="SET NULL"), nullable=True, index=True
    )
    allocation_id = Column(Integer, nullable=True, index=True)
    reason = Column(Text, nullable=True)

    lot = relationship("Lot", back_populates="events")

    __table_args__ = (
        CheckConstraint(
            "event_type IN ('receive', 'consume', 'adjust', 'restore', 'recall')",
            name="ck_lot_event_type_valid",
        ),
        Index("idx_lot_event_lot_type", "lot_id", "event_type"),
    )

    def __repr__(self) -> str:
        return (
            f"LotEvent(id={self.id}, lot_id={self.lot_id}, type='{self.event_type}', "
            f"quantity={self.quantity}, balance_after={self.balance_after})"
        )
