"""
BatchLotUsage model - an allocation of a lot's quantity to a batch.

quantity_used is always stored in the lot's canonical unit, so summing a
lot's allocations gives quantity_received - current_balance directly.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from src.utils.datetime_utils import utc_now

from .base import BaseModel


class BatchLotUsage(BaseModel):
    """
    Allocation record linking a batch, a lot and a material.

    Attributes:
        batch_id: Consuming batch
        lot_id: Lot consumed from
        material_id: Material of the lot (denormalized for per-material queries)
        quantity_used: Quantity consumed, in ``unit``
        unit: The lot's canonical unit at allocation time
        allocated_at: When the allocation was made
    """

    __tablename__ = "batch_lot_usage"

    batch_id = Column(Integer, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False)
    lot_id = Column(Integer, ForeignKey("lots.id", ondelete="RESTRICT"), nullable=False)
    material_id = Column(
        Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False
    )
    quantity_used = Column(Float, nullable=False)
    unit = Column(String(10), nullable=False)
    allocated_at = Column(DateTime, nullable=False, default=utc_now)

    batch = relationship("Batch", back_populates="allocations")
    lot = relationship("Lot", back_populates="allocations")
    material = relationship("Material")

    __table_args__ = (
        CheckConstraint("quantity_used > 0", name="ck_batch_lot_usage_qty_positive"),
        Index("idx_batch_lot_usage_batch", "batch_id"),
        Index("idx_batch_lot_usage_lot", "lot_id"),
        Index("idx_batch_lot_usage_batch_material", "batch_id", "material_id"),
    )

    def __repr__(self) -> str:
        return (
            f"BatchLotUsage(id={self.id}, batch_id={self.batch_id}, lot_id={self.lot_id}, "
            f"quantity={self.quantity_used} {self.unit})"
        )
