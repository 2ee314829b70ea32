"""
Lot recall records.

A LotRecall is created each time an operator recalls a lot; one
LotRecallBatch row is written per batch that consumed from the lot, so
recall notifications can be fanned out and tracked per batch.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from src.utils.datetime_utils import utc_now

from .base import BaseModel
from .enums import RecallStatus


class LotRecall(BaseModel):
    """
    Recall header.

    Attributes:
        lot_id: Recalled lot
        reason: Required recall reason
        notes: Optional notes
        initiated_by: Who started the recall
        initiated_at: When it was started
        status: RecallStatus value
    """

    __tablename__ = "lot_recalls"

    lot_id = Column(Integer, ForeignKey("lots.id", ondelete="CASCADE"), nullable=False, index=True)
    reason = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    initiated_by = Column(String(200), nullable=True)
    initiated_at = Column(DateTime, nullable=False, default=utc_now)
    status = Column(String(20), nullable=False, default=RecallStatus.OPEN.value, index=True)

    batches = relationship(
        "LotRecallBatch", back_populates="recall", cascade="all, delete-orphan"
    )


class LotRecallBatch(BaseModel):
    """A batch affected by a lot recall."""

    __tablename__ = "lot_recall_batches"

    updated_at = None

    lot_recall_id = Column(
        Integer, ForeignKey("lot_recalls.id", ondelete="CASCADE"), nullable=False
    )
    batch_id = Column(
        Integer, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True
    )

    recall = relationship("LotRecall", back_populates="batches")

    __table_args__ = (
        UniqueConstraint("lot_recall_id", "batch_id", name="uq_lot_recall_batch"),
    )
