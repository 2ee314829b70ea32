"""
Measured ingredient actuals for a batch, plus the cure audit trail.

BatchIngredient holds the latest measured amount per batch and material.
BatchCureAudit keeps every cure measurement ever recorded, since the
ppm a batch was cured at is a compliance record.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from src.utils.datetime_utils import utc_now

from .base import BaseModel


class BatchIngredient(BaseModel):
    """
    Latest measured actual for one material in one batch.

    Attributes:
        batch_id / material_id: What was measured
        ingredient_name: Material name at measurement time
        target_amount: Resolved target, in ``unit``
        actual_amount: Measured amount, in ``unit``
        unit: Unit the operator entered
        tolerance_percentage: Tolerance applied
        in_tolerance: Whether the actual was within tolerance of the target
        measured_at: When it was measured
        is_cure / cure_*: Cure dosing evaluation for cure lines
    """

    __tablename__ = "batch_ingredients"

    batch_id = Column(Integer, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False)
    material_id = Column(
        Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False
    )
    ingredient_name = Column(String(200), nullable=False)
    target_amount = Column(Float, nullable=False)
    actual_amount = Column(Float, nullable=True)
    unit = Column(String(10), nullable=False)
    tolerance_percentage = Column(Float, nullable=False)
    in_tolerance = Column(Boolean, nullable=True)
    measured_at = Column(DateTime, nullable=True)

    is_cure = Column(Boolean, nullable=False, default=False)
    cure_required_grams = Column(Float, nullable=True)
    cure_ppm = Column(Float, nullable=True)
    cure_status = Column(String(10), nullable=True)
    cure_unit = Column(String(10), nullable=True)

    batch = relationship("Batch", back_populates="actuals")

    __table_args__ = (
        UniqueConstraint("batch_id", "material_id", name="uq_batch_ingredient_material"),
    )


class BatchCureAudit(BaseModel):
    """Append-only record of a cure measurement."""

    __tablename__ = "batch_cure_audit"

    updated_at = None

    batch_id = Column(
        Integer, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    material_id = Column(
        Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False
    )
    actual_amount = Column(Float, nullable=False)
    unit = Column(String(10), nullable=False)
    cure_ppm = Column(Float, nullable=True)
    cure_status = Column(String(10), nullable=True)
    recorded_by = Column(String(200), nullable=True)
    recorded_at = Column(DateTime, nullable=False, default=utc_now)
    details = Column(JSON, nullable=True)
