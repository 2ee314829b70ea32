"""
Batch model - one production run of a recipe.

The scale factor for all target computations comes from the explicit
scaling_factor override when present and positive, otherwise from
input_weight relative to the recipe's base_weight.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import BatchStatus, ReleaseStatus


class Batch(BaseModel):
    """
    Batch model.

    Attributes:
        batch_number: Human-facing batch identifier
        recipe_id: Recipe produced (nullable: historical batches may outlive their recipe)
        input_weight: Raw-material (beef) input weight
        input_weight_unit: Unit of input_weight (default "kg")
        scaling_factor: Optional explicit scale override
        status: BatchStatus value
        release_status: ReleaseStatus value
        recall_reason / recall_notes / recalled_at: Populated by recalls
        completed_at: When the batch was completed

    Relationships:
        recipe: Many-to-One with Recipe
        allocations: Lots consumed by this batch
        actuals: Measured ingredient actuals
    """

    __tablename__ = "batches"

    batch_number = Column(String(50), nullable=False, unique=True)
    recipe_id = Column(
        Integer, ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True, index=True
    )
    input_weight = Column(Float, nullable=True)
    input_weight_unit = Column(String(10), nullable=False, default="kg")
    scaling_factor = Column(Float, nullable=True)

    status = Column(String(20), nullable=False, default=BatchStatus.PLANNED.value)
    release_status = Column(String(20), nullable=False, default=ReleaseStatus.PENDING.value)

    recall_reason = Column(Text, nullable=True)
    recall_notes = Column(Text, nullable=True)
    recalled_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    recipe = relationship("Recipe", back_populates="batches", lazy="joined")
    allocations = relationship("BatchLotUsage", back_populates="batch")
    actuals = relationship("BatchIngredient", back_populates="batch")

    __table_args__ = (
        CheckConstraint(
            "status IN ('planned', 'in_progress', 'completed', 'released', 'cancelled')",
            name="ck_batch_status_valid",
        ),
        CheckConstraint(
            "release_status IN ('pending', 'approved', 'recalled')",
            name="ck_batch_release_status_valid",
        ),
    )

    def __repr__(self) -> str:
        return f"Batch(id={self.id}, batch_number='{self.batch_number}', status='{self.status}')"
