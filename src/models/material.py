"""
Material model - a purchasable substance tracked by the ledger.

Examples: beef eye of round, kosher salt, Prague Powder #1.
A material is referenced by lots and recipe lines; its canonical unit is
the unit lot balances are kept in unless the lot overrides it.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Index, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import MaterialCategory


class Material(BaseModel):
    """
    Material model.

    Attributes:
        name: Display name (e.g., "Beef Eye of Round")
        material_code: Short unique code (e.g., "BEEF-EOR")
        category: MaterialCategory value; "beef" and "cure" drive scaling and dosing
        unit: Canonical unit tag ("g", "kg", "ml", "L", "units")
        is_active: Soft delete flag
        notes: Optional storage or handling notes

    Relationships:
        lots: Lots received for this material
    """

    __tablename__ = "materials"

    name = Column(String(200), nullable=False)
    material_code = Column(String(50), nullable=False, unique=True)
    category = Column(String(20), nullable=False, default=MaterialCategory.OTHER.value)
    unit = Column(String(10), nullable=False, default="g")
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)

    lots = relationship("Lot", back_populates="material")

    __table_args__ = (
        CheckConstraint(
            "category IN ('beef', 'spice', 'cure', 'additive', 'packaging', 'other')",
            name="ck_material_category_valid",
        ),
        Index("idx_material_category", "category"),
    )

    @property
    def is_beef(self) -> bool:
        return self.category == MaterialCategory.BEEF.value

    @property
    def is_cure(self) -> bool:
        return self.category == MaterialCategory.CURE.value
