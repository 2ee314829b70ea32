"""
Recipe models - base formulation and its ingredient lines.

A recipe is written against a reference mass of raw beef (base_weight).
Every line quantity is "per base_weight"; batches scale the lines by the
ratio of their own input weight to that base. Recipes are not edited
during batch execution: edits apply to future batches.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class Recipe(BaseModel):
    """
    Recipe model.

    Attributes:
        name: Recipe name (e.g., "Teriyaki Jerky")
        recipe_code: Short unique code
        base_weight: Reference raw-material mass the lines are written for
        base_weight_unit: Unit of base_weight (default "g")
        description: Optional description
        version: Recipe revision number
        is_active: Soft delete flag

    Relationships:
        ingredients: Ordered RecipeIngredient lines
        batches: Batches produced from this recipe
    """

    __tablename__ = "recipes"

    name = Column(String(200), nullable=False, index=True)
    recipe_code = Column(String(50), nullable=False, unique=True)
    base_weight = Column(Float, nullable=True)
    base_weight_unit = Column(String(10), nullable=False, default="g")
    description = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)

    ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        order_by="RecipeIngredient.sort_order, RecipeIngredient.id",
        cascade="all, delete-orphan",
    )
    batches = relationship("Batch", back_populates="recipe")

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert recipe to dictionary.

        Args:
            include_relationships: If True, include ingredient lines

        Returns:
            Dictionary representation
        """
        result = super().to_dict(False)
        if include_relationships:
            result["ingredients"] = [line.to_dict(True) for line in self.ingredients]
        return result


class RecipeIngredient(BaseModel):
    """
    One line of a recipe.

    Attributes:
        recipe_id: Parent recipe
        material_id: Material the line calls for
        quantity: Quantity per recipe base_weight
        unit: Unit of quantity
        tolerance_percentage: Allowed deviation; None means the configured default
        is_critical: Deviation on this line gates batch release
        is_cure: Line is a curing agent dosed by ppm
        cure_type: Optional explicit cure type ("denkurit", "prague1")
        notes: Free text; cure lines may carry a JSON cure note instead of cure_type
        sort_order: Display/processing order
    """

    __tablename__ = "recipe_ingredients"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    material_id = Column(
        Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quantity = Column(Float, nullable=False)
    unit = Column(String(10), nullable=False, default="g")
    tolerance_percentage = Column(Float, nullable=True)
    is_critical = Column(Boolean, nullable=False, default=False)
    is_cure = Column(Boolean, nullable=False, default=False)
    cure_type = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)

    recipe = relationship("Recipe", back_populates="ingredients")
    material = relationship("Material", lazy="joined")

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_recipe_ingredient_qty_non_negative"),
        CheckConstraint(
            "tolerance_percentage IS NULL OR tolerance_percentage >= 0",
            name="ck_recipe_ingredient_tolerance_non_negative",
        ),
        Index("idx_recipe_ingredient_recipe", "recipe_id"),
    )
