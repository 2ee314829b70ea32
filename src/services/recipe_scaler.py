"""Recipe Scaler - sizes recipe quantities to a batch's raw-material weight.

Every recipe line is written per the recipe's base_weight of raw beef. A
batch multiplies each line by one dimensionless scale factor, chosen in
priority order:

1. the batch's explicit scaling_factor, when finite and > 0;
2. input_weight (in grams) / recipe base_weight (in grams), when the base
   weight is finite and > 0;
3. 1.0.

The > 0 guard on the base weight means the division never sees zero.
"""

import math
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..models import Recipe
from .database import session_scope
from .exceptions import InvalidQuantity, RecipeNotFound
from .logging_utils import get_service_logger
from .unit_converter import convert

logger = get_service_logger(__name__)


def _positive_finite(value) -> bool:
    if value is None:
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number > 0


def compute_scale_factor(
    input_weight: Optional[float],
    input_weight_unit: Optional[str],
    base_weight: Optional[float],
    base_weight_unit: Optional[str],
    override: Optional[float] = None,
) -> float:
    """
    Compute a scale factor from raw values.

    Args:
        input_weight: Batch raw-material weight
        input_weight_unit: Unit of input_weight (default "kg" when None)
        base_weight: Recipe reference weight
        base_weight_unit: Unit of base_weight (default "g" when None)
        override: Explicit factor; wins when finite and positive

    Returns:
        The scale factor (never NaN, never infinite)
    """
    if _positive_finite(override):
        return float(override)

    if _positive_finite(base_weight) and input_weight is not None:
        base_grams = convert(float(base_weight), base_weight_unit or "g", "g")
        input_grams = convert(float(input_weight), input_weight_unit or "kg", "g")
        if _positive_finite(base_grams) and math.isfinite(input_grams):
            return input_grams / base_grams

    return 1.0


def scale_factor(batch: Any, recipe: Optional[Any]) -> float:
    """
    Scale factor for a batch produced from a recipe.

    Args:
        batch: Batch (or any object with scaling_factor, input_weight,
            input_weight_unit attributes)
        recipe: Recipe (or any object with base_weight, base_weight_unit),
            or None when the batch has no recipe

    Returns:
        Scale factor

    Example:
        >>> # base 1000 g, input 2.5 kg, no override
        >>> scale_factor(batch, recipe)
        2.5
    """
    return compute_scale_factor(
        getattr(batch, "input_weight", None),
        getattr(batch, "input_weight_unit", None),
        getattr(recipe, "base_weight", None) if recipe is not None else None,
        getattr(recipe, "base_weight_unit", None) if recipe is not None else None,
        override=getattr(batch, "scaling_factor", None),
    )


def _scale_recipe_impl(
    recipe_id: int, input_weight: float, unit: str, session: Session
) -> Dict[str, Any]:
    if not _positive_finite(input_weight):
        raise InvalidQuantity(input_weight, f"Input weight must be > 0, got {input_weight!r}")

    recipe = session.query(Recipe).filter(Recipe.id == recipe_id).first()
    if recipe is None:
        raise RecipeNotFound(recipe_id)

    factor = compute_scale_factor(
        input_weight, unit, recipe.base_weight, recipe.base_weight_unit
    )

    scaled = []
    for line in recipe.ingredients:
        material = line.material
        scaled.append(
            {
                "material_id": line.material_id,
                "material_name": material.name if material else None,
                "material_code": material.material_code if material else None,
                "base_quantity": line.quantity,
                "scaled_quantity": line.quantity * factor,
                "unit": line.unit,
                "is_critical": bool(line.is_critical),
                "is_cure": bool(line.is_cure),
            }
        )

    return {
        "recipe_id": recipe.id,
        "recipe_name": recipe.name,
        "recipe_code": recipe.recipe_code,
        "base_weight": recipe.base_weight,
        "base_weight_unit": recipe.base_weight_unit,
        "input_weight": input_weight,
        "input_weight_unit": unit,
        "scaling_factor": factor,
        "scaled_ingredients": scaled,
    }


def scale_recipe(
    recipe_id: int,
    input_weight: float,
    unit: str = "kg",
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Preview a recipe scaled to a raw-material input weight.

    Nothing is persisted; this is what an operator sees before creating a
    batch. Cure lines are shown at their plain scaled quantity: ppm dosing
    depends on batch actuals and is applied by the target resolver.

    Args:
        recipe_id: Recipe to scale
        input_weight: Raw-material weight
        unit: Unit of input_weight (default "kg")
        session: Optional database session

    Returns:
        Dict with recipe identity, scaling_factor and scaled_ingredients

    Raises:
        RecipeNotFound: If the recipe doesn't exist
        InvalidQuantity: If input_weight is not a finite number > 0
    """
    if session is not None:
        return _scale_recipe_impl(recipe_id, input_weight, unit, session)
    with session_scope() as sess:
        return _scale_recipe_impl(recipe_id, input_weight, unit, sess)
