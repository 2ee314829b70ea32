"""Ingredient Target Resolver - per-line targets for a batch.

Composes the recipe scaler and the cure dosing calculator, then joins the
batch's allocations so each target carries how much has been used and how
much remains. resolve_targets() is pure; get_batch_targets() loads its
inputs from the database.

Materials allocated to a batch without a matching recipe line are
reported separately as extras so nothing allocated drops out of
traceability.
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from src.utils.config import get_config

from ..models import Batch, BatchIngredient, BatchLotUsage
from .cure_calculator import (
    CureSettings,
    cure_base_mass_grams,
    is_cure_line,
    required_cure_mass,
    resolve_cure_type,
)
from .database import session_scope
from .exceptions import BatchNotFound
from .logging_utils import get_service_logger
from .recipe_scaler import scale_factor as compute_batch_scale
from .settings_service import get_cure_settings
from .unit_converter import convert

logger = get_service_logger(__name__)


@dataclass
class IngredientTarget:
    """Derived target for one recipe line. Not persisted."""

    material_id: int
    material_name: Optional[str]
    material_code: Optional[str]
    recipe_quantity: float
    unit: str
    scaled_quantity: float
    target_quantity: float
    tolerance_percentage: float
    min_quantity: float
    max_quantity: float
    is_critical: bool
    is_cure: bool
    cure_type: Optional[str] = None
    cure_required_grams: Optional[float] = None
    used_amount: float = 0.0
    remaining_amount: float = 0.0
    actual_amount: Optional[float] = None
    within_tolerance: bool = True
    sort_order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ExtraMaterial:
    """A material allocated to a batch that no recipe line calls for."""

    material_id: int
    material_name: Optional[str]
    used_amount: float
    unit: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ResolvedTargets:
    scale_factor: float
    cure_base_mass_grams: float
    targets: List[IngredientTarget] = field(default_factory=list)
    extras: List[ExtraMaterial] = field(default_factory=list)

    def target_for(self, material_id: int) -> Optional[IngredientTarget]:
        for target in self.targets:
            if target.material_id == material_id:
                return target
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scale_factor": self.scale_factor,
            "cure_base_mass_grams": self.cure_base_mass_grams,
            "targets": [t.to_dict() for t in self.targets],
            "extras": [e.to_dict() for e in self.extras],
        }


def within_tolerance(
    measured: float, target: float, tolerance_percentage: float, epsilon: float = 1e-9
) -> bool:
    """
    Whether a measured amount is inside the tolerance band of a target.

    A zero target only accepts a (near) zero measurement.
    """
    if target is None or not math.isfinite(target):
        return False
    if target <= epsilon:
        return abs(measured) <= epsilon
    deviation = abs(measured - target) / target * 100.0
    return deviation <= tolerance_percentage + epsilon


def _raw_mass_grams(batch: Any) -> float:
    weight = getattr(batch, "input_weight", None)
    if weight is None:
        return 0.0
    grams = convert(float(weight), getattr(batch, "input_weight_unit", None) or "kg", "g")
    return grams if math.isfinite(grams) and grams > 0 else 0.0


def _used_by_material(allocations: Iterable[Any]) -> Dict[int, List[Any]]:
    grouped: Dict[int, List[Any]] = {}
    for allocation in allocations:
        grouped.setdefault(allocation.material_id, []).append(allocation)
    return grouped


def _sum_in_unit(allocations: Iterable[Any], unit: Optional[str]) -> float:
    return sum(convert(a.quantity_used, a.unit, unit) for a in allocations)


def resolve_targets(
    batch: Any,
    recipe: Optional[Any],
    actuals: Iterable[Any] = (),
    allocations: Iterable[Any] = (),
    cure_settings: Optional[CureSettings] = None,
    default_tolerance: Optional[float] = None,
) -> ResolvedTargets:
    """
    Resolve ingredient targets for a batch.

    Args:
        batch: Batch (input_weight, input_weight_unit, scaling_factor)
        recipe: Recipe with ordered ``ingredients``, or None
        actuals: Recorded actuals (material_id, actual_amount, unit)
        allocations: Allocations (material_id, quantity_used, unit, material)
        cure_settings: Cure ppm limits; configured defaults when None
        default_tolerance: Tolerance for lines without one; configured
            default when None

    Returns:
        ResolvedTargets. A batch without a recipe resolves to no targets;
        everything it has allocated is reported as extras.
    """
    config = get_config()
    if cure_settings is None:
        cure_settings = CureSettings(
            config.cure_ppm_min, config.cure_ppm_target, config.cure_ppm_max
        )
    if default_tolerance is None:
        default_tolerance = config.default_tolerance_percentage

    factor = compute_batch_scale(batch, recipe)
    lines = list(recipe.ingredients) if recipe is not None else []
    actuals_by_material = {a.material_id: a for a in actuals}
    allocations_by_material = _used_by_material(allocations)

    base_mass = cure_base_mass_grams(_raw_mass_grams(batch), lines, factor, actuals_by_material)

    targets: List[IngredientTarget] = []
    for line in lines:
        material = line.material
        scaled = line.quantity * factor
        target = scaled
        cure_line = is_cure_line(line)
        cure_type = resolve_cure_type(line.cure_type, line.notes) if cure_line else None
        required_grams = None

        if cure_type is not None:
            required_grams = required_cure_mass(base_mass, cure_type, cure_settings.ppm_target)
            if required_grams is not None:
                target = convert(required_grams, "g", line.unit)

        tolerance = (
            line.tolerance_percentage
            if line.tolerance_percentage is not None
            else default_tolerance
        )
        used = _sum_in_unit(allocations_by_material.get(line.material_id, []), line.unit)

        actual = actuals_by_material.get(line.material_id)
        actual_amount = None
        if actual is not None and actual.actual_amount is not None:
            actual_amount = convert(actual.actual_amount, actual.unit or line.unit, line.unit)
        measured = actual_amount if actual_amount is not None else used

        targets.append(
            IngredientTarget(
                material_id=line.material_id,
                material_name=material.name if material else None,
                material_code=material.material_code if material else None,
                recipe_quantity=line.quantity,
                unit=line.unit,
                scaled_quantity=scaled,
                target_quantity=target,
                tolerance_percentage=tolerance,
                min_quantity=target * (1 - tolerance / 100.0),
                max_quantity=target * (1 + tolerance / 100.0),
                is_critical=bool(line.is_critical),
                is_cure=cure_line,
                cure_type=cure_type,
                cure_required_grams=required_grams,
                used_amount=used,
                remaining_amount=max(0.0, target - used),
                actual_amount=actual_amount,
                within_tolerance=within_tolerance(measured, target, tolerance),
                sort_order=line.sort_order or 0,
            )
        )

    line_materials = {line.material_id for line in lines}
    extras: List[ExtraMaterial] = []
    for material_id, group in allocations_by_material.items():
        if material_id in line_materials:
            continue
        unit = group[0].unit
        material = getattr(group[0], "material", None)
        extras.append(
            ExtraMaterial(
                material_id=material_id,
                material_name=material.name if material is not None else None,
                used_amount=_sum_in_unit(group, unit),
                unit=unit,
            )
        )

    return ResolvedTargets(
        scale_factor=factor,
        cure_base_mass_grams=base_mass,
        targets=targets,
        extras=extras,
    )


def _get_batch_targets_impl(batch_id: int, session: Session) -> ResolvedTargets:
    batch = session.query(Batch).filter(Batch.id == batch_id).first()
    if batch is None:
        raise BatchNotFound(batch_id)

    recipe = batch.recipe
    if recipe is None:
        logger.debug(f"Batch {batch_id} has no recipe; resolving extras only")

    actuals = session.query(BatchIngredient).filter(BatchIngredient.batch_id == batch_id).all()
    allocations = (
        session.query(BatchLotUsage)
        .filter(BatchLotUsage.batch_id == batch_id)
        .order_by(BatchLotUsage.id)
        .all()
    )

    return resolve_targets(
        batch,
        recipe,
        actuals=actuals,
        allocations=allocations,
        cure_settings=get_cure_settings(session=session),
    )


def get_batch_targets(batch_id: int, session: Optional[Session] = None) -> ResolvedTargets:
    """Resolve targets for a stored batch.

    Args:
        batch_id: Batch to resolve
        session: Optional database session

    Returns:
        ResolvedTargets (empty targets when the batch has no recipe)

    Raises:
        BatchNotFound: If the batch doesn't exist
    """
    if session is not None:
        return _get_batch_targets_impl(batch_id, session)
    with session_scope() as sess:
        return _get_batch_targets_impl(batch_id, sess)
