"""Actuals Service - measured ingredient amounts for a batch.

An operator weighs each ingredient as it goes in. record_actual() stores
the latest measurement per batch and material, evaluates it against the
resolved target and tolerance, and for cure lines computes the ppm the
measured dose produces. Every cure measurement is also appended to
BatchCureAudit.

All functions accept optional session parameter.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.utils.datetime_utils import utc_now

from ..models import Batch, BatchCureAudit, BatchIngredient
from .cure_calculator import calculate_ppm, evaluate_cure_status
from .database import session_scope
from .exceptions import BatchNotFound, DatabaseError, InvalidQuantity, ValidationError
from .logging_utils import get_service_logger, log_operation
from .settings_service import get_cure_settings
from .target_resolver import get_batch_targets, within_tolerance
from .unit_converter import convert, normalize_unit

logger = get_service_logger(__name__)


def _record_actual_impl(
    batch_id: int,
    material_id: int,
    actual_amount: float,
    unit: Optional[str],
    tolerance_percentage: Optional[float],
    recorded_by: Optional[str],
    session: Session,
) -> Dict[str, Any]:
    try:
        actual = float(actual_amount)
    except (TypeError, ValueError):
        raise InvalidQuantity(actual_amount)
    if not math.isfinite(actual) or actual <= 0:
        raise InvalidQuantity(actual_amount)

    batch = session.query(Batch).filter(Batch.id == batch_id).first()
    if batch is None:
        raise BatchNotFound(batch_id)
    if batch.recipe is None:
        raise ValidationError(["Batch has no recipe"])

    resolved = get_batch_targets(batch_id, session=session)
    target = resolved.target_for(material_id)
    if target is None:
        log_operation(
            logger,
            operation="record_actual",
            outcome="validation_failed",
            level=logging.WARNING,
            batch_id=batch_id,
            material_id=material_id,
            error="material not part of recipe",
        )
        raise ValidationError(["Material not part of the recipe"])

    entry_unit = normalize_unit(unit) or target.unit
    tolerance = (
        float(tolerance_percentage)
        if tolerance_percentage is not None
        else target.tolerance_percentage
    )
    target_in_entry_unit = convert(target.target_quantity, target.unit, entry_unit)
    in_tolerance = within_tolerance(actual, target_in_entry_unit, tolerance)

    cure_ppm = None
    cure_status = None
    settings = None
    if target.is_cure and target.cure_type:
        settings = get_cure_settings(session=session)
        actual_grams = convert(actual, entry_unit, "g")
        total_mass = resolved.cure_base_mass_grams + actual_grams
        if actual_grams > 0 and total_mass > 0:
            cure_ppm = calculate_ppm(actual_grams, total_mass, target.cure_type)
            cure_status = evaluate_cure_status(cure_ppm, settings)

    row = (
        session.query(BatchIngredient)
        .filter(
            BatchIngredient.batch_id == batch_id,
            BatchIngredient.material_id == material_id,
        )
        .first()
    )
    if row is None:
        row = BatchIngredient(
            batch_id=batch_id,
            material_id=material_id,
            ingredient_name=target.material_name or "Unknown",
        )
        session.add(row)

    row.actual_amount = actual
    row.unit = entry_unit
    row.target_amount = target_in_entry_unit
    row.tolerance_percentage = tolerance
    row.in_tolerance = in_tolerance
    row.measured_at = utc_now()
    row.is_cure = target.is_cure
    row.cure_required_grams = target.cure_required_grams
    row.cure_ppm = cure_ppm
    row.cure_status = cure_status
    row.cure_unit = target.unit if target.is_cure else None
    session.flush()

    if target.is_cure:
        session.add(
            BatchCureAudit(
                batch_id=batch_id,
                material_id=material_id,
                actual_amount=actual,
                unit=entry_unit,
                cure_ppm=cure_ppm,
                cure_status=cure_status,
                recorded_by=recorded_by,
                details={
                    "target_grams": target.cure_required_grams,
                    "target_unit": target.unit,
                    "target_ppm": settings.ppm_target if settings else None,
                    "base_mass_grams": resolved.cure_base_mass_grams,
                    "tolerance_percentage": tolerance,
                },
            )
        )
        session.flush()

    log_operation(
        logger,
        operation="record_actual",
        outcome="success" if in_tolerance else "out_of_tolerance",
        level=logging.INFO if in_tolerance else logging.WARNING,
        batch_id=batch_id,
        material_id=material_id,
        actual=actual,
        target=target_in_entry_unit,
        cure_status=cure_status,
    )

    result = row.to_dict()
    result["cure_type"] = target.cure_type
    result["cure_base_mass_grams"] = resolved.cure_base_mass_grams
    return result


def record_actual(
    batch_id: int,
    material_id: int,
    actual_amount: float,
    unit: Optional[str] = None,
    tolerance_percentage: Optional[float] = None,
    recorded_by: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Record the measured amount of one recipe ingredient in a batch.

    Args:
        batch_id: Batch being produced
        material_id: Ingredient measured (must have a recipe line)
        actual_amount: Measured amount
        unit: Unit entered (default: the recipe line's unit)
        tolerance_percentage: Override of the line's tolerance
        recorded_by: Who measured (kept on the cure audit trail)
        session: Optional database session

    Returns:
        The stored BatchIngredient as a dict, plus cure_type and
        cure_base_mass_grams

    Raises:
        InvalidQuantity: actual_amount is not a finite number > 0
        BatchNotFound: If the batch doesn't exist
        ValidationError: Batch has no recipe, or material has no recipe line
        DatabaseError: If the measurement cannot be stored
    """
    args = (batch_id, material_id, actual_amount, unit, tolerance_percentage, recorded_by)
    try:
        if session is not None:
            return _record_actual_impl(*args, session)
        with session_scope() as sess:
            return _record_actual_impl(*args, sess)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to record actual for batch {batch_id}", original_error=e)


def list_actuals(batch_id: int, session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """Recorded actuals of a batch, by ingredient name."""

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        if sess.query(Batch).filter(Batch.id == batch_id).first() is None:
            raise BatchNotFound(batch_id)
        rows = (
            sess.query(BatchIngredient)
            .filter(BatchIngredient.batch_id == batch_id)
            .order_by(BatchIngredient.ingredient_name)
            .all()
        )
        return [row.to_dict() for row in rows]

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def list_cure_audit(batch_id: int, session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """Every cure measurement recorded for a batch, oldest first."""

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        rows = (
            sess.query(BatchCureAudit)
            .filter(BatchCureAudit.batch_id == batch_id)
            .order_by(BatchCureAudit.id)
            .all()
        )
        return [row.to_dict() for row in rows]

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)
