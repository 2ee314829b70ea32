"""Traceability Service - forward and backward views over allocations.

batch_trace() answers "what went into this batch": every material the
recipe calls for (with its resolved target) plus anything else allocated,
each with the lots that supplied it down to supplier and received/expiry
dates. lot_impact() is the inverse join used to drive recall
notifications: every batch a lot touched.

Both are read-only; all functions accept an optional session.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from src.utils.datetime_utils import iso_or_none

from ..models import Batch, BatchLotUsage, Lot
from .database import session_scope
from .exceptions import BatchNotFound, LotNotFound
from .logging_utils import get_service_logger
from .target_resolver import get_batch_targets
from .unit_converter import to_base_unit

logger = get_service_logger(__name__)


def _supplier_dict(supplier) -> Optional[Dict[str, Any]]:
    if supplier is None:
        return None
    return {
        "id": supplier.id,
        "name": supplier.name,
        "supplier_code": supplier.supplier_code,
    }


def _lot_usage_entry(allocation: BatchLotUsage) -> Dict[str, Any]:
    lot = allocation.lot
    return {
        "allocation_id": allocation.id,
        "lot_id": allocation.lot_id,
        "lot_number": lot.lot_number,
        "internal_lot_code": lot.internal_lot_code,
        "supplier": _supplier_dict(lot.supplier),
        "received_date": iso_or_none(lot.received_date),
        "expiry_date": iso_or_none(lot.expiry_date),
        "lot_status": lot.status,
        "quantity": allocation.quantity_used,
        "unit": allocation.unit,
        "allocated_at": iso_or_none(allocation.allocated_at),
    }


def _totals_by_unit(allocations: List[BatchLotUsage]) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for allocation in allocations:
        value, unit = to_base_unit(allocation.quantity_used, allocation.unit)
        totals[unit] = totals.get(unit, 0.0) + value
    return totals


def _batch_trace_impl(batch_id: int, session: Session) -> Dict[str, Any]:
    batch = session.query(Batch).filter(Batch.id == batch_id).first()
    if batch is None:
        raise BatchNotFound(batch_id)

    resolved = get_batch_targets(batch_id, session=session)
    allocations = (
        session.query(BatchLotUsage)
        .filter(BatchLotUsage.batch_id == batch_id)
        .order_by(BatchLotUsage.id)
        .all()
    )

    lots_by_material: Dict[int, List[Dict[str, Any]]] = {}
    for allocation in allocations:
        lots_by_material.setdefault(allocation.material_id, []).append(
            _lot_usage_entry(allocation)
        )

    per_material = []
    for target in resolved.targets:
        per_material.append(
            {
                "material_id": target.material_id,
                "material_name": target.material_name,
                "material_code": target.material_code,
                "target": target.to_dict(),
                "used_amount": target.used_amount,
                "unit": target.unit,
                "lots": lots_by_material.get(target.material_id, []),
            }
        )
    for extra in resolved.extras:
        per_material.append(
            {
                "material_id": extra.material_id,
                "material_name": extra.material_name,
                "material_code": None,
                "target": None,
                "used_amount": extra.used_amount,
                "unit": extra.unit,
                "lots": lots_by_material.get(extra.material_id, []),
            }
        )

    recipe = batch.recipe
    batch_dict = batch.to_dict()
    batch_dict["recipe"] = (
        {"id": recipe.id, "name": recipe.name, "recipe_code": recipe.recipe_code}
        if recipe is not None
        else None
    )

    return {
        "batch": batch_dict,
        "scale_factor": resolved.scale_factor,
        "cure_base_mass_grams": resolved.cure_base_mass_grams,
        "per_material": per_material,
        "extras": [extra.to_dict() for extra in resolved.extras],
        "totals_by_unit": _totals_by_unit(allocations),
    }


def batch_trace(batch_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Forward traceability for a batch.

    Args:
        batch_id: Batch to trace
        session: Optional database session

    Returns:
        Dict with:
            - batch: batch fields plus its recipe (id, name, recipe_code) or None
            - scale_factor: factor applied to the recipe
            - per_material: one entry per recipe line, then one per extra
              material; each has target (None for extras), used_amount,
              unit and lots (lot number, internal code, supplier,
              received/expiry dates, quantity)
            - extras: materials allocated with no recipe line
            - totals_by_unit: allocated totals keyed by base unit (g, ml, units)

    Raises:
        BatchNotFound: If the batch doesn't exist
    """
    if session is not None:
        return _batch_trace_impl(batch_id, session)
    with session_scope() as sess:
        return _batch_trace_impl(batch_id, sess)


def _lot_impact_impl(lot_id: int, session: Session) -> Dict[str, Any]:
    lot = session.query(Lot).filter(Lot.id == lot_id).first()
    if lot is None:
        raise LotNotFound(lot_id)

    allocations = (
        session.query(BatchLotUsage)
        .filter(BatchLotUsage.lot_id == lot_id)
        .order_by(BatchLotUsage.batch_id, BatchLotUsage.id)
        .all()
    )

    affected: Dict[int, Dict[str, Any]] = {}
    for allocation in allocations:
        entry = affected.get(allocation.batch_id)
        if entry is None:
            batch = allocation.batch
            recipe = batch.recipe
            entry = {
                "batch_id": batch.id,
                "batch_number": batch.batch_number,
                "status": batch.status,
                "release_status": batch.release_status,
                "recipe_name": recipe.name if recipe else None,
                "recipe_code": recipe.recipe_code if recipe else None,
                "quantity_used": 0.0,
                "unit": lot.unit,
                "allocation_ids": [],
            }
            affected[allocation.batch_id] = entry
        entry["quantity_used"] += allocation.quantity_used
        entry["allocation_ids"].append(allocation.id)

    lot_dict = lot.to_dict()
    lot_dict["material_name"] = lot.material.name if lot.material else None
    lot_dict["supplier"] = _supplier_dict(lot.supplier)

    return {
        "lot": lot_dict,
        "affected_batches": list(affected.values()),
        "total_allocated": sum(a.quantity_used for a in allocations),
    }


def lot_impact(lot_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Backward traceability for a lot: every batch it was allocated to.

    Args:
        lot_id: Lot to trace
        session: Optional database session

    Returns:
        Dict with lot, affected_batches (grouped per batch, with recipe
        name/code and quantity used) and total_allocated

    Raises:
        LotNotFound: If the lot doesn't exist
    """
    if session is not None:
        return _lot_impact_impl(lot_id, session)
    with session_scope() as sess:
        return _lot_impact_impl(lot_id, sess)
