"""Lot Ledger - the only mutator of lot balances.

Operations:
- allocate / allocate_fifo: consume lot quantity into a batch
- adjust: change an allocation's quantity, moving only the delta
- reverse: delete an allocation and restore its quantity
- recall_lot / recall_batch: flag lots and batches as recalled
- receive_lot / remove_lot: lot receipt and operator-initiated removal
- reconcile_lot / get_lot_events: forensic views of a lot's history

Invariant, for every lot:

    quantity_received - current_balance == sum(allocations, in the lot unit)

Each write is a saga over ledger_store calls, each of which commits on
its own. Balance writes are compare-and-set on (version, balance): a lot
that changed since it was read raises ConcurrentModification, and the
saga compensates earlier steps. The one retry is reverse()'s restore,
which runs after the allocation is already gone: it re-reads the lot and
re-applies the addition up to BALANCE_RESTORE_ATTEMPTS times.

A store failure (SQLAlchemyError) that escapes a write is raised as
DatabaseError.

Allocation quantities are stored in the lot's unit.
"""

import functools
import logging
import math
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from src.utils.config import get_config
from src.utils.constants import BALANCE_RESTORE_ATTEMPTS

from ..models import LotEventType, LotStatus
from . import ledger_store
from .exceptions import (
    AllocationNotFound,
    BatchNotFound,
    ConcurrentModification,
    DatabaseError,
    InsufficientBalance,
    InvalidQuantity,
    LotNotFound,
    LotUnavailable,
    MaterialMismatch,
    MaterialNotFound,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .saga import Saga
from .unit_converter import convert, format_quantity, normalize_unit

logger = get_service_logger(__name__)

_UNAVAILABLE_STATUSES = (LotStatus.RECALLED.value, LotStatus.QUARANTINE.value)


# =============================================================================
# Helpers
# =============================================================================


def _epsilon() -> float:
    return get_config().balance_epsilon


def _validate_quantity(quantity) -> float:
    """Return quantity as a float, or raise InvalidQuantity."""
    if isinstance(quantity, bool):
        raise InvalidQuantity(quantity)
    try:
        value = float(quantity)
    except (TypeError, ValueError):
        raise InvalidQuantity(quantity)
    if not math.isfinite(value) or value <= 0:
        raise InvalidQuantity(quantity)
    return value


def _to_lot_unit(quantity: float, unit: Optional[str], lot: ledger_store.LotSnapshot) -> float:
    """Convert a caller quantity into the lot's unit, honoring strict mode."""
    return convert(quantity, unit or lot.unit, lot.unit, strict=get_config().strict_unit_conversion)


def _require_lot(lot_id: int) -> ledger_store.LotSnapshot:
    lot = ledger_store.load_lot(lot_id)
    if lot is None:
        raise LotNotFound(lot_id)
    return lot


def _require_allocation(
    allocation_id: int, batch_id: Optional[int]
) -> ledger_store.AllocationSnapshot:
    allocation = ledger_store.load_allocation(allocation_id)
    if allocation is None:
        raise AllocationNotFound(allocation_id)
    if batch_id is not None and allocation.batch_id != batch_id:
        raise AllocationNotFound(allocation_id)
    return allocation


def _require_reason(reason: Optional[str], operation: str) -> str:
    if reason is None or not str(reason).strip():
        log_operation(
            logger,
            operation=operation,
            outcome="validation_failed",
            level=logging.WARNING,
            error="reason is required",
        )
        raise ValidationError(["Recall reason is required"])
    return str(reason).strip()


def _store_errors(operation: str):
    """Raise SQLAlchemyError escaping ``operation`` as DatabaseError."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except SQLAlchemyError as e:
                log_operation(
                    logger,
                    operation=operation,
                    outcome="database_error",
                    level=logging.ERROR,
                    error=str(e),
                )
                raise DatabaseError(f"{operation} failed", original_error=e)

        return wrapper

    return decorator


def _restore_balance(lot: ledger_store.LotSnapshot, amount: float) -> float:
    """Add amount back onto a lot and return the balance written.

    A compare-and-set rejected because the lot moved on is retried
    against a fresh read; the addition is re-applied to whatever the
    balance is now.
    """
    current = lot
    for attempt in range(1, BALANCE_RESTORE_ATTEMPTS + 1):
        new_balance = current.current_balance + amount
        try:
            ledger_store.compare_and_set_balance(
                current.id, current.current_balance, current.version, new_balance
            )
            return new_balance
        except ConcurrentModification:
            if attempt == BALANCE_RESTORE_ATTEMPTS:
                raise
            log_operation(
                logger,
                operation="reverse",
                outcome="restore_retry",
                level=logging.INFO,
                lot_id=lot.id,
                attempt=attempt,
            )
            current = _require_lot(lot.id)
    raise ConcurrentModification(lot.id, current.version, current.current_balance)


# =============================================================================
# Allocate
# =============================================================================


@_store_errors("allocate")
def allocate(
    batch_id: int,
    lot_id: int,
    material_id: int,
    quantity: float,
    unit: Optional[str] = None,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Allocate lot quantity to a batch.

    Steps, each committed on its own:
    1. insert the allocation (compensation: delete it)
    2. insert a consume event (compensation: delete it)
    3. compare-and-set the lot balance

    Args:
        batch_id: Consuming batch
        lot_id: Lot to draw from
        material_id: Material the caller expects the lot to hold
        quantity: Quantity to draw
        unit: Unit of quantity (default: the lot's unit)
        reason: Optional note stored on the consume event

    Returns:
        Dict with allocation_id, lot_event_id, lot_id, batch_id, quantity,
        unit (the lot's) and new_balance

    Raises:
        InvalidQuantity: Quantity is not a finite number > 0
        LotNotFound / BatchNotFound: Referenced records missing
        LotUnavailable: Lot is recalled or in quarantine
        MaterialMismatch: Lot holds a different material
        UnitMismatchError: Strict mode and units cannot be converted
        InsufficientBalance: Quantity exceeds the lot balance
        ConcurrentModification: Lot changed after it was read (rolled back)
        PartialFailureCompensated / PartialFailureUncompensated: See saga
        DatabaseError: The store failed
    """
    requested = _validate_quantity(quantity)

    lot = _require_lot(lot_id)
    if ledger_store.load_batch(batch_id) is None:
        raise BatchNotFound(batch_id)
    if lot.status in _UNAVAILABLE_STATUSES:
        raise LotUnavailable(lot_id, lot.status)
    if lot.material_id != material_id:
        raise MaterialMismatch(lot_id, lot.material_id, material_id)

    amount = _to_lot_unit(requested, unit, lot)
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidQuantity(quantity)

    if amount > lot.current_balance + _epsilon():
        log_operation(
            logger,
            operation="allocate",
            outcome="insufficient_balance",
            level=logging.WARNING,
            lot_id=lot_id,
            batch_id=batch_id,
            requested=amount,
            available=lot.current_balance,
        )
        raise InsufficientBalance(amount, lot.current_balance, lot.unit, lot_id=lot_id)

    new_balance = max(0.0, lot.current_balance - amount)

    saga = Saga("allocate", logger, lot_id=lot_id, batch_id=batch_id)
    saga.step(
        "insert_allocation",
        lambda: ledger_store.insert_allocation(batch_id, lot_id, material_id, amount, lot.unit),
        compensation=ledger_store.delete_allocation,
    )
    saga.step(
        "insert_consume_event",
        lambda: ledger_store.insert_lot_event(
            lot_id,
            LotEventType.CONSUME.value,
            amount,
            new_balance,
            batch_id=batch_id,
            allocation_id=saga.results["insert_allocation"],
            reason=reason,
        ),
        compensation=ledger_store.delete_lot_event,
    )
    saga.step(
        "update_balance",
        lambda: ledger_store.compare_and_set_balance(
            lot_id, lot.current_balance, lot.version, new_balance
        ),
    )
    results = saga.run()

    log_operation(
        logger,
        operation="allocate",
        outcome="success",
        lot_id=lot_id,
        batch_id=batch_id,
        allocation_id=results["insert_allocation"],
        quantity=amount,
        new_balance=new_balance,
    )

    return {
        "allocation_id": results["insert_allocation"],
        "lot_event_id": results["insert_consume_event"],
        "lot_id": lot_id,
        "batch_id": batch_id,
        "quantity": amount,
        "unit": lot.unit,
        "new_balance": new_balance,
    }


@_store_errors("allocate_fifo")
def allocate_fifo(
    batch_id: int,
    material_id: int,
    quantity: float,
    unit: str,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Spread a requirement across a material's active lots, oldest received first.

    Total availability is checked before anything is written. Each lot's
    allocation is one saga step whose compensation reverses it, so a
    failure part-way leaves no allocations behind.

    Args:
        batch_id: Consuming batch
        material_id: Material to draw
        quantity: Total quantity required
        unit: Unit of quantity
        reason: Optional note stored on each consume event

    Returns:
        Dict with batch_id, material_id, requested, unit and allocations
        (one allocate() result per lot touched)

    Raises:
        InsufficientBalance: Active lots cannot cover the quantity (nothing written)
    """
    requested = _validate_quantity(quantity)
    if ledger_store.load_batch(batch_id) is None:
        raise BatchNotFound(batch_id)

    epsilon = _epsilon()
    remaining = requested
    plan = []
    for lot in ledger_store.list_allocatable_lots(material_id):
        if remaining <= epsilon:
            break
        available = convert(lot.current_balance, lot.unit, unit)
        take = min(remaining, available)
        if take <= epsilon:
            continue
        plan.append((lot, take))
        remaining -= take

    if remaining > epsilon:
        available_total = requested - remaining
        log_operation(
            logger,
            operation="allocate_fifo",
            outcome="insufficient_balance",
            level=logging.WARNING,
            batch_id=batch_id,
            material_id=material_id,
            requested=requested,
            available=available_total,
        )
        raise InsufficientBalance(requested, available_total, unit)

    saga = Saga("allocate_fifo", logger, batch_id=batch_id, material_id=material_id)
    for lot, take in plan:
        saga.step(
            f"allocate_lot_{lot.id}",
            lambda lot_id=lot.id, amount=take: allocate(
                batch_id, lot_id, material_id, amount, unit, reason=reason
            ),
            compensation=lambda result: reverse(result["allocation_id"]),
        )
    results = saga.run()

    allocations = [results[f"allocate_lot_{lot.id}"] for lot, _ in plan]
    log_operation(
        logger,
        operation="allocate_fifo",
        outcome="success",
        batch_id=batch_id,
        material_id=material_id,
        lots_used=len(allocations),
    )
    return {
        "batch_id": batch_id,
        "material_id": material_id,
        "requested": requested,
        "unit": unit,
        "allocations": allocations,
    }


# =============================================================================
# Adjust and reverse
# =============================================================================


@_store_errors("adjust")
def adjust(
    allocation_id: int,
    new_quantity: float,
    new_unit: Optional[str] = None,
    batch_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Change an allocation's quantity, moving only the difference on the lot.

    Steps:
    1. update the allocation (compensation: restore its old quantity and unit)
    2. compare-and-set the lot balance
    then an adjust event recording the signed delta. The event is
    best-effort: if it cannot be written the quantity change stands and a
    warning is logged.

    A change within the balance epsilon only rewrites the allocation's
    unit; no balance write and no event.

    Args:
        allocation_id: Allocation to change
        new_quantity: New total quantity for the allocation
        new_unit: Unit of new_quantity (default: the lot's unit)
        batch_id: If given, the allocation must belong to this batch

    Returns:
        Dict with allocation_id, lot_id, quantity, unit, delta, new_balance
        and lot_event_id (None when no event was written)

    Raises:
        AllocationNotFound: Missing, or not part of batch_id
        InsufficientBalance: The increase exceeds the lot balance
        LotUnavailable: Increasing consumption of a recalled or quarantined lot
    """
    requested = _validate_quantity(new_quantity)
    allocation = _require_allocation(allocation_id, batch_id)
    lot = allocation.lot or _require_lot(allocation.lot_id)

    new_amount = _to_lot_unit(requested, new_unit, lot)
    if not math.isfinite(new_amount) or new_amount <= 0:
        raise InvalidQuantity(new_quantity)
    existing = convert(allocation.quantity_used, allocation.unit, lot.unit)
    delta = new_amount - existing
    epsilon = _epsilon()

    if abs(delta) <= epsilon:
        ledger_store.update_allocation_quantity(allocation_id, existing, lot.unit)
        log_operation(
            logger,
            operation="adjust",
            outcome="unchanged",
            level=logging.DEBUG,
            allocation_id=allocation_id,
            lot_id=lot.id,
        )
        return {
            "allocation_id": allocation_id,
            "lot_id": lot.id,
            "quantity": existing,
            "unit": lot.unit,
            "delta": 0.0,
            "new_balance": lot.current_balance,
            "lot_event_id": None,
        }

    if delta > 0 and lot.status in _UNAVAILABLE_STATUSES:
        raise LotUnavailable(lot.id, lot.status)

    if lot.current_balance - delta < -epsilon:
        available = lot.current_balance + existing
        log_operation(
            logger,
            operation="adjust",
            outcome="insufficient_balance",
            level=logging.WARNING,
            allocation_id=allocation_id,
            lot_id=lot.id,
            requested=new_amount,
            available=available,
        )
        raise InsufficientBalance(new_amount, available, lot.unit, lot_id=lot.id)

    new_balance = max(0.0, lot.current_balance - delta)

    saga = Saga("adjust", logger, allocation_id=allocation_id, lot_id=lot.id)
    saga.step(
        "update_allocation",
        lambda: ledger_store.update_allocation_quantity(allocation_id, new_amount, lot.unit),
        compensation=lambda _: ledger_store.update_allocation_quantity(
            allocation_id, allocation.quantity_used, allocation.unit
        ),
    )
    saga.step(
        "update_balance",
        lambda: ledger_store.compare_and_set_balance(
            lot.id, lot.current_balance, lot.version, new_balance
        ),
    )
    saga.run()

    event_id = None
    try:
        event_id = ledger_store.insert_lot_event(
            lot.id,
            LotEventType.ADJUST.value,
            delta,
            new_balance,
            batch_id=allocation.batch_id,
            allocation_id=allocation_id,
            reason=(
                f"adjusted from {format_quantity(existing, lot.unit)}"
                f" to {format_quantity(new_amount, lot.unit)}"
            ),
        )
    except Exception as exc:
        log_operation(
            logger,
            operation="adjust",
            outcome="event_write_failed",
            level=logging.WARNING,
            allocation_id=allocation_id,
            lot_id=lot.id,
            error=str(exc),
        )

    log_operation(
        logger,
        operation="adjust",
        outcome="success",
        allocation_id=allocation_id,
        lot_id=lot.id,
        delta=delta,
        new_balance=new_balance,
    )
    return {
        "allocation_id": allocation_id,
        "lot_id": lot.id,
        "quantity": new_amount,
        "unit": lot.unit,
        "delta": delta,
        "new_balance": new_balance,
        "lot_event_id": event_id,
    }


@_store_errors("reverse")
def reverse(allocation_id: int, batch_id: Optional[int] = None) -> Dict[str, Any]:
    """Delete an allocation and put its quantity back on the lot.

    Steps:
    1. delete the allocation (no compensation: it is not re-inserted)
    2. add the quantity back onto the lot, re-reading the lot and trying
       again when another write changed it first
    then a best-effort restore event. If step 2 still fails the result is
    PartialFailureUncompensated; reconcile_lot() shows the gap and the
    caller is responsible for repairing it.

    Returns:
        Dict with allocation_id, lot_id, restored quantity, unit,
        new_balance and lot_event_id (None when no event was written)
    """
    allocation = _require_allocation(allocation_id, batch_id)
    lot = allocation.lot or _require_lot(allocation.lot_id)

    restored = convert(allocation.quantity_used, allocation.unit, lot.unit)

    saga = Saga("reverse", logger, allocation_id=allocation_id, lot_id=lot.id)
    saga.step("delete_allocation", lambda: ledger_store.delete_allocation(allocation_id))
    saga.step("restore_balance", lambda: _restore_balance(lot, restored))
    new_balance = saga.run()["restore_balance"]

    event_id = None
    try:
        event_id = ledger_store.insert_lot_event(
            lot.id,
            LotEventType.RESTORE.value,
            -restored,
            new_balance,
            batch_id=allocation.batch_id,
            allocation_id=allocation_id,
            reason="allocation reversed",
        )
    except Exception as exc:
        log_operation(
            logger,
            operation="reverse",
            outcome="event_write_failed",
            level=logging.WARNING,
            allocation_id=allocation_id,
            lot_id=lot.id,
            error=str(exc),
        )

    log_operation(
        logger,
        operation="reverse",
        outcome="success",
        allocation_id=allocation_id,
        lot_id=lot.id,
        restored=restored,
        new_balance=new_balance,
    )
    return {
        "allocation_id": allocation_id,
        "lot_id": lot.id,
        "quantity": restored,
        "unit": lot.unit,
        "new_balance": new_balance,
        "lot_event_id": event_id,
    }


# =============================================================================
# Recall
# =============================================================================


@_store_errors("recall_lot")
def recall_lot(
    lot_id: int,
    reason: str,
    notes: Optional[str] = None,
    initiated_by: Optional[str] = None,
) -> Dict[str, Any]:
    """Recall a lot and flag every batch that consumed from it.

    Writes, in one transaction, the lot's recalled status and recall
    metadata, a LotRecall with one row per affected batch, each affected
    batch's release_status, and a zero-quantity recall event. Balances
    are never changed.

    Returns:
        Dict with recall_id, lot_id, lot_event_id, affected batch_ids and
        the (unchanged) current_balance

    Raises:
        ValidationError: If reason is empty
        LotNotFound: If the lot doesn't exist
    """
    reason = _require_reason(reason, "recall_lot")
    result = ledger_store.record_lot_recall(lot_id, reason, notes=notes, initiated_by=initiated_by)

    log_operation(
        logger,
        operation="recall_lot",
        outcome="success",
        level=logging.WARNING,
        lot_id=lot_id,
        recall_id=result["recall_id"],
        affected_batches=result["batch_ids"],
    )
    return {"lot_id": lot_id, **result}


@_store_errors("recall_batch")
def recall_batch(batch_id: int, reason: str, notes: Optional[str] = None) -> Dict[str, Any]:
    """Flag a single batch as recalled.

    A released batch drops back to completed so it cannot ship.

    Raises:
        ValidationError: If reason is empty
        BatchNotFound: If the batch doesn't exist
    """
    reason = _require_reason(reason, "recall_batch")
    result = ledger_store.flag_batch_recalled(batch_id, reason, notes=notes)
    log_operation(
        logger,
        operation="recall_batch",
        outcome="success",
        level=logging.WARNING,
        batch_id=batch_id,
    )
    return result


# =============================================================================
# Receipt and removal
# =============================================================================


def _material_unit(material_id: int) -> str:
    material = ledger_store.load_material(material_id)
    if material is None:
        raise MaterialNotFound(material_id)
    return material.unit


@_store_errors("receive_lot")
def receive_lot(
    material_id: int,
    lot_number: str,
    quantity: float,
    unit: Optional[str] = None,
    received_date: Optional[date] = None,
    supplier_id: Optional[int] = None,
    internal_lot_code: Optional[str] = None,
    expiry_date: Optional[date] = None,
    unit_cost=None,
    quarantine: bool = False,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """Receive a lot: balance starts at the received quantity, with a receive event.

    Args:
        material_id: Material received
        lot_number: Supplier's lot number
        quantity: Quantity received
        unit: Canonical unit for the lot (default: the material's unit)
        received_date: Date of receipt (default: today)
        supplier_id: Optional supplier
        internal_lot_code: Code assigned at receiving (generated when omitted)
        expiry_date: Optional expiry date
        unit_cost: Optional cost per unit
        quarantine: Receive on hold (not allocatable)
        notes: Optional notes

    Returns:
        Dict with lot_id, lot_event_id, internal_lot_code, current_balance, unit, status
    """
    received = _validate_quantity(quantity)

    errors: List[str] = []
    if not lot_number or not str(lot_number).strip():
        errors.append("Lot number is required")

    material_unit = _material_unit(material_id)
    lot_unit = normalize_unit(unit or material_unit)
    if lot_unit is None:
        errors.append(f"Unknown unit: {unit!r}")
    if errors:
        raise ValidationError(errors)

    received_on = received_date or date.today()
    code = internal_lot_code or f"LOT-{received_on:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"
    status = LotStatus.QUARANTINE.value if quarantine else LotStatus.ACTIVE.value

    ids = ledger_store.insert_lot(
        material_id=material_id,
        lot_number=str(lot_number).strip(),
        internal_lot_code=code,
        quantity=received,
        unit=lot_unit,
        received_date=received_on,
        supplier_id=supplier_id,
        expiry_date=expiry_date,
        unit_cost=unit_cost,
        status=status,
        notes=notes,
    )

    log_operation(
        logger,
        operation="receive_lot",
        outcome="success",
        lot_id=ids["lot_id"],
        material_id=material_id,
        quantity=received,
    )
    return {
        **ids,
        "internal_lot_code": code,
        "current_balance": received,
        "unit": lot_unit,
        "status": status,
    }


@_store_errors("remove_lot")
def remove_lot(lot_id: int) -> Dict[str, Any]:
    """Operator-initiated removal of a lot with its allocations and events.

    This is the one path that deletes allocation records without putting
    quantity back anywhere: the lot itself is gone.
    """
    counts = ledger_store.delete_lot_cascade(lot_id)
    log_operation(
        logger,
        operation="remove_lot",
        outcome="success",
        level=logging.WARNING,
        lot_id=lot_id,
        **counts,
    )
    return {"lot_id": lot_id, **counts}


# =============================================================================
# Forensics
# =============================================================================


def reconcile_lot(lot_id: int) -> Dict[str, Any]:
    """Check a lot against the ledger invariant.

    Returns:
        Dict with quantity_received, current_balance, consumed,
        allocated, discrepancy (consumed - allocated) and consistent
    """
    lot = _require_lot(lot_id)
    allocated = ledger_store.allocated_total(lot_id, lot.unit)
    consumed = lot.quantity_received - lot.current_balance
    discrepancy = consumed - allocated
    consistent = abs(discrepancy) <= _epsilon()

    if not consistent:
        log_operation(
            logger,
            operation="reconcile_lot",
            outcome="discrepancy",
            level=logging.WARNING,
            lot_id=lot_id,
            discrepancy=discrepancy,
        )

    return {
        "lot_id": lot_id,
        "unit": lot.unit,
        "quantity_received": lot.quantity_received,
        "current_balance": lot.current_balance,
        "consumed": consumed,
        "allocated": allocated,
        "discrepancy": discrepancy,
        "consistent": consistent,
    }


def get_lot_events(lot_id: int) -> List[Dict[str, Any]]:
    """A lot's audit trail, oldest first."""
    _require_lot(lot_id)
    return ledger_store.list_lot_events(lot_id)
