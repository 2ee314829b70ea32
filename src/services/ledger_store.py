"""Ledger Store - data-access boundary for the lot ledger.

Every write here runs in its own session_scope() and is committed before
it returns, so each call is one durable saga step that only its
compensation can undo. Reads return frozen snapshots rather than ORM
objects; optional joins (a lot's material or supplier, an allocation's
lot) are normalized to "at most one related record", None when absent.

Balance writes go through compare_and_set_balance() only.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import case, func

from src.utils.config import get_config
from src.utils.datetime_utils import utc_now

from ..models import (
    Batch,
    BatchLotUsage,
    BatchStatus,
    Lot,
    LotEvent,
    LotEventType,
    LotRecall,
    LotRecallBatch,
    LotStatus,
    Material,
    ReleaseStatus,
)
from .database import session_scope
from .exceptions import (
    AllocationNotFound,
    BatchNotFound,
    ConcurrentModification,
    InvalidQuantity,
    LotNotFound,
)
from .logging_utils import get_service_logger
from .unit_converter import convert

logger = get_service_logger(__name__)


# =============================================================================
# Snapshots
# =============================================================================


@dataclass(frozen=True)
class MaterialRef:
    id: int
    name: str
    material_code: Optional[str]
    category: str
    unit: str


@dataclass(frozen=True)
class SupplierRef:
    id: int
    name: str
    supplier_code: Optional[str]


@dataclass(frozen=True)
class LotSnapshot:
    """Lot state as read; version and current_balance feed compare-and-set."""

    id: int
    material_id: int
    supplier_id: Optional[int]
    lot_number: str
    internal_lot_code: str
    received_date: Optional[date]
    expiry_date: Optional[date]
    quantity_received: float
    current_balance: float
    unit: str
    status: str
    version: int
    material: Optional[MaterialRef] = None
    supplier: Optional[SupplierRef] = None


@dataclass(frozen=True)
class AllocationSnapshot:
    id: int
    batch_id: int
    lot_id: int
    material_id: int
    quantity_used: float
    unit: str
    allocated_at: Optional[datetime]
    lot: Optional[LotSnapshot] = None


@dataclass(frozen=True)
class BatchSnapshot:
    id: int
    batch_number: str
    recipe_id: Optional[int]
    status: str
    release_status: str


def _material_ref(material) -> Optional[MaterialRef]:
    if material is None:
        return None
    return MaterialRef(
        id=material.id,
        name=material.name,
        material_code=material.material_code,
        category=material.category,
        unit=material.unit,
    )


def _supplier_ref(supplier) -> Optional[SupplierRef]:
    if supplier is None:
        return None
    return SupplierRef(id=supplier.id, name=supplier.name, supplier_code=supplier.supplier_code)


def _lot_snapshot(lot: Lot) -> LotSnapshot:
    return LotSnapshot(
        id=lot.id,
        material_id=lot.material_id,
        supplier_id=lot.supplier_id,
        lot_number=lot.lot_number,
        internal_lot_code=lot.internal_lot_code,
        received_date=lot.received_date,
        expiry_date=lot.expiry_date,
        quantity_received=lot.quantity_received,
        current_balance=lot.current_balance,
        unit=lot.unit,
        status=lot.status,
        version=lot.version,
        material=_material_ref(lot.material),
        supplier=_supplier_ref(lot.supplier),
    )


def _allocation_snapshot(allocation: BatchLotUsage) -> AllocationSnapshot:
    return AllocationSnapshot(
        id=allocation.id,
        batch_id=allocation.batch_id,
        lot_id=allocation.lot_id,
        material_id=allocation.material_id,
        quantity_used=allocation.quantity_used,
        unit=allocation.unit,
        allocated_at=allocation.allocated_at,
        lot=_lot_snapshot(allocation.lot) if allocation.lot is not None else None,
    )


# =============================================================================
# Reads
# =============================================================================


def load_lot(lot_id: int) -> Optional[LotSnapshot]:
    with session_scope() as session:
        lot = session.query(Lot).filter(Lot.id == lot_id).first()
        return _lot_snapshot(lot) if lot is not None else None


def load_allocation(allocation_id: int) -> Optional[AllocationSnapshot]:
    with session_scope() as session:
        allocation = (
            session.query(BatchLotUsage).filter(BatchLotUsage.id == allocation_id).first()
        )
        return _allocation_snapshot(allocation) if allocation is not None else None


def load_material(material_id: int) -> Optional[MaterialRef]:
    with session_scope() as session:
        return _material_ref(
            session.query(Material).filter(Material.id == material_id).first()
        )


def load_batch(batch_id: int) -> Optional[BatchSnapshot]:
    with session_scope() as session:
        batch = session.query(Batch).filter(Batch.id == batch_id).first()
        if batch is None:
            return None
        return BatchSnapshot(
            id=batch.id,
            batch_number=batch.batch_number,
            recipe_id=batch.recipe_id,
            status=batch.status,
            release_status=batch.release_status,
        )


def list_allocatable_lots(material_id: int) -> List[LotSnapshot]:
    """Active lots of a material with a positive balance, oldest received first."""
    epsilon = get_config().balance_epsilon
    with session_scope() as session:
        lots = (
            session.query(Lot)
            .filter(
                Lot.material_id == material_id,
                Lot.status == LotStatus.ACTIVE.value,
                Lot.current_balance > epsilon,
            )
            .order_by(Lot.received_date, Lot.id)
            .all()
        )
        return [_lot_snapshot(lot) for lot in lots]


# =============================================================================
# Allocation writes
# =============================================================================


def insert_allocation(
    batch_id: int, lot_id: int, material_id: int, quantity: float, unit: str
) -> int:
    """Insert an allocation and return its id."""
    with session_scope() as session:
        allocation = BatchLotUsage(
            batch_id=batch_id,
            lot_id=lot_id,
            material_id=material_id,
            quantity_used=quantity,
            unit=unit,
        )
        session.add(allocation)
        session.flush()
        return allocation.id


def update_allocation_quantity(allocation_id: int, quantity: float, unit: str) -> None:
    with session_scope() as session:
        updated = (
            session.query(BatchLotUsage)
            .filter(BatchLotUsage.id == allocation_id)
            .update(
                {
                    BatchLotUsage.quantity_used: quantity,
                    BatchLotUsage.unit: unit,
                    BatchLotUsage.updated_at: utc_now(),
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise AllocationNotFound(allocation_id)


def delete_allocation(allocation_id: int) -> None:
    with session_scope() as session:
        deleted = (
            session.query(BatchLotUsage)
            .filter(BatchLotUsage.id == allocation_id)
            .delete(synchronize_session=False)
        )
        if deleted == 0:
            raise AllocationNotFound(allocation_id)


# =============================================================================
# Lot event writes
# =============================================================================


def insert_lot_event(
    lot_id: int,
    event_type: str,
    quantity: float,
    balance_after: float,
    batch_id: Optional[int] = None,
    allocation_id: Optional[int] = None,
    reason: Optional[str] = None,
) -> int:
    """Append a lot event and return its id."""
    with session_scope() as session:
        event = LotEvent(
            lot_id=lot_id,
            event_type=event_type,
            quantity=quantity,
            balance_after=balance_after,
            batch_id=batch_id,
            allocation_id=allocation_id,
            reason=reason,
        )
        session.add(event)
        session.flush()
        return event.id


def delete_lot_event(event_id: int) -> None:
    """Remove an event written by a step that is being compensated."""
    with session_scope() as session:
        session.query(LotEvent).filter(LotEvent.id == event_id).delete(
            synchronize_session=False
        )


# =============================================================================
# Balance writes
# =============================================================================


def compare_and_set_balance(
    lot_id: int, expected_balance: float, expected_version: int, new_balance: float
) -> int:
    """
    Set a lot's balance if nobody changed it since it was read.

    Also bumps the version, and moves the lot between active and exhausted
    as the balance reaches or leaves zero. Recalled and quarantined lots
    keep their status.

    Args:
        lot_id: Lot to update
        expected_balance: Balance the caller read
        expected_version: Version the caller read
        new_balance: Balance to write (must be >= 0)

    Returns:
        The lot's new version

    Raises:
        InvalidQuantity: If new_balance is negative
        ConcurrentModification: If the lot no longer matches what was read
    """
    if new_balance < 0:
        raise InvalidQuantity(new_balance, f"Lot balance cannot go negative ({new_balance})")

    epsilon = get_config().balance_epsilon
    target_status = (
        LotStatus.EXHAUSTED.value if new_balance <= epsilon else LotStatus.ACTIVE.value
    )

    with session_scope() as session:
        updated = (
            session.query(Lot)
            .filter(
                Lot.id == lot_id,
                Lot.version == expected_version,
                Lot.current_balance == expected_balance,
            )
            .update(
                {
                    Lot.current_balance: new_balance,
                    Lot.version: Lot.version + 1,
                    Lot.status: case(
                        (
                            Lot.status.in_(
                                [LotStatus.ACTIVE.value, LotStatus.EXHAUSTED.value]
                            ),
                            target_status,
                        ),
                        else_=Lot.status,
                    ),
                    Lot.updated_at: utc_now(),
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            raise ConcurrentModification(lot_id, expected_version, expected_balance)

    return expected_version + 1


# =============================================================================
# Receipt, removal and recall
# =============================================================================


def insert_lot(
    material_id: int,
    lot_number: str,
    internal_lot_code: str,
    quantity: float,
    unit: str,
    received_date: date,
    supplier_id: Optional[int] = None,
    expiry_date: Optional[date] = None,
    unit_cost=None,
    status: str = LotStatus.ACTIVE.value,
    notes: Optional[str] = None,
) -> Dict[str, int]:
    """Create a lot and its receive event in one transaction."""
    with session_scope() as session:
        lot = Lot(
            material_id=material_id,
            supplier_id=supplier_id,
            lot_number=lot_number,
            internal_lot_code=internal_lot_code,
            received_date=received_date,
            expiry_date=expiry_date,
            quantity_received=quantity,
            current_balance=quantity,
            unit=unit,
            unit_cost=unit_cost,
            status=status,
            notes=notes,
        )
        session.add(lot)
        session.flush()

        event = LotEvent(
            lot_id=lot.id,
            event_type=LotEventType.RECEIVE.value,
            quantity=quantity,
            balance_after=quantity,
            reason="received",
        )
        session.add(event)
        session.flush()
        return {"lot_id": lot.id, "lot_event_id": event.id}


def delete_lot_cascade(lot_id: int) -> Dict[str, int]:
    """Delete a lot with its allocations and events. Returns deleted counts."""
    with session_scope() as session:
        lot = session.query(Lot).filter(Lot.id == lot_id).first()
        if lot is None:
            raise LotNotFound(lot_id)

        allocations = (
            session.query(BatchLotUsage)
            .filter(BatchLotUsage.lot_id == lot_id)
            .delete(synchronize_session=False)
        )
        events = (
            session.query(LotEvent)
            .filter(LotEvent.lot_id == lot_id)
            .delete(synchronize_session=False)
        )
        session.query(LotRecall).filter(LotRecall.lot_id == lot_id).delete(
            synchronize_session=False
        )
        session.query(Lot).filter(Lot.id == lot_id).delete(synchronize_session=False)
        return {"allocations_deleted": allocations, "events_deleted": events}


def record_lot_recall(
    lot_id: int,
    reason: str,
    notes: Optional[str] = None,
    initiated_by: Optional[str] = None,
) -> Dict[str, object]:
    """
    Flag a lot as recalled and fan the recall out to every batch that used it.

    Runs in one transaction: lot status and recall metadata, the LotRecall
    header, one LotRecallBatch per affected batch, each batch's
    release_status, and a zero-quantity recall event. Balances are not
    touched.
    """
    with session_scope() as session:
        lot = session.query(Lot).filter(Lot.id == lot_id).first()
        if lot is None:
            raise LotNotFound(lot_id)

        now = utc_now()
        lot.status = LotStatus.RECALLED.value
        lot.version = lot.version + 1
        lot.recall_reason = reason
        lot.recall_notes = notes
        lot.recall_initiated_at = now
        lot.recall_initiated_by = initiated_by

        recall = LotRecall(
            lot_id=lot_id,
            reason=reason,
            notes=notes,
            initiated_by=initiated_by,
            initiated_at=now,
        )
        session.add(recall)
        session.flush()

        batch_ids: Sequence[int] = [
            row[0]
            for row in session.query(BatchLotUsage.batch_id)
            .filter(BatchLotUsage.lot_id == lot_id)
            .distinct()
            .order_by(BatchLotUsage.batch_id)
            .all()
        ]

        for batch_id in batch_ids:
            session.add(LotRecallBatch(lot_recall_id=recall.id, batch_id=batch_id))
            batch = session.query(Batch).filter(Batch.id == batch_id).first()
            batch.release_status = ReleaseStatus.RECALLED.value
            batch.recall_reason = reason
            batch.recall_notes = notes
            batch.recalled_at = now

        event = LotEvent(
            lot_id=lot_id,
            event_type=LotEventType.RECALL.value,
            quantity=0.0,
            balance_after=lot.current_balance,
            reason=reason,
        )
        session.add(event)
        session.flush()

        return {
            "recall_id": recall.id,
            "lot_event_id": event.id,
            "batch_ids": list(batch_ids),
            "current_balance": lot.current_balance,
        }


def flag_batch_recalled(
    batch_id: int, reason: str, notes: Optional[str] = None
) -> Dict[str, object]:
    """Set a batch's release status to recalled; released batches drop back to completed."""
    with session_scope() as session:
        batch = session.query(Batch).filter(Batch.id == batch_id).first()
        if batch is None:
            raise BatchNotFound(batch_id)

        batch.release_status = ReleaseStatus.RECALLED.value
        batch.recall_reason = reason
        batch.recall_notes = notes
        batch.recalled_at = utc_now()
        if batch.status == BatchStatus.RELEASED.value:
            batch.status = BatchStatus.COMPLETED.value
        session.flush()
        return {
            "batch_id": batch.id,
            "status": batch.status,
            "release_status": batch.release_status,
        }


def allocated_total(lot_id: int, unit: str) -> float:
    """Sum of a lot's allocations, converted into ``unit``."""
    with session_scope() as session:
        rows = (
            session.query(BatchLotUsage.unit, func.sum(BatchLotUsage.quantity_used))
            .filter(BatchLotUsage.lot_id == lot_id)
            .group_by(BatchLotUsage.unit)
            .all()
        )
        return sum(convert(total or 0.0, row_unit, unit) for row_unit, total in rows)


def list_lot_events(lot_id: int) -> List[Dict[str, object]]:
    with session_scope() as session:
        events = (
            session.query(LotEvent)
            .filter(LotEvent.lot_id == lot_id)
            .order_by(LotEvent.id)
            .all()
        )
        return [event.to_dict() for event in events]
