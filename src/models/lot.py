"""
Lot model - a received, physically traceable quantity of one material.

The lot's current_balance is owned by the lot ledger service: it is only
changed through allocate / adjust / reverse, always with a compare-and-set
on the version column, and every change leaves a LotEvent behind.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import LotStatus


class Lot(BaseModel):
    """
    Lot model for traceable inventory.

    Attributes:
        material_id: Material this lot is made of
        supplier_id: Supplier the lot was received from (optional)
        lot_number: Supplier's lot number
        internal_lot_code: Code assigned at receiving
        received_date: Date of receipt (FIFO ordering)
        expiry_date: Optional expiry date
        quantity_received: Quantity received, in ``unit`` (IMMUTABLE)
        current_balance: Quantity still available, in ``unit`` (never negative)
        unit: Canonical unit of the balance
        unit_cost: Optional cost per unit
        status: LotStatus value
        version: Optimistic-lock counter, bumped on every balance or status write
        recall_*: Recall metadata, populated by a lot recall

    Relationships:
        material: Many-to-One with Material
        supplier: Many-to-One with Supplier
        events: One-to-Many with LotEvent (audit trail)
        allocations: One-to-Many with BatchLotUsage
    """

    __tablename__ = "lots"

    material_id = Column(
        Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    supplier_id = Column(
        Integer, ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True
    )

    lot_number = Column(String(100), nullable=False)
    internal_lot_code = Column(String(100), nullable=False, unique=True)
    received_date = Column(Date, nullable=False, index=True)
    expiry_date = Column(Date, nullable=True)

    quantity_received = Column(Float, nullable=False)
    current_balance = Column(Float, nullable=False)
    unit = Column(String(10), nullable=False, default="g")
    unit_cost = Column(Numeric(10, 4), nullable=True)

    status = Column(String(20), nullable=False, default=LotStatus.ACTIVE.value)
    version = Column(Integer, nullable=False, default=1)

    recall_reason = Column(Text, nullable=True)
    recall_notes = Column(Text, nullable=True)
    recall_initiated_at = Column(DateTime, nullable=True)
    recall_initiated_by = Column(String(200), nullable=True)

    notes = Column(Text, nullable=True)

    material = relationship("Material", back_populates="lots", lazy="joined")
    supplier = relationship("Supplier", back_populates="lots", lazy="joined")
    events = relationship(
        "LotEvent",
        back_populates="lot",
        order_by="LotEvent.id",
        cascade="all, delete-orphan",
    )
    allocations = relationship(
        "BatchLotUsage",
        back_populates="lot",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("quantity_received > 0", name="ck_lot_qty_received_positive"),
        CheckConstraint("current_balance >= 0", name="ck_lot_balance_non_negative"),
        CheckConstraint(
            "status IN ('active', 'quarantine', 'exhausted', 'recalled')",
            name="ck_lot_status_valid",
        ),
        Index("idx_lot_material_received", "material_id", "received_date"),
        Index("idx_lot_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"Lot(id={self.id}, lot_number='{self.lot_number}', "
            f"balance={self.current_balance} {self.unit}, status='{self.status}')"
        )

    @property
    def quantity_consumed(self) -> float:
        """quantity_received - current_balance, in the lot unit."""
        return self.quantity_received - self.current_balance
