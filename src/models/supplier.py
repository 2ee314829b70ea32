"""
Supplier model for the vendors lots are received from.

Traceability views report the supplier of every contributing lot so a
finished-goods recall can be traced back to a specific shipment.
"""

from sqlalchemy import Boolean, Column, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class Supplier(BaseModel):
    """
    Supplier model.

    Attributes:
        name: Supplier name (e.g., "Prairie Meats")
        supplier_code: Optional short code
        certification_status: "approved", "pending" or "suspended"
        contact_email: Optional contact for recall notifications
        notes: Optional notes
        is_active: Soft delete flag

    Relationships:
        lots: Lots received from this supplier
    """

    __tablename__ = "suppliers"

    name = Column(String(200), nullable=False, index=True)
    supplier_code = Column(String(50), nullable=True, unique=True)
    certification_status = Column(String(20), nullable=True)
    contact_email = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    lots = relationship("Lot", back_populates="supplier")
