"""
Enumerations for the material ledger.

This module contains enums shared across ledger models:
- MaterialCategory: What kind of substance a material is
- LotStatus: Lifecycle of a received lot
- LotEventType: Kind of balance change recorded in the audit trail
- BatchStatus / ReleaseStatus: Production run lifecycle and release gating
- RecallStatus: Whether a lot recall is still being worked
"""

from enum import Enum


class MaterialCategory(str, Enum):
    """
    Material classification.

    BEEF is the raw material a batch is scaled from; CURE marks curing
    agents that are dosed by ppm instead of fixed recipe quantity.
    """

    BEEF = "beef"
    SPICE = "spice"
    CURE = "cure"
    ADDITIVE = "additive"
    PACKAGING = "packaging"
    OTHER = "other"


class LotStatus(str, Enum):
    """
    Lot lifecycle status.

    Values:
        ACTIVE: Available for allocation
        QUARANTINE: Held (e.g. pending certificate of analysis); not allocatable
        EXHAUSTED: Balance reached zero; restored to ACTIVE if an allocation is reversed
        RECALLED: Recalled by an operator; never allocatable again
    """

    ACTIVE = "active"
    QUARANTINE = "quarantine"
    EXHAUSTED = "exhausted"
    RECALLED = "recalled"


class LotEventType(str, Enum):
    """Kind of entry in the lot audit trail."""

    RECEIVE = "receive"
    CONSUME = "consume"
    ADJUST = "adjust"
    RESTORE = "restore"
    RECALL = "recall"


class BatchStatus(str, Enum):
    """
    Production batch lifecycle.

    planned -> in_progress -> completed -> released, or cancelled.
    """

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    RELEASED = "released"
    CANCELLED = "cancelled"


class ReleaseStatus(str, Enum):
    """Release gating state tracked alongside BatchStatus."""

    PENDING = "pending"
    APPROVED = "approved"
    RECALLED = "recalled"


class RecallStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"
