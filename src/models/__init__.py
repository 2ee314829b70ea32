"""
Database models package.

This package contains all SQLAlchemy ORM models for the material ledger.
"""

from .base import Base, BaseModel
from .enums import (
    BatchStatus,
    LotEventType,
    LotStatus,
    MaterialCategory,
    RecallStatus,
    ReleaseStatus,
)
from .material import Material
from .supplier import Supplier
from .lot import Lot
from .lot_event import LotEvent
from .recipe import Recipe, RecipeIngredient
from .batch import Batch
from .batch_lot_usage import BatchLotUsage
from .batch_ingredient import BatchIngredient, BatchCureAudit
from .lot_recall import LotRecall, LotRecallBatch
from .project_setting import ProjectSetting

__all__ = [
    "Base",
    "BaseModel",
    # Enums
    "BatchStatus",
    "LotEventType",
    "LotStatus",
    "MaterialCategory",
    "RecallStatus",
    "ReleaseStatus",
    # Inventory
    "Material",
    "Supplier",
    "Lot",
    "LotEvent",
    # Recipes and production
    "Recipe",
    "RecipeIngredient",
    "Batch",
    "BatchLotUsage",
    "BatchIngredient",
    "BatchCureAudit",
    # Recalls
    "LotRecall",
    "LotRecallBatch",
    # Settings
    "ProjectSetting",
]
