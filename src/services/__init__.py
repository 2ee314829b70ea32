"""Services package - Business logic layer for Jerky Ledger.

This package contains all service modules that provide business logic
and database operations for the material ledger.

Architecture:
- Services: Stateless functions organized by concern
- Transactions: Managed via session_scope(); ledger writes use one scope per saga step
- Exceptions: Consistent error handling via ServiceError hierarchy
- Logging: Structured records via logging_utils.log_operation()

Service Modules:
- recipe_scaler: Batch scale factor and recipe scaling preview
- cure_calculator: ppm-based cure dosing and evaluation
- target_resolver: Per-ingredient targets for a batch
- lot_ledger: Allocate, adjust, reverse, recall and receive lots
- traceability_service: Batch trace and lot impact views
- release_gate: Critical targets and release readiness
- actuals_service: Measured ingredient actuals and cure audit
- settings_service: Cure ppm settings

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- ledger_store: Data-access boundary for lot ledger writes
- saga: Ordered steps with reverse-order compensation
- unit_converter: Unit conversion utilities
"""

from . import (
    database,
    unit_converter,
    recipe_scaler,
    cure_calculator,
    settings_service,
    target_resolver,
    saga,
    ledger_store,
    lot_ledger,
    traceability_service,
    release_gate,
    actuals_service,
)

from .exceptions import (
    ServiceError,
    NotFoundError,
    LotNotFound,
    AllocationNotFound,
    RecipeNotFound,
    BatchNotFound,
    MaterialNotFound,
    MaterialMismatch,
    InsufficientBalance,
    InvalidQuantity,
    LotUnavailable,
    UnitMismatchError,
    ConcurrentModification,
    PartialFailureCompensated,
    PartialFailureUncompensated,
    ValidationError,
    DatabaseError,
)

from .database import (
    session_scope,
    init_database,
    get_engine,
    reset_database,
)

__all__ = [
    # Modules
    "database",
    "unit_converter",
    "recipe_scaler",
    "cure_calculator",
    "settings_service",
    "target_resolver",
    "saga",
    "ledger_store",
    "lot_ledger",
    "traceability_service",
    "release_gate",
    "actuals_service",
    # Exceptions
    "ServiceError",
    "NotFoundError",
    "LotNotFound",
    "AllocationNotFound",
    "RecipeNotFound",
    "BatchNotFound",
    "MaterialNotFound",
    "MaterialMismatch",
    "InsufficientBalance",
    "InvalidQuantity",
    "LotUnavailable",
    "UnitMismatchError",
    "ConcurrentModification",
    "PartialFailureCompensated",
    "PartialFailureUncompensated",
    "ValidationError",
    "DatabaseError",
    # Database
    "session_scope",
    "init_database",
    "get_engine",
    "reset_database",
]
