"""Service layer exception classes for Jerky Ledger.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the ledger.

Exception Hierarchy:
    ServiceError (base)
    ├── NotFoundError
    │   ├── LotNotFound
    │   ├── AllocationNotFound
    │   ├── RecipeNotFound
    │   ├── BatchNotFound
    │   └── MaterialNotFound
    ├── MaterialMismatch
    ├── InsufficientBalance
    ├── InvalidQuantity
    ├── LotUnavailable
    ├── UnitMismatchError
    ├── ConcurrentModification
    ├── PartialFailureCompensated
    ├── PartialFailureUncompensated
    ├── ValidationError
    └── DatabaseError
"""

from typing import List, Optional, Sequence


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class NotFoundError(ServiceError):
    """Base class for "referenced record does not exist" errors."""

    entity = "Record"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} with ID {entity_id} not found")


class LotNotFound(NotFoundError):
    """Raised when a lot cannot be found by ID.

    Example:
        >>> raise LotNotFound(12)
        LotNotFound: Lot with ID 12 not found
    """

    entity = "Lot"

    @property
    def lot_id(self):
        return self.entity_id


class AllocationNotFound(NotFoundError):
    """Raised when an allocation cannot be found, or is not part of the given batch."""

    entity = "Allocation"

    @property
    def allocation_id(self):
        return self.entity_id


class RecipeNotFound(NotFoundError):
    entity = "Recipe"

    @property
    def recipe_id(self):
        return self.entity_id


class BatchNotFound(NotFoundError):
    entity = "Batch"

    @property
    def batch_id(self):
        return self.entity_id


class MaterialNotFound(NotFoundError):
    entity = "Material"

    @property
    def material_id(self):
        return self.entity_id


class MaterialMismatch(ServiceError):
    """Raised when the material named by a caller differs from the lot's material.

    Args:
        lot_id: Lot being allocated from
        expected_material_id: Material the lot holds
        given_material_id: Material the caller asked for
    """

    def __init__(self, lot_id: int, expected_material_id: int, given_material_id: int):
        self.lot_id = lot_id
        self.expected_material_id = expected_material_id
        self.given_material_id = given_material_id
        super().__init__(
            f"Lot {lot_id} holds material {expected_material_id}, "
            f"not material {given_material_id}"
        )


class InsufficientBalance(ServiceError):
    """Raised when a lot (or a set of lots) cannot cover a requested quantity.

    Args:
        requested: Quantity asked for, in ``unit``
        available: Quantity that could be supplied, in ``unit``
        unit: Unit of both quantities
        lot_id: Lot checked, or None for a multi-lot (FIFO) request

    Example:
        >>> raise InsufficientBalance(500.0, 120.0, "g", lot_id=3)
        InsufficientBalance: Insufficient balance in lot 3: requested 500.0 g, available 120.0 g
    """

    def __init__(
        self, requested: float, available: float, unit: str, lot_id: Optional[int] = None
    ):
        self.requested = requested
        self.available = available
        self.unit = unit
        self.lot_id = lot_id
        where = f"lot {lot_id}" if lot_id is not None else "available lots"
        super().__init__(
            f"Insufficient balance in {where}: requested {requested} {unit}, "
            f"available {available} {unit}"
        )


class InvalidQuantity(ServiceError):
    """Raised when a quantity is non-finite or not strictly positive."""

    def __init__(self, quantity, message: Optional[str] = None):
        self.quantity = quantity
        super().__init__(message or f"Quantity must be a finite number > 0, got {quantity!r}")


class LotUnavailable(ServiceError):
    """Raised when allocating from a lot that is recalled or in quarantine."""

    def __init__(self, lot_id: int, status: str):
        self.lot_id = lot_id
        self.status = status
        super().__init__(f"Lot {lot_id} is {status} and cannot be allocated")


class UnitMismatchError(ServiceError):
    """Raised by strict unit conversion when two units cannot be converted."""

    def __init__(self, from_unit: str, to_unit: str):
        self.from_unit = from_unit
        self.to_unit = to_unit
        super().__init__(f"Cannot convert {from_unit!r} to {to_unit!r}")


class ConcurrentModification(ServiceError):
    """Raised when a lot balance compare-and-set loses to another writer.

    Args:
        lot_id: Lot whose balance changed underneath the caller
        expected_version: Version the caller read
        expected_balance: Balance the caller read
    """

    def __init__(self, lot_id: int, expected_version: int, expected_balance: float):
        self.lot_id = lot_id
        self.expected_version = expected_version
        self.expected_balance = expected_balance
        super().__init__(
            f"Lot {lot_id} was modified concurrently "
            f"(expected version {expected_version}, balance {expected_balance})"
        )


class PartialFailureCompensated(ServiceError):
    """Raised when a multi-step write failed and every completed step was undone.

    Args:
        step: Name of the step that failed
        cause: The exception raised by that step
    """

    def __init__(self, step: str, cause: Exception):
        self.step = step
        self.cause = cause
        super().__init__(f"Step '{step}' failed and earlier steps were rolled back: {cause}")


class PartialFailureUncompensated(ServiceError):
    """Raised when a multi-step write failed and could not be fully undone.

    The ledger may be inconsistent; reconcile_lot() reports the discrepancy.

    Args:
        step: Name of the step that failed
        cause: The exception raised by that step
        compensation_errors: (step name, exception) pairs for compensations that
            failed, or for completed steps that had no compensation
    """

    def __init__(
        self,
        step: str,
        cause: Exception,
        compensation_errors: Optional[Sequence[tuple]] = None,
    ):
        self.step = step
        self.cause = cause
        self.compensation_errors: List[tuple] = list(compensation_errors or [])
        failed = ", ".join(name for name, _ in self.compensation_errors) or "none"
        super().__init__(
            f"Step '{step}' failed and could not be rolled back "
            f"(uncompensated steps: {failed}): {cause}"
        )


class ValidationError(ServiceError):
    """Raised when data validation fails."""

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
