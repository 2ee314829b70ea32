"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across ledger writes, compensations
and read-side assemblers.

Usage:
    from src.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    # Log successful operation
    log_operation(
        logger,
        operation="allocate",
        outcome="success",
        lot_id=12,
        batch_id=4,
    )

    # Log a compensation run
    log_operation(
        logger,
        operation="allocate",
        outcome="compensated",
        level=logging.WARNING,
        failed_step="update_balance",
    )
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured logger instance with the 'jerky_ledger.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'jerky_ledger.services.lot_ledger'
    """
    # Extract just the module name if full path is provided
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"jerky_ledger.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging,
    so keys must not collide with LogRecord attributes (``name``, ``msg``...).

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "allocate", "recall_lot")
        outcome: Outcome description (e.g., "success", "compensated", "uncompensated")
        level: Log level (default: INFO). Use DEBUG for verbose/frequent logs.
        **context: Additional context fields (entity IDs, error details, etc.)
            Common fields:
            - lot_id / batch_id / allocation_id: Entities touched
            - new_balance: Lot balance after a write
            - failed_step: Saga step that raised
            - error: Error message if outcome is a failure

    Example:
        >>> log_operation(
        ...     logger,
        ...     operation="reverse",
        ...     outcome="uncompensated",
        ...     level=logging.ERROR,
        ...     allocation_id=7,
        ...     error="database is locked",
        ... )
        # Logs at ERROR level with allocation context
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
