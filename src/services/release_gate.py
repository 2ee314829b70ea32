"""Release Gate contract - what a batch release decision reads.

The ledger does not move batches to released; an external QA workflow
does. These functions expose the data it needs: the critical ingredient
targets and whether each is fully allocated and within tolerance.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from src.utils.config import get_config

from .database import session_scope
from .logging_utils import get_service_logger, log_operation
from .target_resolver import IngredientTarget, get_batch_targets

logger = get_service_logger(__name__)


def get_critical_targets(
    batch_id: int, session: Optional[Session] = None
) -> List[IngredientTarget]:
    """Critical ingredient targets of a batch, in recipe order.

    Raises:
        BatchNotFound: If the batch doesn't exist
    """
    resolved = get_batch_targets(batch_id, session=session)
    return [target for target in resolved.targets if target.is_critical]


def _blocking_reasons(target: IngredientTarget, epsilon: float) -> List[str]:
    reasons = []
    if target.remaining_amount > epsilon:
        reasons.append("not_fully_allocated")
    if not target.within_tolerance:
        reasons.append("out_of_tolerance")
    return reasons


def _check_release_readiness_impl(batch_id: int, session: Session) -> Dict[str, Any]:
    epsilon = get_config().balance_epsilon
    blocking = []
    for target in get_critical_targets(batch_id, session=session):
        reasons = _blocking_reasons(target, epsilon)
        if reasons:
            blocking.append(
                {
                    "material_id": target.material_id,
                    "material_name": target.material_name,
                    "target_quantity": target.target_quantity,
                    "used_amount": target.used_amount,
                    "actual_amount": target.actual_amount,
                    "remaining_amount": target.remaining_amount,
                    "unit": target.unit,
                    "reasons": reasons,
                }
            )

    ready = not blocking
    log_operation(
        logger,
        operation="check_release_readiness",
        outcome="ready" if ready else "blocked",
        batch_id=batch_id,
        blocking_count=len(blocking),
    )
    return {"batch_id": batch_id, "ready": ready, "blocking": blocking}


def check_release_readiness(batch_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Whether every critical ingredient is fully allocated and within tolerance.

    A critical target blocks release when its remaining amount exceeds
    the balance epsilon, or when its measured amount (recorded actual, or
    allocated amount when no actual exists) is outside tolerance.

    Returns:
        Dict with batch_id, ready and blocking (one entry per blocking
        target, with the reasons it blocks)

    Raises:
        BatchNotFound: If the batch doesn't exist
    """
    if session is not None:
        return _check_release_readiness_impl(batch_id, session)
    with session_scope() as sess:
        return _check_release_readiness_impl(batch_id, sess)
