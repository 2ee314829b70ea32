"""Saga runner for multi-step ledger writes.

A ledger write touches several records (allocation, lot event, lot
balance) and each step commits on its own. A Saga runs the steps in
order; when one fails, the completed steps are undone by running their
compensations in reverse order.

Outcomes when a step fails:
- nothing had completed: the step's exception propagates unchanged
- every completed step was compensated: a ServiceError from the step
  propagates unchanged, anything else is wrapped in
  PartialFailureCompensated
- a completed step had no compensation, or a compensation raised:
  PartialFailureUncompensated, logged at ERROR

Usage:
    saga = Saga("allocate", logger)
    saga.step("insert_allocation", insert, compensation=lambda alloc_id: delete(alloc_id))
    saga.step("update_balance", update_balance)
    results = saga.run()
    allocation_id = results["insert_allocation"]
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .exceptions import PartialFailureCompensated, PartialFailureUncompensated, ServiceError
from .logging_utils import get_service_logger, log_operation


@dataclass
class SagaStep:
    """One forward action and the compensation that undoes it.

    The compensation receives the action's return value.
    """

    name: str
    action: Callable[[], Any]
    compensation: Optional[Callable[[Any], None]] = None


class Saga:
    """Ordered forward steps with reverse-order compensation."""

    def __init__(self, operation: str, logger: Optional[logging.Logger] = None, **context: Any):
        self.operation = operation
        self.logger = logger or get_service_logger(__name__)
        self.context = context
        self.steps: List[SagaStep] = []
        self.results: Dict[str, Any] = {}

    def step(
        self,
        name: str,
        action: Callable[[], Any],
        compensation: Optional[Callable[[Any], None]] = None,
    ) -> "Saga":
        self.steps.append(SagaStep(name, action, compensation))
        return self

    def run(self) -> Dict[str, Any]:
        """
        Execute every step in order.

        Later actions can read earlier results from ``self.results``.

        Returns:
            Dict mapping step name to the value its action returned

        Raises:
            PartialFailureCompensated: A non-service error was fully rolled back
            PartialFailureUncompensated: Rollback could not be completed
            ServiceError: A step raised it and everything was rolled back
        """
        self.results = {}
        completed: List[Tuple[SagaStep, Any]] = []

        for step in self.steps:
            try:
                result = step.action()
            except Exception as exc:
                if not completed:
                    raise
                error = self._unwind(step.name, exc, completed)
                if error is exc:
                    raise
                raise error from exc
            self.results[step.name] = result
            completed.append((step, result))

        return self.results

    def _unwind(
        self, failed_step: str, cause: Exception, completed: List[Tuple[SagaStep, Any]]
    ) -> Exception:
        """Compensate completed steps and return the exception to raise."""
        failures: List[Tuple[str, Optional[Exception]]] = []

        for step, result in reversed(completed):
            if step.compensation is None:
                failures.append((step.name, None))
                continue
            try:
                step.compensation(result)
            except Exception as comp_exc:
                failures.append((step.name, comp_exc))

        if failures:
            log_operation(
                self.logger,
                operation=self.operation,
                outcome="uncompensated",
                level=logging.ERROR,
                failed_step=failed_step,
                error=str(cause),
                uncompensated_steps=[name for name, _ in failures],
                **self.context,
            )
            return PartialFailureUncompensated(failed_step, cause, failures)

        log_operation(
            self.logger,
            operation=self.operation,
            outcome="compensated",
            level=logging.WARNING,
            failed_step=failed_step,
            error=str(cause),
            **self.context,
        )
        if isinstance(cause, ServiceError):
            return cause
        return PartialFailureCompensated(failed_step, cause)


def run_saga(operation: str, steps: List[SagaStep], logger=None, **context: Any) -> Dict[str, Any]:
    """Run a list of SagaSteps; see Saga.run()."""
    saga = Saga(operation, logger, **context)
    saga.steps.extend(steps)
    return saga.run()
