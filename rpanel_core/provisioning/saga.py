"""
Ordered steps with compensating actions, for work that spans resources
which cannot share one transaction.

A Saga runs its steps' actions in order. If an action raises, the
compensations of the steps that already completed run in reverse order and
the original exception is re-raised. A compensation that itself fails is
logged and recorded on the error, never raised in place of the original.
"""

from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..constants import OperationStatus
from ..exceptions import BaseError, PersistenceError
from ..utils.logger import get_logger


class SagaStep:
    """
    One forward action and the action that undoes it.

    ``action`` takes no arguments; its return value is kept as the step's
    result and handed to ``compensation`` if the saga later unwinds.
    """

    def __init__(
        self,
        name: str,
        action: Callable[[], Any],
        compensation: Optional[Callable[[Any], None]] = None,
    ):
        self.name = name
        self.action = action
        self.compensation = compensation

    def __repr__(self):
        return f"<SagaStep({self.name})>"


class Saga:
    """Interpreter for an ordered list of SagaSteps."""

    def __init__(self, name: str, on_abort: Optional[Callable[[], None]] = None):
        """
        Args:
            name: Saga name used in logs and error context
            on_abort: Called once after a failed action, before any compensation
                (e.g. to roll back a dirty database session)
        """
        self.name = name
        self.on_abort = on_abort
        self.steps: List[SagaStep] = []
        self.results: Dict[str, Any] = {}
        self.completed: List[SagaStep] = []
        self.compensation_report: List[Dict[str, Any]] = []
        self.logger = get_logger()

    def add_step(
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

        Returns:
            Mapping of step name to the value its action returned

        Raises:
            The exception of the failing action, after compensation
        """
        for step in self.steps:
            try:
                self.results[step.name] = step.action()
            except Exception as e:
                self.logger.warning(
                    f"Saga step failed, compensating: {self.name}.{step.name}",
                    extra={
                        "saga": self.name,
                        "failed_step": step.name,
                        "completed_steps": [s.name for s in self.completed],
                        "error_type": type(e).__name__,
                    },
                )
                error = self._abort(step, e)
                if error is e:
                    raise
                raise error from e
            self.completed.append(step)
            self.logger.debug(f"Saga step done: {self.name}.{step.name}")
        return self.results

    def _abort(self, failed_step: SagaStep, error: Exception) -> Exception:
        if self.on_abort is not None:
            try:
                self.on_abort()
            except Exception as abort_error:
                self.logger.error(
                    f"Saga abort hook failed: {self.name}",
                    extra={"saga": self.name, "error": str(abort_error)},
                )

        failures = self.compensate()

        if isinstance(error, SQLAlchemyError):
            error = PersistenceError(
                f"Store failure during {self.name}.{failed_step.name}", cause=error
            )
        if isinstance(error, BaseError):
            error.add_context(
                saga=self.name,
                failed_step=failed_step.name,
                compensated_steps=[
                    entry["step"]
                    for entry in self.compensation_report
                    if entry["status"] == OperationStatus.COMPENSATED.value
                ],
                compensation_failures=failures,
            )
        return error

    def compensate(self) -> List[Dict[str, str]]:
        """
        Undo completed steps in reverse order.

        Returns:
            One entry per compensation that raised
        """
        failures: List[Dict[str, str]] = []
        for step in reversed(self.completed):
            if step.compensation is None:
                continue
            try:
                step.compensation(self.results.get(step.name))
            except Exception as e:
                self.logger.error(
                    f"Compensation failed: {self.name}.{step.name}",
                    extra={"saga": self.name, "step": step.name, "error": str(e)},
                )
                failures.append({"step": step.name, "error": str(e)})
                self.compensation_report.append(
                    {"step": step.name, "status": OperationStatus.ERROR.value}
                )
            else:
                self.logger.info(
                    f"Compensated: {self.name}.{step.name}",
                    extra={"saga": self.name, "step": step.name},
                )
                self.compensation_report.append(
                    {"step": step.name, "status": OperationStatus.COMPENSATED.value}
                )
        self.completed = []
        return failures
