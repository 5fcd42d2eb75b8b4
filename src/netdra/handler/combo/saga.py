"""
Backward-recovery saga.

A saga is an ordered list of steps, each an action paired with an undo. The
steps run in order; when one fails, the undo of every step that already
succeeded runs in reverse order and the original exception is re-raised.
Undo failures are logged and otherwise ignored, so a failed undo can leave a
resource behind until the claim is unprepared.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Tuple

from netdra.config.logging_config import get_logger

log = get_logger(__name__)


@dataclass
class SagaStep:
    name: str
    action: Callable[[], Any]
    compensate: Callable[[Any], None]


class Saga:
    def __init__(self, name: str):
        self.name = name
        self.steps: List[SagaStep] = []

    def add_step(
        self,
        name: str,
        action: Callable[[], Any],
        compensate: Callable[[Any], None],
    ) -> "Saga":
        self.steps.append(SagaStep(name=name, action=action, compensate=compensate))
        return self

    def execute(self) -> List[Any]:
        """
        Run every step and return their results in order.

        Raises:
            Exception: Whatever the failing step raised, after compensation.
        """
        completed: List[Tuple[SagaStep, Any]] = []
        for step in self.steps:
            try:
                result = step.action()
            except Exception as e:
                log.error(f"{self.name}: step {step.name} failed: {e}")
                self._compensate(completed)
                raise
            completed.append((step, result))
        return [result for _, result in completed]

    def _compensate(self, completed: List[Tuple[SagaStep, Any]]) -> None:
        for step, result in reversed(completed):
            try:
                step.compensate(result)
                log.info(f"{self.name}: compensated step {step.name}")
            except Exception as e:
                log.warning(f"{self.name}: compensation of step {step.name} failed: {e}")
