# ============================================================================
# src/prescription_pipeline/core/step_base.py
# ============================================================================
"""
Abstract Pipeline Step

Every step of the prescription pipeline inherits from this base class.

Every step must implement:
- execute(ctx): Main processing logic, returns details for observers
- name: StepName identifying the step

Every step gets:
- Logging
- Timing
- Execution metrics
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict
import logging

from .context.enums import StepName
from .context.run_context import RunContext


class PipelineStep(ABC):
    """
    Abstract base class for pipeline steps.

    Steps read from and write to the shared RunContext. They raise on
    failure; the orchestrator decides whether the run continues.
    """

    name: StepName

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.get_name()}")
        self._execution_count = 0
        self._total_duration = 0.0

    @abstractmethod
    async def execute(self, ctx: RunContext) -> Dict[str, Any]:
        """
        Main step logic.

        Args:
            ctx: Shared run context (read and modify)

        Returns:
            Details published with the step's Done update, e.g.
            {"flagged": 1, "names": ["Warfarin"]}
        """
        pass

    def get_name(self) -> str:
        return self.name.value

    async def run(self, ctx: RunContext) -> Dict[str, Any]:
        """
        Wrapper around execute() that handles logging and timing.

        This method is called by the orchestrator, not execute() directly.
        Failures are logged and re-raised.
        """
        step_name = self.get_name()
        start_time = datetime.now()

        self.logger.info(f"[{ctx.prescription_id}] Executing {step_name}")

        try:
            details = await self.execute(ctx)
        except Exception as e:
            duration = (datetime.now() - start_time).total_seconds()
            self.logger.error(f"[{ctx.prescription_id}] {step_name} failed after {duration:.2f}s: {e}")
            raise

        duration = (datetime.now() - start_time).total_seconds()
        self._execution_count += 1
        self._total_duration += duration

        self.logger.info(f"[{ctx.prescription_id}] {step_name} completed in {duration:.2f}s")
        return {**details, "duration_seconds": round(duration, 3)}

    def get_metrics(self) -> Dict[str, Any]:
        avg_duration = (
            self._total_duration / self._execution_count
            if self._execution_count > 0
            else 0.0
        )

        return {
            "step": self.get_name(),
            "execution_count": self._execution_count,
            "total_duration_seconds": self._total_duration,
            "average_duration_seconds": avg_duration,
        }
