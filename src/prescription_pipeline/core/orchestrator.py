# ============================================================================
# src/prescription_pipeline/core/orchestrator.py
# ============================================================================
"""
Prescription Pipeline Orchestrator

This is the MAIN entry point for processing an extracted prescription.

Flow (fixed order, one step at a time):
1. flag      - select medications needing manual review
2. schedule  - build reminder timestamps, checkpoint
3. calendar  - create one calendar event per reminder, checkpoint
4. safety    - cache-first safety profile
5. persist   - write every artifact, then the processing status

Continuation policy: flag and schedule failures are fatal and stop the
run; calendar, safety and persist failures are recorded and the run
moves on. A status update is pushed on every transition.

Runs for the same prescription id are serialized; different ids run
independently.
"""

import asyncio
from contextlib import aclosing
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, Iterable, List, Optional
import logging

from ..calendar.synchronizer import CalendarSynchronizer
from ..extractors.intake import PrescriptionIntake
from ..extractors.structured_extractor import StructuredExtractor
from ..processors.flag_engine import FlagEngine
from ..processors.safety_analyzer import SafetyAnalyzer
from ..processors.schedule_builder import ScheduleBuilder
from ..utils.exceptions import (
    CalendarUnreachableError,
    PersistenceWriteError,
    PipelineCancelledError,
)
from ..utils.logging import LogAdapter
from .audit import AuditLogger
from .context.artifacts import SafetyProfile
from .context.enums import StepName
from .context.medication import Prescription
from .context.run_context import RunContext
from .context.run_state import PipelineRun, StepStatusUpdate
from .locks import KeyedLock
from .repository import PrescriptionRepository
from .step_base import PipelineStep
from .steps import CalendarStep, FlagStep, PersistStep, SafetyStep, ScheduleStep

logger = logging.getLogger(__name__)

CANCELLED_REASON = "cancelled"

DEFAULT_FATAL_STEPS = frozenset({StepName.FLAG, StepName.SCHEDULE})


def failure_reason(error: BaseException) -> str:
    """Human-readable reason for a Failed step status."""
    return str(error) or error.__class__.__name__


def failure_details(error: BaseException) -> Dict:
    details = {"error_type": error.__class__.__name__}
    if isinstance(error, CalendarUnreachableError) and error.partial is not None:
        details["partial"] = error.partial.summary()
    if isinstance(error, PersistenceWriteError):
        details["failed_artifacts"] = dict(error.failed_artifacts)
    return details


class PipelineOrchestrator:
    """
    Sequences the pipeline steps against one prescription.

    All collaborators are injected; the orchestrator holds no global state
    beyond its own per-id lock registry.
    """

    def __init__(
        self,
        repository: PrescriptionRepository,
        safety_analyzer: SafetyAnalyzer,
        calendar_synchronizer: CalendarSynchronizer,
        flag_engine: Optional[FlagEngine] = None,
        schedule_builder: Optional[ScheduleBuilder] = None,
        extractor: Optional[StructuredExtractor] = None,
        audit_logger: Optional[AuditLogger] = None,
        fatal_steps: Optional[Iterable[StepName]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.safety_analyzer = safety_analyzer
        self.calendar_synchronizer = calendar_synchronizer
        self.extractor = extractor
        self.audit = audit_logger
        self.fatal_steps = frozenset(fatal_steps) if fatal_steps is not None else DEFAULT_FATAL_STEPS
        self.clock = clock or (lambda: datetime.now().astimezone())
        self.locks = KeyedLock()

        self.steps: List[PipelineStep] = [
            FlagStep(flag_engine or FlagEngine(), repository),
            ScheduleStep(schedule_builder or ScheduleBuilder(), repository),
            CalendarStep(calendar_synchronizer, repository),
            SafetyStep(safety_analyzer),
            PersistStep(repository),
        ]

        logger.info("Pipeline orchestrator initialized")

    # ========================================================================
    # INTAKE
    # ========================================================================

    async def ingest_text(self, text: str) -> Prescription:
        """
        Extract medications from recognized text and save the prescription.

        Extraction errors propagate to the caller; no run is started.
        """
        if self.extractor is None:
            raise ValueError("No structured extractor configured")
        return await PrescriptionIntake(self.extractor, self.repository).ingest_text(text)

    async def run_pipeline_from_text(
        self,
        text: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[StepStatusUpdate]:
        prescription = await self.ingest_text(text)
        async with aclosing(self.run_pipeline(prescription, cancel_event)) as updates:
            async for update in updates:
                yield update

    # ========================================================================
    # MAIN PROCESSING PIPELINE
    # ========================================================================

    async def run_pipeline(
        self,
        prescription: Prescription,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[StepStatusUpdate]:
        """
        Run every step and stream a StepStatusUpdate per transition.

        Example:
            async for update in orchestrator.run_pipeline(prescription):
                print(update.step.value, update.status)
        """
        run = PipelineRun(prescription.id)
        async with aclosing(self._execute(prescription, run, cancel_event)) as updates:
            async for update in updates:
                yield update

    async def run(
        self,
        prescription: Prescription,
        cancel_event: Optional[asyncio.Event] = None,
        progress_callback: Optional[Callable[[StepStatusUpdate], None]] = None,
    ) -> PipelineRun:
        """
        Run the pipeline to the end and return the finished PipelineRun.

        Args:
            prescription: Prescription to process (medications frozen for the run)
            cancel_event: Set it to abort the step in progress
            progress_callback: Optional callback for real-time progress updates
        """
        run = PipelineRun(prescription.id)
        async with aclosing(self._execute(prescription, run, cancel_event)) as updates:
            async for update in updates:
                if progress_callback:
                    progress_callback(update)
        return run

    async def get_cached_safety_profile(self, prescription_id: str) -> Optional[SafetyProfile]:
        return await self.repository.get_safety_profile(prescription_id)

    def get_metrics(self) -> Dict:
        """Execution counts and durations per step."""
        return {
            "steps": [step.get_metrics() for step in self.steps],
            "active_prescriptions": len(self.locks),
            "llm": self.safety_analyzer.llm.get_statistics(),
        }

    async def close(self):
        """Release HTTP sessions held by the AI and calendar clients."""
        await self.safety_analyzer.llm.close()
        await self.calendar_synchronizer.client.close()

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _record(self, update: StepStatusUpdate, log: LogAdapter) -> StepStatusUpdate:
        log.info(f"{update.step.value} -> {update.status}")
        if self.audit is not None:
            self.audit.log_transition(update)
        return update

    async def _run_step(self, step: PipelineStep, ctx: RunContext) -> Dict:
        """Run one step, aborting it if the cancel signal fires first."""
        ctx.raise_if_cancelled()

        task = asyncio.ensure_future(step.run(ctx))
        if ctx.cancel_event is None:
            return await task

        waiter = asyncio.ensure_future(ctx.cancel_event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # Let the step finish its own cleanup before unwinding
            task.cancel()
            waiter.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise

        if task.done():
            waiter.cancel()
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise PipelineCancelledError(CANCELLED_REASON)

    async def _execute(
        self,
        prescription: Prescription,
        run: PipelineRun,
        cancel_event: Optional[asyncio.Event],
    ) -> AsyncIterator[StepStatusUpdate]:
        log = LogAdapter(logger, {"prescription_id": prescription.id, "run_id": run.run_id})

        async with self.locks.hold(prescription.id):
            ctx = RunContext(
                prescription=prescription,
                run=run,
                now=self.clock(),
                cancel_event=cancel_event,
            )
            log.info(f"Starting pipeline for {len(ctx.medications)} medication(s)")

            try:
                for step in self.steps:
                    yield self._record(run.start(step.name), log)

                    try:
                        details = await self._run_step(step, ctx)
                    except asyncio.CancelledError:
                        # Caller's task was cancelled: record, then let it unwind
                        self._record(run.fail(step.name, CANCELLED_REASON), log)
                        raise
                    except PipelineCancelledError:
                        yield self._record(run.fail(step.name, CANCELLED_REASON), log)
                        break
                    except Exception as e:
                        yield self._record(
                            run.fail(step.name, failure_reason(e), failure_details(e)), log
                        )
                        if step.name in self.fatal_steps:
                            log.warning(f"{step.name.value} failed, stopping run")
                            break
                        continue

                    yield self._record(run.complete(step.name, details), log)
            finally:
                run.finish()
                if self.audit is not None:
                    self.audit.log_run_complete(run)
                log.info(f"Pipeline finished: {run}")
                log.debug(f"Run summary: {ctx.get_summary()}")
