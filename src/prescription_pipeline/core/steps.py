# ============================================================================
# src/prescription_pipeline/core/steps.py
# ============================================================================
"""
Pipeline Steps

flag -> schedule -> calendar -> safety -> persist

Resumption rules:
- flag reads the persisted ProcessingStatus for the prescription
- schedule reuses the persisted schedule when it was built for exactly
  the same medications, and checkpoints prescription + flags + schedule
- calendar diffs against persisted event refs and checkpoints its refs,
  including partial results
- safety is cache-first
- persist writes each artifact on its own, status last
"""

import asyncio
from typing import Any, Dict, Optional

from ..calendar.synchronizer import CalendarSynchronizer
from ..processors.flag_engine import FlagEngine
from ..processors.safety_analyzer import SafetyAnalyzer
from ..processors.schedule_builder import ScheduleBuilder
from ..processors.summary import build_checklist
from ..utils.exceptions import (
    CalendarUnreachableError,
    PersistenceError,
    PersistenceWriteError,
    describe_failures,
)
from .context.artifacts import CalendarSyncResult
from .context.enums import ProcessingStatus, StepName
from .context.run_context import RunContext
from .repository import PrescriptionRepository
from .step_base import PipelineStep


class FlagStep(PipelineStep):
    name = StepName.FLAG

    def __init__(self, engine: FlagEngine, repository: PrescriptionRepository):
        super().__init__()
        self.engine = engine
        self.repository = repository

    async def execute(self, ctx: RunContext) -> Dict[str, Any]:
        ctx.persisted_status = await self.repository.get_status(ctx.prescription_id)
        ctx.flags = self.engine.flag(ctx.medications)

        return {
            "flagged": len(ctx.flags),
            "flags": [{"name": f.name, "reason": f.reason} for f in ctx.flags],
            "persisted_status": ctx.persisted_status.value if ctx.persisted_status else None,
        }


class ScheduleStep(PipelineStep):
    name = StepName.SCHEDULE

    def __init__(self, builder: ScheduleBuilder, repository: PrescriptionRepository):
        super().__init__()
        self.builder = builder
        self.repository = repository

    async def _reusable_schedule(self, ctx: RunContext):
        if ctx.persisted_status is None or not ctx.persisted_status.at_least(ProcessingStatus.SCHEDULED):
            return None
        persisted = await self.repository.get_schedule(ctx.prescription_id)
        if persisted is None:
            return None
        if [entry.medication for entry in persisted] != list(ctx.medications):
            self.logger.info(f"[{ctx.prescription_id}] Medications changed since last run, rebuilding schedule")
            return None
        return persisted

    async def execute(self, ctx: RunContext) -> Dict[str, Any]:
        reused = await self._reusable_schedule(ctx)
        if reused is not None:
            ctx.schedule = reused
            ctx.schedule_reused = True
            status = ctx.persisted_status
        else:
            ctx.schedule = self.builder.build(ctx.medications, ctx.now)
            status = ProcessingStatus.SCHEDULED

        # Checkpoint: later steps may resume from here
        await self.repository.save_flags(ctx.prescription_id, ctx.flags)
        await self.repository.save_schedule(ctx.prescription_id, ctx.schedule)
        await self.repository.save_prescription(ctx.prescription, status)

        return {
            "reused": ctx.schedule_reused,
            "entries": len(ctx.schedule),
            "reminders": sum(len(entry.reminders) for entry in ctx.schedule),
        }


class CalendarStep(PipelineStep):
    name = StepName.CALENDAR

    def __init__(self, synchronizer: CalendarSynchronizer, repository: PrescriptionRepository):
        super().__init__()
        self.synchronizer = synchronizer
        self.repository = repository

    async def _checkpoint(self, ctx: RunContext):
        await self.repository.save_calendar_events(ctx.prescription_id, ctx.calendar)

    async def _checkpoint_partial(self, ctx: RunContext, partial: CalendarSyncResult):
        ctx.calendar = partial
        try:
            await self._checkpoint(ctx)
        except (PersistenceError, TimeoutError) as write_error:
            ctx.add_warning(f"Could not record partial calendar events: {write_error}")

    async def execute(self, ctx: RunContext) -> Dict[str, Any]:
        existing = await self.repository.get_calendar_events(ctx.prescription_id)
        progress = CalendarSyncResult()

        try:
            ctx.calendar = await self.synchronizer.sync(
                ctx.prescription_id, ctx.schedule, existing, result=progress
            )
        except CalendarUnreachableError as e:
            if e.partial is not None:
                await self._checkpoint_partial(ctx, e.partial)
            raise
        except asyncio.CancelledError:
            # Events created before the cancel must not be inserted again
            if len(progress.refs) > progress.reused:
                await self._checkpoint_partial(ctx, progress)
            raise

        await self._checkpoint(ctx)

        summary = ctx.calendar.summary()
        if summary["failed"]:
            ctx.add_warning(f"{summary['failed']} calendar event(s) could not be created")
        return {**summary, "events": ctx.calendar.event_map()}


class SafetyStep(PipelineStep):
    name = StepName.SAFETY

    def __init__(self, analyzer: SafetyAnalyzer):
        super().__init__()
        self.analyzer = analyzer

    async def execute(self, ctx: RunContext) -> Dict[str, Any]:
        ctx.safety = await self.analyzer.analyze(
            ctx.prescription_id,
            [med.name for med in ctx.medications],
        )
        return {
            "medications": [info.medication_name for info in ctx.safety.medications],
            "general_warning": ctx.safety.general_warning,
        }


class PersistStep(PipelineStep):
    """
    Writes every artifact produced so far.

    A failed write is recorded against its artifact and does not undo
    the others. The prescription status goes last: `completed` only when
    every step succeeded, otherwise the highest status the run backs.
    """
    name = StepName.PERSIST

    def __init__(self, repository: PrescriptionRepository):
        super().__init__()
        self.repository = repository

    async def _write(self, ctx: RunContext, artifact: str, write) -> bool:
        try:
            await write()
            return True
        except (PersistenceError, TimeoutError) as e:
            ctx.persist_failures[artifact] = str(e)
            self.logger.warning(f"[{ctx.prescription_id}] Could not persist {artifact}: {e}")
            return False

    def final_status(self, ctx: RunContext) -> Optional[ProcessingStatus]:
        prior_steps_done = ctx.reached_status() == ProcessingStatus.SAFETY_ANALYZED
        if prior_steps_done and not ctx.persist_failures:
            return ProcessingStatus.COMPLETED
        return ctx.reached_status()

    async def execute(self, ctx: RunContext) -> Dict[str, Any]:
        pid = ctx.prescription_id
        ctx.checklist = build_checklist(ctx.schedule)

        writes = [
            ("prescription", lambda: self.repository.save_prescription(ctx.prescription)),
            ("flags", lambda: self.repository.save_flags(pid, ctx.flags)),
            ("schedule", lambda: self.repository.save_schedule(pid, ctx.schedule)),
        ]
        if ctx.calendar is not None:
            writes.append(("calendarEvents", lambda: self.repository.save_calendar_events(pid, ctx.calendar)))
        if ctx.safety is not None:
            writes.append(("safety", lambda: self.repository.save_safety_profile(pid, ctx.safety)))
        writes.append(("checklist", lambda: self.repository.save_checklist(pid, ctx.checklist)))

        written = []
        for artifact, write in writes:
            if await self._write(ctx, artifact, write):
                written.append(artifact)

        status = self.final_status(ctx)
        if status is not None:
            await self._write(ctx, "status", lambda: self.repository.set_status(pid, status))

        if ctx.persist_failures:
            raise PersistenceWriteError(
                "; ".join(describe_failures(ctx.persist_failures)),
                dict(ctx.persist_failures),
            )

        return {
            "status": status.value if status else None,
            "artifacts": written,
        }
