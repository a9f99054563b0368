# ============================================================================
# src/prescription_pipeline/core/context/run_context.py
# ============================================================================
"""
RunContext
- Shared state handed from step to step within one pipeline run
- Carries the frozen medication snapshot and every derived artifact
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import asyncio
import logging

from .enums import ProcessingStatus, StepName, StepState
from .medication import Medication, Prescription
from .artifacts import (
    FlagEntry,
    ReminderSet,
    CalendarSyncResult,
    SafetyProfile,
    ChecklistItem,
)
from .run_state import PipelineRun
from ...utils.exceptions import PipelineCancelledError


@dataclass
class RunContext:
    """
    Complete state of one pipeline run.
    """
    prescription: Prescription
    run: PipelineRun
    medications: Tuple[Medication, ...] = ()
    now: datetime = field(default_factory=datetime.now)
    cancel_event: Optional[asyncio.Event] = None

    # Read from the store by the flag step
    persisted_status: Optional[ProcessingStatus] = None

    flags: List[FlagEntry] = field(default_factory=list)
    schedule: List[ReminderSet] = field(default_factory=list)
    schedule_reused: bool = False
    calendar: Optional[CalendarSyncResult] = None
    safety: Optional[SafetyProfile] = None
    checklist: List[ChecklistItem] = field(default_factory=list)

    # Per-artifact persistence failures (artifact -> reason)
    persist_failures: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.medications:
            self.medications = self.prescription.snapshot()

    @property
    def prescription_id(self) -> str:
        return self.prescription.id

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def raise_if_cancelled(self):
        if self.cancelled:
            raise PipelineCancelledError("cancelled")

    def add_warning(self, warning: str):
        self.warnings.append(warning)
        logging.getLogger(__name__).warning(f"[{self.prescription_id}] {warning}")

    def reached_status(self) -> Optional[ProcessingStatus]:
        """
        Highest ProcessingStatus backed by contiguous Done steps.

        flag+schedule -> scheduled, +calendar -> calendar_added,
        +safety -> safety_analyzed, everything -> completed.
        """
        if self.run.all_done:
            return ProcessingStatus.COMPLETED

        ladder = (
            ((StepName.FLAG, StepName.SCHEDULE), ProcessingStatus.SCHEDULED),
            ((StepName.CALENDAR,), ProcessingStatus.CALENDAR_ADDED),
            ((StepName.SAFETY,), ProcessingStatus.SAFETY_ANALYZED),
        )
        reached: Optional[ProcessingStatus] = None
        for steps, status in ladder:
            if all(self.run.status(step).state == StepState.DONE for step in steps):
                reached = status
            else:
                break
        return reached

    def get_summary(self) -> Dict[str, Any]:
        return {
            "prescription_id": self.prescription_id,
            "medications": len(self.medications),
            "flagged": [flag.name for flag in self.flags],
            "reminders": sum(len(entry.reminders) for entry in self.schedule),
            "schedule_reused": self.schedule_reused,
            "calendar": self.calendar.summary() if self.calendar else None,
            "safety_medications": len(self.safety.medications) if self.safety else 0,
            "persist_failures": dict(self.persist_failures),
            "warnings": list(self.warnings),
        }
