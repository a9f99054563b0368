# src/prescription_pipeline/core/context/__init__.py

from .enums import StepName, StepState, ProcessingStatus, STEP_ORDER
from .medication import Medication, Prescription
from .artifacts import (
    FlagEntry,
    ReminderSet,
    CalendarEventRef,
    CalendarFailure,
    CalendarSyncResult,
    MedicationSafetyInfo,
    SafetyProfile,
    ChecklistItem,
    reminder_key,
)
from .run_state import StepStatus, StepStatusUpdate, PipelineRun
from .run_context import RunContext

__all__ = [
    "StepName",
    "StepState",
    "ProcessingStatus",
    "STEP_ORDER",
    "Medication",
    "Prescription",
    "FlagEntry",
    "ReminderSet",
    "CalendarEventRef",
    "CalendarFailure",
    "CalendarSyncResult",
    "MedicationSafetyInfo",
    "SafetyProfile",
    "ChecklistItem",
    "reminder_key",
    "StepStatus",
    "StepStatusUpdate",
    "PipelineRun",
    "RunContext",
]
