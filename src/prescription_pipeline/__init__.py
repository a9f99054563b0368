# ============================================================================
# src/prescription_pipeline/__init__.py
# ============================================================================
"""
Prescription Pipeline

Turns an extracted prescription into a flagged, scheduled, calendar-synced
and safety-annotated record:

    flag -> schedule -> calendar -> safety -> persist
"""

from .core.context import Medication, Prescription, ProcessingStatus, StepName, StepState
from .core.orchestrator import PipelineOrchestrator

__version__ = "1.0.0"

__all__ = [
    "Medication",
    "Prescription",
    "ProcessingStatus",
    "StepName",
    "StepState",
    "PipelineOrchestrator",
]
