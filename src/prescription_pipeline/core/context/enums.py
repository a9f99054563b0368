# ============================================================================
# src/prescription_pipeline/core/context/enums.py
# ============================================================================
"""
Pipeline Enums
- Step names (fixed run order)
- Step states
- Coarse persisted processing status
"""

from enum import Enum


class StepName(str, Enum):
    FLAG = "flag"
    SCHEDULE = "schedule"
    CALENDAR = "calendar"
    SAFETY = "safety"
    PERSIST = "persist"


# Fixed global run order
STEP_ORDER = (
    StepName.FLAG,
    StepName.SCHEDULE,
    StepName.CALENDAR,
    StepName.SAFETY,
    StepName.PERSIST,
)


class StepState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class ProcessingStatus(str, Enum):
    EXTRACTED = "extracted"
    SCHEDULED = "scheduled"
    CALENDAR_ADDED = "calendar_added"
    SAFETY_ANALYZED = "safety_analyzed"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    def at_least(self, other: "ProcessingStatus") -> bool:
        return self.rank >= other.rank


_STATUS_RANK = {status: index for index, status in enumerate(ProcessingStatus)}
