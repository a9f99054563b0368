# ============================================================================
# src/prescription_pipeline/core/context/run_state.py
# ============================================================================
"""
Pipeline run state machine
- StepStatus: state of one step plus failure reason
- StepStatusUpdate: event pushed to observers on every transition
- PipelineRun: per-invocation status table with guarded transitions
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import uuid

from .enums import StepName, StepState, STEP_ORDER
from ...utils.exceptions import InvalidStepTransitionError


# Legal moves: Pending -> Running -> {Done | Failed}
_ALLOWED_TRANSITIONS = {
    StepState.PENDING: {StepState.RUNNING},
    StepState.RUNNING: {StepState.DONE, StepState.FAILED},
    StepState.DONE: set(),
    StepState.FAILED: set(),
}


@dataclass(frozen=True)
class StepStatus:
    state: StepState = StepState.PENDING
    reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (StepState.DONE, StepState.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"state": self.state.value}
        if self.reason is not None:
            data["reason"] = self.reason
        return data

    def __str__(self) -> str:
        if self.state == StepState.FAILED:
            return f"failed({self.reason})"
        return self.state.value


@dataclass
class StepStatusUpdate:
    run_id: str
    prescription_id: str
    step: StepName
    status: StepStatus
    statuses: Dict[str, Dict[str, Any]]
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "prescription_id": self.prescription_id,
            "step": self.step.value,
            "status": self.status.to_dict(),
            "statuses": self.statuses,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class PipelineRun:
    """
    One execution of the ordered step sequence for a single prescription.

    Not persisted; only derived artifacts and the coarse ProcessingStatus
    outlive it. Every step starts Pending. A step can only start once all
    earlier steps reached a terminal state.
    """

    def __init__(self, prescription_id: str, run_id: Optional[str] = None):
        self.prescription_id = prescription_id
        self.run_id = run_id or str(uuid.uuid4())
        self.started_at = datetime.now()
        self.completed_at: Optional[datetime] = None
        self._statuses: Dict[StepName, StepStatus] = {
            step: StepStatus() for step in STEP_ORDER
        }
        self.history: List[StepStatusUpdate] = []

    def status(self, step: StepName) -> StepStatus:
        return self._statuses[step]

    def _transition(self, step: StepName, new: StepStatus, details: Optional[Dict[str, Any]] = None) -> StepStatusUpdate:
        current = self._statuses[step]
        if new.state not in _ALLOWED_TRANSITIONS[current.state]:
            raise InvalidStepTransitionError(step.value, current.state.value, new.state.value)

        if new.state == StepState.RUNNING:
            for earlier in STEP_ORDER[:STEP_ORDER.index(step)]:
                if not self._statuses[earlier].is_terminal:
                    raise InvalidStepTransitionError(step.value, current.state.value, new.state.value)

        self._statuses[step] = new
        update = StepStatusUpdate(
            run_id=self.run_id,
            prescription_id=self.prescription_id,
            step=step,
            status=new,
            statuses=self.snapshot(),
            details=details or {},
        )
        self.history.append(update)
        return update

    def start(self, step: StepName) -> StepStatusUpdate:
        return self._transition(step, StepStatus(StepState.RUNNING))

    def complete(self, step: StepName, details: Optional[Dict[str, Any]] = None) -> StepStatusUpdate:
        return self._transition(step, StepStatus(StepState.DONE), details)

    def fail(self, step: StepName, reason: str, details: Optional[Dict[str, Any]] = None) -> StepStatusUpdate:
        return self._transition(step, StepStatus(StepState.FAILED, reason), details)

    def finish(self):
        self.completed_at = datetime.now()

    @property
    def all_done(self) -> bool:
        return all(s.state == StepState.DONE for s in self._statuses.values())

    @property
    def failed_steps(self) -> List[StepName]:
        return [step for step in STEP_ORDER if self._statuses[step].state == StepState.FAILED]

    @property
    def duration(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {step.value: self._statuses[step].to_dict() for step in STEP_ORDER}

    def get_summary(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "prescription_id": self.prescription_id,
            "statuses": self.snapshot(),
            "failed_steps": [step.value for step in self.failed_steps],
            "duration": self.duration,
        }

    def __repr__(self) -> str:
        inner = ", ".join(f"{step.value}={self._statuses[step]}" for step in STEP_ORDER)
        return f"PipelineRun({self.prescription_id}: {inner})"
