# ============================================================================
# src/prescription_pipeline/core/context/artifacts.py
# ============================================================================
"""
Derived artifacts produced by pipeline steps
- FlagEntry: medication marked for manual review
- ReminderSet: dose timestamps for one medication
- CalendarEventRef / CalendarSyncResult: external calendar events created
- MedicationSafetyInfo / SafetyProfile: AI safety lookup result
- ChecklistItem: per-medication dose checklist
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set
import uuid

from .medication import Medication


def reminder_key(entry_id: str, reminder_at: datetime) -> str:
    """Stable identity of one reminder across runs."""
    return f"{entry_id}@{reminder_at.isoformat()}"


@dataclass
class FlagEntry:
    name: str
    reason: str
    uncertain: bool = False
    confidence: Optional[float] = None
    original_text: Optional[str] = None
    medication_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "reason": self.reason,
            "uncertain": self.uncertain,
        }
        if self.confidence is not None:
            data["confidence"] = self.confidence
        if self.original_text is not None:
            data["originalText"] = self.original_text
        if self.medication_id is not None:
            data["medId"] = self.medication_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlagEntry":
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            name=data["name"],
            reason=data["reason"],
            uncertain=bool(data.get("uncertain", False)),
            confidence=data.get("confidence"),
            original_text=data.get("originalText"),
            medication_id=data.get("medId"),
        )


@dataclass
class ReminderSet:
    """Ordered reminder instants for one medication (non-decreasing)."""
    medication: Medication
    reminders: List[datetime] = field(default_factory=list)
    id: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = self.medication.id

    def reminder_keys(self) -> List[str]:
        return [reminder_key(self.id, at) for at in self.reminders]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "medId": self.medication.id,
            "name": self.medication.name,
            "medication": self.medication.to_dict(),
            "reminders": [at.isoformat() for at in self.reminders],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReminderSet":
        return cls(
            id=data["id"],
            medication=Medication.from_dict(data["medication"]),
            reminders=[datetime.fromisoformat(at) for at in data.get("reminders", [])],
        )


@dataclass
class CalendarEventRef:
    entry_id: str
    reminder_at: datetime
    event_id: str

    @property
    def key(self) -> str:
        return reminder_key(self.entry_id, self.reminder_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entryId": self.entry_id,
            "reminderAt": self.reminder_at.isoformat(),
            "eventId": self.event_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalendarEventRef":
        return cls(
            entry_id=data["entryId"],
            reminder_at=datetime.fromisoformat(data["reminderAt"]),
            event_id=data["eventId"],
        )


@dataclass
class CalendarFailure:
    entry_id: str
    reminder_at: datetime
    reason: str

    @property
    def key(self) -> str:
        return reminder_key(self.entry_id, self.reminder_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entryId": self.entry_id,
            "reminderAt": self.reminder_at.isoformat(),
            "reason": self.reason,
        }


@dataclass
class CalendarSyncResult:
    """
    Outcome of syncing a schedule to the calendar.

    refs holds one entry per reminder that has an event; failures holds
    the reminders whose insert failed in this run. entry_ids keeps every
    schedule entry so fully failed ones still show up in event_map().
    """
    entry_ids: List[str] = field(default_factory=list)
    refs: List[CalendarEventRef] = field(default_factory=list)
    failures: List[CalendarFailure] = field(default_factory=list)
    reused: int = 0  # refs carried over from an earlier run

    def recorded_keys(self) -> Set[str]:
        return {ref.key for ref in self.refs}

    def event_map(self) -> Dict[str, List[str]]:
        mapping: Dict[str, List[str]] = {entry_id: [] for entry_id in self.entry_ids}
        for ref in self.refs:
            mapping.setdefault(ref.entry_id, []).append(ref.event_id)
        return mapping

    def summary(self) -> Dict[str, Any]:
        return {
            "attempted": len(self.refs) - self.reused + len(self.failures),
            "created": len(self.refs) - self.reused,
            "reused": self.reused,
            "failed": len(self.failures),
            "failures": [failure.to_dict() for failure in self.failures],
            "entries_without_events": [
                entry_id for entry_id, ids in self.event_map().items() if not ids
            ],
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": self.event_map(),
            "refs": [ref.to_dict() for ref in self.refs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalendarSyncResult":
        return cls(
            entry_ids=list(data.get("events", {}).keys()),
            refs=[CalendarEventRef.from_dict(r) for r in data.get("refs", [])],
        )


SAFETY_LIST_FIELDS = (
    ("common_side_effects", "commonSideEffects"),
    ("serious_side_effects", "seriousSideEffects"),
    ("precautions", "precautions"),
    ("food_interactions", "foodInteractions"),
    ("drug_interactions", "drugInteractions"),
    ("contraindications", "contraindications"),
    ("when_to_seek_help", "whenToSeekHelp"),
    ("general_advice", "generalAdvice"),
)


@dataclass
class MedicationSafetyInfo:
    medication_name: str
    common_side_effects: List[str] = field(default_factory=list)
    serious_side_effects: List[str] = field(default_factory=list)
    precautions: List[str] = field(default_factory=list)
    food_interactions: List[str] = field(default_factory=list)
    drug_interactions: List[str] = field(default_factory=list)
    contraindications: List[str] = field(default_factory=list)
    when_to_seek_help: List[str] = field(default_factory=list)
    general_advice: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"medicationName": self.medication_name}
        for attr, key in SAFETY_LIST_FIELDS:
            data[key] = list(getattr(self, attr))
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MedicationSafetyInfo":
        return cls(
            medication_name=data["medicationName"],
            **{attr: list(data.get(key, [])) for attr, key in SAFETY_LIST_FIELDS},
        )


@dataclass
class SafetyProfile:
    medications: List[MedicationSafetyInfo]
    general_warning: str = ""

    def for_medication(self, name: str) -> Optional[MedicationSafetyInfo]:
        wanted = name.strip().lower()
        for info in self.medications:
            if info.medication_name.strip().lower() == wanted:
                return info
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medications": [info.to_dict() for info in self.medications],
            "generalWarning": self.general_warning,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SafetyProfile":
        return cls(
            medications=[MedicationSafetyInfo.from_dict(m) for m in data.get("medications", [])],
            general_warning=data.get("generalWarning", ""),
        )


@dataclass
class ChecklistItem:
    med_name: str
    scheduled_times: List[datetime] = field(default_factory=list)
    taken: List[bool] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "medName": self.med_name,
            "scheduledTimes": [at.isoformat() for at in self.scheduled_times],
            "taken": list(self.taken),
        }
