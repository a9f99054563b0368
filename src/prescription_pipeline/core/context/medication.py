# ============================================================================
# src/prescription_pipeline/core/context/medication.py
# ============================================================================
"""
Medication and Prescription records
- Medication is immutable once extracted (edit via dataclasses.replace)
- Empty optional strings are stored as None
"""

from dataclasses import dataclass, field
import datetime
from typing import Any, Dict, List, Optional, Tuple
import uuid


OPTIONAL_TEXT_FIELDS = ("dosage", "frequency", "duration", "route", "original_text")


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and not value.strip():
        return None
    return value


@dataclass(frozen=True)
class Medication:
    name: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    route: Optional[str] = None
    original_text: Optional[str] = None  # OCR snippet the record came from
    confidence: Optional[float] = None   # not clamped to [0, 1]
    uncertain: bool = False

    def __post_init__(self):
        for name in OPTIONAL_TEXT_FIELDS:
            object.__setattr__(self, name, blank_to_none(getattr(self, name)))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "name": self.name, "uncertain": self.uncertain}
        for key, value in (
            ("dosage", self.dosage),
            ("frequency", self.frequency),
            ("duration", self.duration),
            ("route", self.route),
            ("originalText", self.original_text),
            ("confidence", self.confidence),
        ):
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Medication":
        kwargs = dict(
            name=data["name"],
            dosage=data.get("dosage"),
            frequency=data.get("frequency"),
            duration=data.get("duration"),
            route=data.get("route"),
            original_text=data.get("originalText"),
            confidence=data.get("confidence"),
            uncertain=bool(data.get("uncertain", False)),
        )
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(**kwargs)


@dataclass
class Prescription:
    """
    One scanned prescription.

    The medication list may be edited before a run; a run works on a
    frozen snapshot (see snapshot()).
    """
    medications: List[Medication] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    date: datetime.date = field(default_factory=datetime.date.today)
    user_id: Optional[str] = None  # set when persisted under an identity

    def snapshot(self) -> Tuple[Medication, ...]:
        return tuple(self.medications)

    def medication_names(self) -> List[str]:
        return [med.name for med in self.medications]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "date": self.date.isoformat(),
            "medications": [med.to_dict() for med in self.medications],
        }
        if self.user_id is not None:
            data["userId"] = self.user_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Prescription":
        return cls(
            id=data["id"],
            date=datetime.date.fromisoformat(data["date"]),
            medications=[Medication.from_dict(m) for m in data.get("medications", [])],
            user_id=data.get("userId"),
        )
