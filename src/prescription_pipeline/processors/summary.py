# ============================================================================
# src/prescription_pipeline/processors/summary.py
# ============================================================================
"""
Patient-facing outputs derived from a processed prescription
- Dose checklist (one item per scheduled medication)
- Plain-text summary card for sharing
"""

from typing import List, Optional

from ..core.context.artifacts import ChecklistItem, ReminderSet, SafetyProfile
from ..core.context.medication import Prescription


def build_checklist(schedule: List[ReminderSet]) -> List[ChecklistItem]:
    return [
        ChecklistItem(
            med_name=entry.medication.name,
            scheduled_times=list(entry.reminders),
            taken=[False] * len(entry.reminders),
        )
        for entry in schedule
    ]


def export_summary_card(
    prescription: Prescription,
    safety: Optional[SafetyProfile] = None,
) -> str:
    """
    Render the prescription as a shareable text card.

    One line per medication: "• name dosage | frequency | duration".
    The safety profile's general warning is appended when given.
    """
    lines = [f"📝 Prescription Summary - {prescription.date.strftime('%b %d, %Y')}", ""]
    for med in prescription.medications:
        name = f"{med.name} {med.dosage}" if med.dosage else med.name
        lines.append(f"• {name} | {med.frequency or ''} | {med.duration or ''}")

    if safety is not None and safety.general_warning:
        lines.extend(["", f"⚠️ {safety.general_warning}"])

    return "\n".join(lines) + "\n"
