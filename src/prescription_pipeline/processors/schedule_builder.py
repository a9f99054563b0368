# ============================================================================
# src/prescription_pipeline/processors/schedule_builder.py
# ============================================================================
"""
Schedule Builder

Derives reminder timestamps from free-text frequency. This is a coarse
heuristic, not a dosing engine:

- frequency mentions "twice" or the digit "2" -> reminders at now+1h and now+12h
- anything else (including no frequency)       -> one reminder at now+1h

Output is one ReminderSet per medication in input order. Given the same
medications and the same `now`, the output is identical.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from ..config.pipeline_config import pipeline_settings
from ..core.context.artifacts import ReminderSet
from ..core.context.medication import Medication

TWICE_MARKERS = ("twice", "2")


def is_twice_daily(frequency: Optional[str]) -> bool:
    if not frequency:
        return False
    text = frequency.lower()
    return any(marker in text for marker in TWICE_MARKERS)


class ScheduleBuilder:

    def __init__(
        self,
        first_dose_offset: Optional[timedelta] = None,
        second_dose_offset: Optional[timedelta] = None,
    ):
        self.first_dose_offset = first_dose_offset or timedelta(hours=pipeline_settings.FIRST_DOSE_OFFSET_HOURS)
        self.second_dose_offset = second_dose_offset or timedelta(hours=pipeline_settings.SECOND_DOSE_OFFSET_HOURS)

    def reminders_for(self, med: Medication, now: datetime) -> List[datetime]:
        reminders = [now + self.first_dose_offset]
        if is_twice_daily(med.frequency):
            reminders.append(now + self.second_dose_offset)
        return sorted(reminders)

    def build(self, medications: Iterable[Medication], now: datetime) -> List[ReminderSet]:
        """
        Args:
            medications: Frozen medication list of the run
            now: Reference instant; a naive value is taken as local time

        Returns:
            One ReminderSet per medication, keyed by the medication id
        """
        if now.tzinfo is None:
            now = now.astimezone()

        return [
            ReminderSet(medication=med, reminders=self.reminders_for(med, now))
            for med in medications
        ]
