# ============================================================================
# src/prescription_pipeline/constants/layout.py
# ============================================================================
"""
Logical document layout for persisted prescriptions.

prescriptions/{id}                      -> prescription + processing status
prescriptions/{id}/schedule/schedule    -> reminder sets
prescriptions/{id}/safety/safetyInfo    -> safety profile
prescriptions/{id}/calendarEvents/eventIds -> calendar event refs
prescriptions/{id}/flags/flags          -> manual review flags
prescriptions/{id}/checklist/checklist  -> dose checklist
"""

PRESCRIPTIONS_COLLECTION = "prescriptions"

# sub-collection -> fixed document name
SCHEDULE = ("schedule", "schedule")
SAFETY = ("safety", "safetyInfo")
CALENDAR_EVENTS = ("calendarEvents", "eventIds")
FLAGS = ("flags", "flags")
CHECKLIST = ("checklist", "checklist")

ARTIFACT_LAYOUT = {
    "schedule": SCHEDULE,
    "safety": SAFETY,
    "calendarEvents": CALENDAR_EVENTS,
    "flags": FLAGS,
    "checklist": CHECKLIST,
}


def sub_collection_path(prescription_id: str, sub_collection: str) -> str:
    """Collection path for one of a prescription's artifact sub-collections."""
    return f"{PRESCRIPTIONS_COLLECTION}/{prescription_id}/{sub_collection}"

# Device-level anonymous sign-in, reused across restarts
IDENTITY_COLLECTION = "identity"
ANONYMOUS_USER_DOCUMENT = "anonymous"
