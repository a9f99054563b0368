# ============================================================================
# src/prescription_pipeline/constants/medications.py
# ============================================================================
"""
Medication name lists used by the flag engine.

Matching is exact on the trimmed, lower-cased medication name.
"""

HIGH_RISK_MEDICATIONS = frozenset({
    "warfarin",
    "heparin",
    "isotretinoin",
})
