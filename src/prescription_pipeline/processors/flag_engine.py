# ============================================================================
# src/prescription_pipeline/processors/flag_engine.py
# ============================================================================
"""
Flag Engine

Selects medications that need manual review before they are trusted.

A medication is flagged when any of these hold:
- uncertain is set
- confidence is below the threshold
- confidence is absent (extraction gave no score)
- its name, trimmed and lower-cased, is on the high-risk list (surrounding
  whitespace is ignored; otherwise the match is exact)

Reasons are listed in that fixed order: "uncertain", "low confidence (X.XX)",
"high-risk". A medication selected only because confidence is absent gets
"manual review suggested".
"""

from typing import Iterable, List, Optional

from ..config.pipeline_config import pipeline_settings
from ..constants.medications import HIGH_RISK_MEDICATIONS
from ..core.context.artifacts import FlagEntry
from ..core.context.medication import Medication

FALLBACK_REASON = "manual review suggested"
REASON_SEPARATOR = ", "


class FlagEngine:
    """Pure and synchronous; no I/O."""

    def __init__(
        self,
        threshold: Optional[float] = None,
        high_risk_names: Iterable[str] = HIGH_RISK_MEDICATIONS,
    ):
        self.threshold = threshold if threshold is not None else pipeline_settings.LOW_CONFIDENCE_THRESHOLD
        self.high_risk_names = frozenset(name.lower() for name in high_risk_names)

    def is_high_risk(self, med: Medication) -> bool:
        return med.name.strip().lower() in self.high_risk_names

    def is_low_confidence(self, med: Medication) -> bool:
        return med.confidence is not None and med.confidence < self.threshold

    def should_flag(self, med: Medication) -> bool:
        return (
            med.confidence is None
            or self.is_low_confidence(med)
            or med.uncertain
            or self.is_high_risk(med)
        )

    def reasons_for(self, med: Medication) -> List[str]:
        reasons = []
        if med.uncertain:
            reasons.append("uncertain")
        if self.is_low_confidence(med):
            reasons.append(f"low confidence ({med.confidence:.2f})")
        if self.is_high_risk(med):
            reasons.append("high-risk")
        if not reasons and self.should_flag(med):
            reasons.append(FALLBACK_REASON)
        return reasons

    def flag(self, medications: Iterable[Medication]) -> List[FlagEntry]:
        """Flag entries for the selected medications, in input order."""
        flags = []
        for med in medications:
            if not self.should_flag(med):
                continue
            flags.append(FlagEntry(
                name=med.name,
                reason=REASON_SEPARATOR.join(self.reasons_for(med)),
                uncertain=med.uncertain,
                confidence=med.confidence,
                original_text=med.original_text,
                medication_id=med.id,
            ))
        return flags
