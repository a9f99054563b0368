# ============================================================================
# src/prescription_pipeline/llm/schemas.py
# ============================================================================
"""
Response contracts for the AI collaborator.

Validated in strict mode: a string where a number is expected, a missing
or blank medication name, or a non-list medications field is a schema mismatch.
Optional fields may be absent or null. Unknown keys are ignored.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _StrictModel(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)


def _required_name(v: str) -> str:
    if not v.strip():
        raise ValueError("Medication name is blank")
    return v.strip()


# ============================================================================
# STRUCTURED EXTRACTION
# ============================================================================

class MedicationSchema(_StrictModel):
    name: str = Field(..., min_length=1, description="Medication name as written")
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    route: Optional[str] = None
    original_text: Optional[str] = Field(None, alias="originalText")
    confidence: Optional[float] = Field(None, description="Extraction confidence, not range-checked")
    uncertain: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _required_name(v)


class ExtractionResponse(_StrictModel):
    medications: List[MedicationSchema]
    date: Optional[str] = Field(None, description="Prescription date, ISO yyyy-mm-dd")


# ============================================================================
# SAFETY ANALYSIS
# ============================================================================

class MedicationSafetySchema(_StrictModel):
    medication_name: str = Field(..., alias="medicationName", min_length=1)
    common_side_effects: List[str] = Field(default_factory=list, alias="commonSideEffects")
    serious_side_effects: List[str] = Field(default_factory=list, alias="seriousSideEffects")
    precautions: List[str] = Field(default_factory=list)
    food_interactions: List[str] = Field(default_factory=list, alias="foodInteractions")
    drug_interactions: List[str] = Field(default_factory=list, alias="drugInteractions")
    contraindications: List[str] = Field(default_factory=list)
    when_to_seek_help: List[str] = Field(default_factory=list, alias="whenToSeekHelp")
    general_advice: List[str] = Field(default_factory=list, alias="generalAdvice")

    @field_validator("medication_name")
    @classmethod
    def validate_medication_name(cls, v: str) -> str:
        return _required_name(v)


class SafetyResponse(_StrictModel):
    medications: List[MedicationSafetySchema]
    general_warning: str = Field("", alias="generalWarning")
