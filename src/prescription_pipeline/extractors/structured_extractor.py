# ============================================================================
# src/prescription_pipeline/extractors/structured_extractor.py
# ============================================================================
"""
Structured Extractor

Turns raw recognized text (noisy, multi-line OCR output) into medication
records plus an optional prescription date via the AI collaborator.

The model is expected to answer with one JSON object. The first balanced
object is located tolerantly (fences stripped, brace-depth scan) and then
validated against the strict extraction schema. Partial records decode
with their missing optional fields absent.
"""

from dataclasses import dataclass, field
import datetime
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..core.context.medication import Medication, Prescription
from ..core.retry import retry_async
from ..llm.base import BaseLLMClient, extract_json_object
from ..llm.prompts import build_extraction_prompt
from ..llm.schemas import ExtractionResponse, MedicationSchema
from ..utils.exceptions import (
    ExtractionNoJSONFoundError,
    ExtractionSchemaMismatchError,
)
from ..utils.logging import log_performance

logger = logging.getLogger(__name__)

RESPONSE_PREVIEW_CHARS = 500


@dataclass
class ExtractionResult:
    medications: List[Medication] = field(default_factory=list)
    date: Optional[str] = None  # ISO yyyy-mm-dd
    raw_response: str = ""

    def to_prescription(self) -> Prescription:
        """New Prescription for these medications; date defaults to today."""
        prescription = Prescription(medications=list(self.medications))
        if self.date:
            prescription.date = datetime.date.fromisoformat(self.date)
        return prescription

    def to_dict(self) -> Dict[str, Any]:
        return {
            "medications": [med.to_dict() for med in self.medications],
            "date": self.date,
        }


def normalize_date(value: Optional[str]) -> Optional[str]:
    """ISO date string, or None when absent or unparseable."""
    if not value or not value.strip():
        return None
    try:
        return datetime.date.fromisoformat(value.strip()[:10]).isoformat()
    except ValueError:
        logger.warning(f"Dropping unparseable prescription date: {value!r}")
        return None


def _to_medication(record: MedicationSchema) -> Medication:
    return Medication(
        name=record.name.strip(),
        dosage=record.dosage,
        frequency=record.frequency,
        duration=record.duration,
        route=record.route,
        original_text=record.original_text,
        confidence=record.confidence,
        uncertain=bool(record.uncertain),
    )


class StructuredExtractor:
    """
    Extracts medications from prescription text.

    Raises ExtractionNoJSONFoundError when the model output holds no
    JSON object and ExtractionSchemaMismatchError when it does not fit
    the medication schema. Timeouts and connectivity failures of the
    model call are retried with backoff.
    """

    def __init__(self, llm_client: BaseLLMClient):
        self.llm = llm_client

    def parse_response(self, response_text: str) -> ExtractionResult:
        preview = (response_text or "")[:RESPONSE_PREVIEW_CHARS]

        data = extract_json_object(response_text)
        if data is None:
            raise ExtractionNoJSONFoundError(
                "Model output did not contain a JSON object", response_preview=preview
            )

        try:
            parsed = ExtractionResponse.model_validate(data)
        except ValidationError as e:
            raise ExtractionSchemaMismatchError(
                f"Medication JSON does not match schema: {e.error_count()} error(s): "
                f"{e.errors()[0]['msg']}",
                response_preview=preview,
            ) from e

        return ExtractionResult(
            medications=[_to_medication(m) for m in parsed.medications],
            date=normalize_date(parsed.date),
            raw_response=response_text,
        )

    @log_performance(logger, "medication extraction")
    async def extract(self, text: str) -> ExtractionResult:
        prompt = build_extraction_prompt(text)

        response = await retry_async(
            lambda: self.llm.generate(prompt, json_mode=True),
            "medication extraction",
        )
        result = self.parse_response(response.get("text", ""))

        logger.info(
            f"Extracted {len(result.medications)} medication(s)"
            + (f" dated {result.date}" if result.date else "")
        )
        return result
