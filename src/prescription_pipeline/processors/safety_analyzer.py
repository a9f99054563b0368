# ============================================================================
# src/prescription_pipeline/processors/safety_analyzer.py
# ============================================================================
"""
Safety Analyzer

Medication names -> structured safety information (side effects,
interactions, contraindications) via the AI collaborator.

Cache-first: a profile already stored for the prescription is returned
unchanged and the model is not called. Profiles are never invalidated.
An empty answer is an error, never an empty success.
"""

import logging
from typing import Iterable, List, Optional

from pydantic import ValidationError

from ..core.context.artifacts import MedicationSafetyInfo, SafetyProfile
from ..core.repository import PrescriptionRepository
from ..core.retry import retry_async
from ..llm.base import BaseLLMClient, extract_json_object
from ..llm.prompts import build_safety_prompt
from ..llm.schemas import SafetyResponse
from ..utils.exceptions import (
    PersistenceError,
    SafetyEmptyResultError,
    SafetySchemaMismatchError,
)

logger = logging.getLogger(__name__)


def unique_names(names: Iterable[str]) -> List[str]:
    """Strip, drop blanks, de-duplicate case-insensitively (first spelling wins)."""
    seen = set()
    result = []
    for name in names:
        cleaned = (name or "").strip()
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        result.append(cleaned)
    return result


class SafetyAnalyzer:

    def __init__(self, llm_client: BaseLLMClient, repository: Optional[PrescriptionRepository] = None):
        self.llm = llm_client
        self.repository = repository
        self.call_count = 0

    def parse_response(self, response_text: str) -> SafetyProfile:
        data = extract_json_object(response_text)
        if data is None:
            raise SafetySchemaMismatchError("Safety response did not contain a JSON object")

        try:
            parsed = SafetyResponse.model_validate(data)
        except ValidationError as e:
            raise SafetySchemaMismatchError(
                f"Safety JSON does not match schema: {e.errors()[0]['msg']}"
            ) from e

        if not parsed.medications:
            raise SafetyEmptyResultError("Safety analysis returned no medication entries")

        return SafetyProfile(
            medications=[
                MedicationSafetyInfo(**entry.model_dump(by_alias=False))
                for entry in parsed.medications
            ],
            general_warning=parsed.general_warning,
        )

    async def analyze_names(self, names: Iterable[str]) -> SafetyProfile:
        """Call the model for these names; no cache involved."""
        names = unique_names(names)
        if not names:
            raise SafetyEmptyResultError("No medication names to analyze")

        prompt = build_safety_prompt(names)
        self.call_count += 1
        response = await retry_async(
            lambda: self.llm.generate(prompt, json_mode=True),
            "safety analysis",
        )
        profile = self.parse_response(response.get("text", ""))
        logger.info(f"Safety profile generated for {len(profile.medications)} medication(s)")
        return profile

    async def analyze(self, prescription_id: Optional[str], names: Iterable[str]) -> SafetyProfile:
        """
        Cache-first safety lookup for one prescription.

        Raises:
            SafetyEmptyResultError: nothing to analyze, or model returned no entries
            SafetySchemaMismatchError: missing or malformed JSON
        """
        if self.repository is not None and prescription_id:
            cached = await self.repository.get_safety_profile(prescription_id)
            if cached is not None:
                logger.info(f"Safety profile for {prescription_id} served from cache")
                return cached

        profile = await self.analyze_names(names)

        if self.repository is not None and prescription_id:
            try:
                await self.repository.save_safety_profile(prescription_id, profile)
            except (PersistenceError, TimeoutError) as e:
                logger.warning(f"Could not cache safety profile for {prescription_id}: {e}")

        return profile
