# ============================================================================
# src/prescription_pipeline/llm/prompts.py
# ============================================================================
"""
Prompt templates for the AI collaborator.

Provides:
- Medication extraction prompt (OCR text -> medications + date)
- Safety analysis prompt (medication names -> safety profile)
"""

from typing import List


EXTRACTION_PROMPT = """You are a JSON extractor. From the prescription text below, return ONE JSON object:

{{
  "date": "yyyy-mm-dd or null",
  "medications": [
    {{
      "name": "string",
      "dosage": "string or empty",
      "frequency": "string or empty",
      "duration": "string or empty",
      "route": "string or empty",
      "originalText": "the line of text the medication came from",
      "confidence": 0.0,
      "uncertain": false
    }}
  ]
}}

confidence is a number between 0.0 and 1.0. Set uncertain to true when the
handwriting or OCR output is ambiguous. Return JSON only (no commentary).

Prescription text:
{text}
"""


SAFETY_PROMPT = """You are a clinical pharmacist. For each medication listed below, return ONE JSON object:

{{
  "medications": [
    {{
      "medicationName": "string",
      "commonSideEffects": ["string"],
      "seriousSideEffects": ["string"],
      "precautions": ["string"],
      "foodInteractions": ["string"],
      "drugInteractions": ["string"],
      "contraindications": ["string"],
      "whenToSeekHelp": ["string"],
      "generalAdvice": ["string"]
    }}
  ],
  "generalWarning": "string"
}}

Include one entry per medication. Keep each item short and written for a
patient. Return JSON only (no commentary).

Medications:
{medications}
"""


def build_extraction_prompt(text: str) -> str:
    return EXTRACTION_PROMPT.format(text=text.strip())


def build_safety_prompt(names: List[str]) -> str:
    return SAFETY_PROMPT.format(medications="\n".join(f"- {name}" for name in names))
