# ============================================================================
# tests/unit/test_structured_extractor.py
# ============================================================================
"""
Tests for JSON location and structured medication extraction
"""

import pytest

from prescription_pipeline.extractors.structured_extractor import StructuredExtractor, normalize_date
from prescription_pipeline.llm.base import extract_json_object, find_balanced_object, strip_code_fences
from prescription_pipeline.utils.exceptions import (
    ExtractionError,
    ExtractionNoJSONFoundError,
    ExtractionSchemaMismatchError,
)

from conftest import ScriptedLLM, extraction_json


class TestJsonLocation:
    """Tolerant JSON extraction from model output"""

    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_object_with_prose(self):
        text = 'Here you go:\n```json\n{"medications": [], "date": null}\n```\nAnything else?'
        assert extract_json_object(text) == {"medications": [], "date": None}

    def test_strip_code_fences_keeps_content(self):
        assert strip_code_fences("```json\n{}\n```") == "\n{}\n"

    def test_braces_inside_strings_do_not_close_object(self):
        text = 'prefix {"note": "use } carefully", "n": 2} suffix {"other": 1}'
        assert find_balanced_object(text) == '{"note": "use } carefully", "n": 2}'

    def test_escaped_quote_inside_string(self):
        text = '{"note": "say \\"hi\\" {", "n": 3}'
        assert extract_json_object(text) == {"note": 'say "hi" {', "n": 3}

    def test_first_object_wins(self):
        assert extract_json_object('{"a": 1} {"b": 2}') == {"a": 1}

    def test_trailing_comma_is_repaired(self):
        text = '{"medications": [{"name": "Amoxicillin",}],}'
        assert extract_json_object(text) == {"medications": [{"name": "Amoxicillin"}]}

    @pytest.mark.parametrize("text", ["", "   ", "no json here", "{ never closed", "[1, 2, 3]"])
    def test_nothing_to_extract(self, text):
        assert extract_json_object(text) is None


class TestNormalizeDate:

    def test_iso_date(self):
        assert normalize_date("2025-03-01") == "2025-03-01"

    def test_datetime_prefix(self):
        assert normalize_date("2025-03-01T10:00:00") == "2025-03-01"

    @pytest.mark.parametrize("value", [None, "", "  ", "yesterday", "03/01/2025"])
    def test_unusable_dates_are_dropped(self, value):
        assert normalize_date(value) is None


class TestParseResponse:

    def setup_method(self):
        self.extractor = StructuredExtractor(ScriptedLLM())

    def test_valid_response(self):
        text = extraction_json(
            {"name": "Amoxicillin", "dosage": "500mg", "frequency": "twice daily",
             "confidence": 0.95, "uncertain": False, "originalText": "Amox 500 bid"},
        )

        result = self.extractor.parse_response(text)

        med = result.medications[0]
        assert med.name == "Amoxicillin"
        assert med.original_text == "Amox 500 bid"
        assert med.confidence == 0.95
        assert result.date == "2025-03-01"

    def test_empty_strings_become_absent(self):
        result = self.extractor.parse_response(
            extraction_json({"name": "Ibuprofen", "dosage": "", "route": "  ", "confidence": 0.8})
        )

        med = result.medications[0]
        assert med.dosage is None
        assert med.route is None
        assert "dosage" not in med.to_dict()

    def test_missing_optional_fields(self):
        med = self.extractor.parse_response(extraction_json({"name": "Ibuprofen"})).medications[0]
        assert med.confidence is None
        assert med.uncertain is False

    def test_confidence_is_not_clamped(self):
        med = self.extractor.parse_response(extraction_json({"name": "A", "confidence": 1.7})).medications[0]
        assert med.confidence == 1.7

    def test_no_json_found(self):
        """Scenario C: model answered in prose only"""
        with pytest.raises(ExtractionNoJSONFoundError) as exc_info:
            self.extractor.parse_response("I could not read this prescription, sorry.")

        assert exc_info.value.response_preview.startswith("I could not read")

    def test_missing_name_is_schema_mismatch(self):
        with pytest.raises(ExtractionSchemaMismatchError):
            self.extractor.parse_response(extraction_json({"dosage": "5mg"}))

    @pytest.mark.parametrize("name", ["", "   ", "\n\t"])
    def test_blank_name_is_schema_mismatch(self, name):
        with pytest.raises(ExtractionSchemaMismatchError):
            self.extractor.parse_response(extraction_json({"name": name, "dosage": "5mg"}))

    def test_name_is_trimmed(self):
        result = self.extractor.parse_response(extraction_json({"name": "  Amoxicillin "}))
        assert [med.name for med in result.medications] == ["Amoxicillin"]

    def test_string_confidence_is_schema_mismatch(self):
        with pytest.raises(ExtractionSchemaMismatchError):
            self.extractor.parse_response(extraction_json({"name": "A", "confidence": "high"}))

    def test_medications_must_be_a_list(self):
        with pytest.raises(ExtractionSchemaMismatchError):
            self.extractor.parse_response('{"medications": "Amoxicillin"}')

    def test_bad_date_is_dropped_not_fatal(self):
        result = self.extractor.parse_response(extraction_json({"name": "A"}, date="last tuesday"))
        assert result.date is None
        assert result.to_prescription().date is not None


class TestExtract:

    @pytest.mark.asyncio
    async def test_extract_builds_prompt_and_parses(self):
        llm = ScriptedLLM([extraction_json({"name": "Amoxicillin", "confidence": 0.9})])
        extractor = StructuredExtractor(llm)

        result = await extractor.extract("Amoxicillin 500mg bid x7d")

        assert [m.name for m in result.medications] == ["Amoxicillin"]
        assert "Amoxicillin 500mg bid x7d" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self):
        llm = ScriptedLLM([TimeoutError("slow model"), extraction_json({"name": "A"})])

        result = await StructuredExtractor(llm).extract("A 5mg")

        assert llm.call_count == 2
        assert result.medications[0].name == "A"

    @pytest.mark.asyncio
    async def test_exhausted_retries_propagate(self):
        llm = ScriptedLLM([ConnectionError("down")] * 3)

        with pytest.raises(ConnectionError):
            await StructuredExtractor(llm).extract("A 5mg")
        assert llm.call_count == 3

    @pytest.mark.asyncio
    async def test_parse_errors_are_not_retried(self):
        llm = ScriptedLLM(["nothing useful"])

        with pytest.raises(ExtractionError):
            await StructuredExtractor(llm).extract("A 5mg")
        assert llm.call_count == 1
