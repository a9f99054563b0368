# ============================================================================
# tests/unit/test_safety_analyzer.py
# ============================================================================
"""
Tests for the cache-first safety analyzer
"""

import pytest

from prescription_pipeline.core.context.artifacts import MedicationSafetyInfo, SafetyProfile
from prescription_pipeline.processors.safety_analyzer import SafetyAnalyzer, unique_names
from prescription_pipeline.utils.exceptions import SafetyEmptyResultError, SafetySchemaMismatchError

from conftest import ScriptedLLM, safety_json


def test_unique_names_dedupes_case_insensitively():
    assert unique_names(["Amoxicillin", " amoxicillin ", "", "Ibuprofen", "AMOXICILLIN"]) == [
        "Amoxicillin",
        "Ibuprofen",
    ]


class TestParseResponse:

    def setup_method(self):
        self.analyzer = SafetyAnalyzer(ScriptedLLM())

    def test_valid_profile(self):
        profile = self.analyzer.parse_response(safety_json("Amoxicillin", warning="Finish the course."))

        info = profile.for_medication("amoxicillin")
        assert info is not None
        assert info.common_side_effects == ["nausea"]
        assert info.when_to_seek_help == ["rash"]
        assert profile.general_warning == "Finish the course."

    def test_missing_lists_default_to_empty(self):
        profile = self.analyzer.parse_response('{"medications": [{"medicationName": "A"}]}')
        assert profile.medications[0].drug_interactions == []
        assert profile.general_warning == ""

    def test_empty_medications_is_an_error(self):
        with pytest.raises(SafetyEmptyResultError):
            self.analyzer.parse_response('{"medications": [], "generalWarning": "none"}')

    def test_no_json_is_schema_mismatch(self):
        with pytest.raises(SafetySchemaMismatchError):
            self.analyzer.parse_response("Please consult a pharmacist.")

    def test_blank_medication_name_is_schema_mismatch(self):
        with pytest.raises(SafetySchemaMismatchError):
            self.analyzer.parse_response('{"medications": [{"medicationName": "  "}]}')

    def test_wrong_shape_is_schema_mismatch(self):
        with pytest.raises(SafetySchemaMismatchError):
            self.analyzer.parse_response('{"medications": [{"medicationName": "A", "precautions": "none"}]}')


class TestAnalyze:

    @pytest.mark.asyncio
    async def test_empty_name_list_never_calls_model(self):
        llm = ScriptedLLM()
        analyzer = SafetyAnalyzer(llm)

        with pytest.raises(SafetyEmptyResultError):
            await analyzer.analyze_names(["", "  "])
        assert llm.call_count == 0

    @pytest.mark.asyncio
    async def test_prompt_lists_each_name_once(self):
        llm = ScriptedLLM([safety_json("Amoxicillin")])

        await SafetyAnalyzer(llm).analyze_names(["Amoxicillin", "amoxicillin"])

        assert llm.prompts[0].count("Amoxicillin") == 1

    @pytest.mark.asyncio
    async def test_fresh_profile_is_cached(self, repository):
        llm = ScriptedLLM([safety_json("Amoxicillin")])
        analyzer = SafetyAnalyzer(llm, repository)

        profile = await analyzer.analyze("rx-1", ["Amoxicillin"])

        assert await repository.get_safety_profile("rx-1") == profile

    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(self, repository):
        llm = ScriptedLLM([safety_json("Amoxicillin")])
        analyzer = SafetyAnalyzer(llm, repository)

        first = await analyzer.analyze("rx-1", ["Amoxicillin"])
        second = await analyzer.analyze("rx-1", ["Amoxicillin"])

        assert first == second
        assert analyzer.call_count == 1
        assert llm.call_count == 1

    @pytest.mark.asyncio
    async def test_cached_profile_is_returned_unchanged(self, repository):
        cached = SafetyProfile([MedicationSafetyInfo("Warfarin", precautions=["INR checks"])], "Bleeding risk")
        await repository.save_safety_profile("rx-1", cached)
        llm = ScriptedLLM()

        profile = await SafetyAnalyzer(llm, repository).analyze("rx-1", ["Something else"])

        assert profile == cached
        assert llm.call_count == 0

    @pytest.mark.asyncio
    async def test_cache_write_failure_is_not_fatal(self, repository, store):
        store.fail_writes.append("/safety/")
        llm = ScriptedLLM([safety_json("Amoxicillin")])

        profile = await SafetyAnalyzer(llm, repository).analyze("rx-1", ["Amoxicillin"])

        assert profile.medications[0].medication_name == "Amoxicillin"
        assert await repository.get_safety_profile("rx-1") is None
