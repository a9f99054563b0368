# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.

Fake collaborators:
- ScriptedLLM: returns queued responses, counts calls
- RecordingCalendarClient: records payloads, fails on demand
- FlakyDocumentStore: in-memory store that fails selected paths
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from prescription_pipeline.calendar.google_calendar import CalendarClient
from prescription_pipeline.calendar.synchronizer import CalendarSynchronizer
from prescription_pipeline.calendar.token_provider import CalendarToken, StaticTokenProvider
from prescription_pipeline.config import pipeline_settings
from prescription_pipeline.core.context.medication import Medication, Prescription
from prescription_pipeline.core.document_store import InMemoryDocumentStore
from prescription_pipeline.core.identity import StaticIdentityProvider, UserIdentity
from prescription_pipeline.core.orchestrator import PipelineOrchestrator
from prescription_pipeline.core.repository import PrescriptionRepository
from prescription_pipeline.extractors.structured_extractor import StructuredExtractor
from prescription_pipeline.llm.base import BackendType, BaseLLMClient
from prescription_pipeline.processors.safety_analyzer import SafetyAnalyzer


FIXED_NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


# ============================================================================
# Fakes
# ============================================================================

class ScriptedLLM(BaseLLMClient):
    """Returns queued responses in order; an exception in the queue is raised."""

    def __init__(self, responses: Optional[List[Any]] = None):
        super().__init__({})
        self.responses = list(responses or [])
        self.prompts: List[str] = []

    @property
    def backend_type(self) -> BackendType:
        return BackendType.OLLAMA

    @property
    def model_name(self) -> str:
        return "scripted"

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt, max_tokens=None, temperature=None, json_mode=False):
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError("Unexpected model call")
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return {"text": item, "model": self.model_name, "backend": "ollama", "inference_time": 0.0}

    async def health_check(self):
        return {"healthy": True, "backend": "ollama", "model": self.model_name, "details": "scripted"}


class RecordingCalendarClient(CalendarClient):
    """
    Records every accepted payload and hands out sequential event ids.

    fail_names: medication name -> exception raised for each of its inserts
    fail_after: once this many events exist, every call raises ConnectionError
    """

    def __init__(self, fail_names: Optional[Dict[str, BaseException]] = None, fail_after: Optional[int] = None):
        self.fail_names = dict(fail_names or {})
        self.fail_after = fail_after
        self.payloads: List[Dict[str, Any]] = []
        self.calls = 0
        self.closed = False

    async def insert_event(self, token, payload):
        self.calls += 1
        name = payload["summary"][len("Take "):]
        if name in self.fail_names:
            raise self.fail_names[name]
        if self.fail_after is not None and len(self.payloads) >= self.fail_after:
            raise ConnectionError("network is unreachable")
        self.payloads.append(payload)
        return f"evt-{len(self.payloads)}"

    def summaries(self) -> List[str]:
        return [p["summary"] for p in self.payloads]

    async def close(self):
        self.closed = True


class GatedCalendarClient(RecordingCalendarClient):
    """Blocks every insert until `gate` is set."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()
        self.waiting = 0

    async def insert_event(self, token, payload):
        self.waiting += 1
        self.entered.set()
        await self.gate.wait()
        return await super().insert_event(token, payload)


class FlakyDocumentStore(InMemoryDocumentStore):
    """Raises OSError for reads/writes whose path contains a listed fragment."""

    def __init__(self):
        super().__init__()
        self.fail_writes: List[str] = []
        self.fail_reads: List[str] = []

    async def save(self, collection_path, document_id, payload):
        path = f"{collection_path}/{document_id}"
        if any(fragment in path for fragment in self.fail_writes):
            raise OSError(f"write refused: {path}")
        await super().save(collection_path, document_id, payload)

    async def get(self, collection_path, document_id):
        path = f"{collection_path}/{document_id}"
        if any(fragment in path for fragment in self.fail_reads):
            raise OSError(f"read refused: {path}")
        return await super().get(collection_path, document_id)


# ============================================================================
# Response builders
# ============================================================================

def extraction_json(*medications: Dict[str, Any], date: Optional[str] = "2025-03-01") -> str:
    return json.dumps({"medications": list(medications), "date": date})


def safety_json(*names: str, warning: str = "Consult your doctor before changes.") -> str:
    return json.dumps({
        "medications": [
            {
                "medicationName": name,
                "commonSideEffects": ["nausea"],
                "seriousSideEffects": [],
                "precautions": ["take with water"],
                "foodInteractions": [],
                "drugInteractions": [],
                "contraindications": [],
                "whenToSeekHelp": ["rash"],
                "generalAdvice": [],
            }
            for name in names
        ],
        "generalWarning": warning,
    })


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    """No real backoff sleeps in tests"""
    monkeypatch.setattr(pipeline_settings, "RETRY_BASE_DELAY", 0.0)
    monkeypatch.setattr(pipeline_settings, "RETRY_MAX_DELAY", 0.0)


@pytest.fixture
def amoxicillin():
    return Medication(
        name="Amoxicillin",
        dosage="500mg",
        frequency="twice daily",
        duration="7 days",
        confidence=0.95,
        uncertain=False,
    )


@pytest.fixture
def ibuprofen():
    return Medication(name="Ibuprofen", dosage="200mg", frequency="once daily", confidence=0.9)


@pytest.fixture
def prescription(amoxicillin):
    """Scenario A prescription"""
    return Prescription(medications=[amoxicillin])


@pytest.fixture
def store():
    return FlakyDocumentStore()


@pytest.fixture
def identity():
    return StaticIdentityProvider(UserIdentity(uid="user-1"))


@pytest.fixture
def repository(store, identity):
    return PrescriptionRepository(store, identity, timeout=5)


@pytest.fixture
def llm():
    return ScriptedLLM()


@pytest.fixture
def calendar_client():
    return RecordingCalendarClient()


@pytest.fixture
def token_provider():
    return StaticTokenProvider(CalendarToken("test-token"))


@pytest.fixture
def synchronizer(calendar_client, token_provider):
    return CalendarSynchronizer(calendar_client, token_provider, max_concurrency=1)


@pytest.fixture
def safety_analyzer(llm, repository):
    return SafetyAnalyzer(llm, repository)


@pytest.fixture
def orchestrator(repository, safety_analyzer, synchronizer, llm):
    return PipelineOrchestrator(
        repository=repository,
        safety_analyzer=safety_analyzer,
        calendar_synchronizer=synchronizer,
        extractor=StructuredExtractor(llm),
        clock=lambda: FIXED_NOW,
    )
