# ============================================================================
# tests/unit/test_api.py
# ============================================================================
"""
Tests for the FastAPI endpoints
"""

import json

import pytest
from fastapi.testclient import TestClient

from prescription_pipeline.api.main import create_app

from conftest import extraction_json, safety_json


AMOXICILLIN = {
    "name": "Amoxicillin",
    "dosage": "500mg",
    "frequency": "twice daily",
    "duration": "7 days",
    "confidence": 0.95,
}


@pytest.fixture
def client(orchestrator):
    return TestClient(create_app(orchestrator))


def stream_lines(response):
    return [json.loads(line) for line in response.text.splitlines() if line]


class TestHealth:

    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "healthy"}

    def test_llm_health(self, client):
        body = client.get("/api/health/llm").json()
        assert body["healthy"] is True
        assert body["model"] == "scripted"

    def test_metrics(self, client):
        body = client.get("/api/metrics").json()
        assert body["active_prescriptions"] == 0
        assert len(body["steps"]) == 5
        assert body["llm"]["model"] == "scripted"

    def test_shutdown_closes_clients(self, orchestrator, calendar_client):
        with TestClient(create_app(orchestrator)) as client:
            client.get("/api/health")

        assert calendar_client.closed


class TestExtract:

    def test_returns_medications(self, client, llm, store):
        llm.responses.append(extraction_json(AMOXICILLIN, date="2025-03-01"))

        response = client.post("/api/prescriptions/extract", json={"text": "Amoxicillin 500mg"})

        assert response.status_code == 200
        body = response.json()
        assert body["medications"][0]["name"] == "Amoxicillin"
        assert body["date"] == "2025-03-01"
        assert store.paths() == []

    def test_no_json_is_unprocessable(self, client, llm):
        llm.responses.append("Sorry, I cannot help with that.")

        response = client.post("/api/prescriptions/extract", json={"text": "smudge"})

        assert response.status_code == 422


class TestRun:

    def test_streams_every_transition(self, client, llm):
        llm.responses.extend([extraction_json(AMOXICILLIN), safety_json("Amoxicillin")])

        response = client.post("/api/prescriptions/run", json={"text": "Amoxicillin 500mg bid"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        lines = stream_lines(response)
        assert len(lines) == 10
        assert [line["step"] for line in lines[::2]] == ["flag", "schedule", "calendar", "safety", "persist"]
        assert lines[-1]["statuses"]["persist"] == {"state": "done"}

    def test_saved_prescription_results(self, client, llm):
        llm.responses.extend([extraction_json(AMOXICILLIN), safety_json("Amoxicillin", warning="Finish the course.")])
        lines = stream_lines(client.post("/api/prescriptions/run", json={"text": "Amoxicillin"}))
        prescription_id = lines[0]["prescription_id"]

        safety = client.get(f"/api/prescriptions/{prescription_id}/safety")
        summary = client.get(f"/api/prescriptions/{prescription_id}/summary")

        assert safety.json()["generalWarning"] == "Finish the course."
        assert "• Amoxicillin 500mg | twice daily | 7 days" in summary.text
        assert summary.text.rstrip().endswith("Finish the course.")

    def test_rerun_by_id(self, client, llm, calendar_client):
        llm.responses.extend([extraction_json(AMOXICILLIN), safety_json("Amoxicillin")])
        first = stream_lines(client.post("/api/prescriptions/run", json={"text": "Amoxicillin"}))

        second = stream_lines(client.post(
            "/api/prescriptions/run", json={"prescription_id": first[0]["prescription_id"]}
        ))

        assert second[-1]["statuses"]["safety"] == {"state": "done"}
        assert len(calendar_client.payloads) == 2
        assert llm.call_count == 2

    def test_unknown_prescription(self, client):
        response = client.post("/api/prescriptions/run", json={"prescription_id": "missing"})
        assert response.status_code == 404

    def test_nothing_to_run(self, client):
        assert client.post("/api/prescriptions/run", json={}).status_code == 400

    def test_extraction_failure_starts_no_run(self, client, llm, calendar_client):
        llm.responses.append("no json here")

        response = client.post("/api/prescriptions/run", json={"text": "blurry"})

        assert response.status_code == 422
        assert calendar_client.payloads == []


class TestResults:

    def test_missing_safety_profile(self, client):
        assert client.get("/api/prescriptions/missing/safety").status_code == 404

    def test_missing_summary(self, client):
        assert client.get("/api/prescriptions/missing/summary").status_code == 404
