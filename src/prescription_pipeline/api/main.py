# ============================================================================
# src/prescription_pipeline/api/main.py
# ============================================================================
"""
FastAPI Backend for the Prescription Pipeline

Provides REST endpoints for extraction, pipeline runs (streamed as
newline-delimited JSON step updates) and results retrieval.

Run with:
    uvicorn prescription_pipeline.api.main:create_app --factory --port 8000
"""

from contextlib import aclosing, asynccontextmanager
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import BaseModel

from ..calendar.google_calendar import GoogleCalendarClient
from ..calendar.synchronizer import CalendarSynchronizer
from ..calendar.token_provider import CachingTokenProvider, OAuthRefreshTokenProvider
from ..config import base_settings, logging_settings
from ..core.audit import AuditLogger
from ..core.document_store import SQLiteDocumentStore
from ..core.identity import AnonymousIdentityProvider
from ..core.orchestrator import PipelineOrchestrator
from ..core.repository import PrescriptionRepository
from ..extractors.structured_extractor import StructuredExtractor
from ..llm.client import create_client
from ..processors.safety_analyzer import SafetyAnalyzer
from ..processors.summary import export_summary_card
from ..utils.exceptions import (
    ExtractionError,
    PersistenceError,
    PersistenceUnauthenticatedError,
)
from ..utils.logging import setup_logging

logger = logging.getLogger(__name__)


# ============================================================================
# Models
# ============================================================================

class ExtractRequest(BaseModel):
    text: str


class RunRequest(BaseModel):
    text: Optional[str] = None  # recognized prescription text, ingested first
    prescription_id: Optional[str] = None  # or an already saved prescription


# ============================================================================
# Wiring
# ============================================================================

def build_orchestrator() -> PipelineOrchestrator:
    """Assemble the production pipeline from settings."""
    base_settings.create_directories()

    store = SQLiteDocumentStore(base_settings.DOCUMENT_DB_PATH)
    repository = PrescriptionRepository(store, AnonymousIdentityProvider(store=store))
    llm_client = create_client()

    token_provider = CachingTokenProvider(OAuthRefreshTokenProvider().get_token)
    synchronizer = CalendarSynchronizer(GoogleCalendarClient(), token_provider)

    audit_logger = None
    if logging_settings.ENABLE_AUDIT_TRAIL:
        audit_logger = AuditLogger(base_settings.AUDIT_DB_PATH)

    return PipelineOrchestrator(
        repository=repository,
        safety_analyzer=SafetyAnalyzer(llm_client, repository),
        calendar_synchronizer=synchronizer,
        extractor=StructuredExtractor(llm_client),
        audit_logger=audit_logger,
    )


def create_app(orchestrator: Optional[PipelineOrchestrator] = None) -> FastAPI:
    """
    Build the FastAPI app around an orchestrator.

    Without one, the production wiring from settings is used.
    """
    if orchestrator is None:
        setup_logging(
            level=logging_settings.LOG_LEVEL,
            log_file=logging_settings.LOG_FILE,
            format_json=logging_settings.LOG_JSON,
        )
        orchestrator = build_orchestrator()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await orchestrator.close()
        logger.info("Pipeline clients closed")

    app = FastAPI(
        title="Prescription Pipeline API",
        description="Extraction, scheduling, calendar sync and safety analysis for prescriptions",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ========================================================================
    # Endpoints
    # ========================================================================

    @app.get("/api/health")
    async def health():
        """Health check for monitoring."""
        return {"status": "healthy"}

    @app.get("/api/health/llm")
    async def llm_health():
        """Ask the AI backend whether it is reachable and has its model."""
        return await orchestrator.safety_analyzer.llm.health_check()

    @app.get("/api/metrics")
    async def metrics():
        return orchestrator.get_metrics()

    @app.post("/api/prescriptions/extract")
    async def extract(request: ExtractRequest) -> Dict[str, Any]:
        """Extract medications and date from recognized text. Nothing is saved."""
        if orchestrator.extractor is None:
            raise HTTPException(status_code=503, detail="No extractor configured")
        try:
            result = await orchestrator.extractor.extract(request.text)
        except ExtractionError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return result.to_dict()

    @app.post("/api/prescriptions/run")
    async def run(request: RunRequest):
        """
        Run the pipeline and stream one JSON line per step transition.

        Extraction and lookup errors are reported before the stream starts.
        """
        if request.text:
            try:
                prescription = await orchestrator.ingest_text(request.text)
            except ExtractionError as e:
                raise HTTPException(status_code=422, detail=str(e))
            except PersistenceUnauthenticatedError as e:
                raise HTTPException(status_code=401, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=503, detail=str(e))
        elif request.prescription_id:
            prescription = await orchestrator.repository.get_prescription(request.prescription_id)
            if prescription is None:
                raise HTTPException(status_code=404, detail="Prescription not found")
        else:
            raise HTTPException(status_code=400, detail="Provide text or prescription_id")

        async def stream() -> AsyncIterator[str]:
            # Closing the run releases its prescription lock if the client disconnects
            async with aclosing(orchestrator.run_pipeline(prescription)) as updates:
                async for update in updates:
                    yield json.dumps(update.to_dict()) + "\n"

        logger.info(f"Streaming pipeline run for {prescription.id}")
        return StreamingResponse(stream(), media_type="application/x-ndjson")

    @app.get("/api/prescriptions/{prescription_id}/safety")
    async def get_safety(prescription_id: str) -> Dict[str, Any]:
        try:
            profile = await orchestrator.get_cached_safety_profile(prescription_id)
        except PersistenceError as e:
            raise HTTPException(status_code=500, detail=str(e))
        if profile is None:
            raise HTTPException(status_code=404, detail="No safety profile for this prescription")
        return profile.to_dict()

    @app.get("/api/prescriptions/{prescription_id}/summary", response_class=PlainTextResponse)
    async def get_summary(prescription_id: str) -> str:
        prescription = await orchestrator.repository.get_prescription(prescription_id)
        if prescription is None:
            raise HTTPException(status_code=404, detail="Prescription not found")
        safety = await orchestrator.get_cached_safety_profile(prescription_id)
        return export_summary_card(prescription, safety)

    return app

