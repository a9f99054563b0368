# ============================================================================
# src/prescription_pipeline/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the prescription processing pipeline.

Components raise these; only the orchestrator turns them into step
statuses and decides whether a failure halts the run.
"""

from typing import Any, Dict, List, Optional


class PrescriptionPipelineError(Exception):
    """Base exception for all prescription pipeline errors."""
    pass


class ConfigurationError(PrescriptionPipelineError):
    """Invalid configuration."""
    pass


class RecognitionError(PrescriptionPipelineError):
    """OCR could not produce usable text from the image."""
    pass


# ----------------------------------------------------------------------------
# Structured extraction
# ----------------------------------------------------------------------------

class ExtractionError(PrescriptionPipelineError):
    """Error turning recognized text into medication records."""

    def __init__(self, message: str, response_preview: Optional[str] = None):
        super().__init__(message)
        self.response_preview = response_preview


class ExtractionNoJSONFoundError(ExtractionError):
    """Model output contained no balanced JSON object."""
    pass


class ExtractionSchemaMismatchError(ExtractionError):
    """JSON was found but does not match the medication schema."""
    pass


# ----------------------------------------------------------------------------
# Safety analysis
# ----------------------------------------------------------------------------

class SafetyError(PrescriptionPipelineError):
    """Error producing safety information."""
    pass


class SafetyEmptyResultError(SafetyError):
    """Safety lookup returned no medication entries."""
    pass


class SafetySchemaMismatchError(SafetyError):
    """Safety response is missing or does not match the expected shape."""
    pass


# ----------------------------------------------------------------------------
# Calendar synchronization
# ----------------------------------------------------------------------------

class CalendarError(PrescriptionPipelineError):
    """Error talking to the calendar collaborator."""
    pass


class CalendarTokenAcquisitionError(CalendarError):
    """Could not obtain an access token for the calendar API."""
    pass


class CalendarEventInsertError(CalendarError):
    """A single event insert was rejected."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class CalendarUnreachableError(CalendarError):
    """Calendar API could not be reached at all.

    Carries whatever was created before connectivity was lost so the
    caller can still record those events.
    """

    def __init__(self, message: str, partial: Any = None):
        super().__init__(message)
        self.partial = partial


# ----------------------------------------------------------------------------
# Persistence
# ----------------------------------------------------------------------------

class PersistenceError(PrescriptionPipelineError):
    """Error reading from or writing to the document store."""
    pass


class PersistenceUnauthenticatedError(PersistenceError):
    """No current user identity to persist under."""
    pass


class PersistenceNotFoundError(PersistenceError):
    """Requested document does not exist."""

    def __init__(self, collection_path: str, document_id: str):
        super().__init__(f"Document not found: {collection_path}/{document_id}")
        self.collection_path = collection_path
        self.document_id = document_id


class PersistenceWriteError(PersistenceError):
    """One or more documents could not be written."""

    def __init__(self, message: str, failed_artifacts: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.failed_artifacts = failed_artifacts or {}


# ----------------------------------------------------------------------------
# Pipeline control
# ----------------------------------------------------------------------------

class PipelineCancelledError(PrescriptionPipelineError):
    """The caller cancelled the run."""
    pass


class InvalidStepTransitionError(PrescriptionPipelineError):
    """A step was moved between states in an order the state machine forbids."""

    def __init__(self, step: str, from_state: str, to_state: str):
        super().__init__(f"Illegal transition for step '{step}': {from_state} -> {to_state}")
        self.step = step
        self.from_state = from_state
        self.to_state = to_state


def describe_failures(failures: Dict[str, str]) -> List[str]:
    """Render a failure map as 'name: reason' lines, sorted by name."""
    return [f"{name}: {reason}" for name, reason in sorted(failures.items())]
