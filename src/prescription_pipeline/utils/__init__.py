# ============================================================================
# src/prescription_pipeline/utils/__init__.py
# ============================================================================
"""
Utility modules for the prescription pipeline.
"""

from .exceptions import (
    PrescriptionPipelineError,
    ConfigurationError,
    RecognitionError,
    ExtractionError,
    ExtractionNoJSONFoundError,
    ExtractionSchemaMismatchError,
    SafetyError,
    SafetyEmptyResultError,
    SafetySchemaMismatchError,
    CalendarError,
    CalendarTokenAcquisitionError,
    CalendarEventInsertError,
    CalendarUnreachableError,
    PersistenceError,
    PersistenceUnauthenticatedError,
    PersistenceNotFoundError,
    PersistenceWriteError,
    PipelineCancelledError,
    InvalidStepTransitionError,
)

from .logging import (
    setup_logging,
    JsonFormatter,
    LogAdapter,
    log_performance,
)

__all__ = [
    # Exceptions
    'PrescriptionPipelineError',
    'ConfigurationError',
    'RecognitionError',
    'ExtractionError',
    'ExtractionNoJSONFoundError',
    'ExtractionSchemaMismatchError',
    'SafetyError',
    'SafetyEmptyResultError',
    'SafetySchemaMismatchError',
    'CalendarError',
    'CalendarTokenAcquisitionError',
    'CalendarEventInsertError',
    'CalendarUnreachableError',
    'PersistenceError',
    'PersistenceUnauthenticatedError',
    'PersistenceNotFoundError',
    'PersistenceWriteError',
    'PipelineCancelledError',
    'InvalidStepTransitionError',
    # Logging
    'setup_logging',
    'JsonFormatter',
    'LogAdapter',
    'log_performance',
]
