# src/prescription_pipeline/core/__init__.py
"""
Core pipeline machinery - state machine, steps, orchestration, persistence
"""

from .orchestrator import PipelineOrchestrator
from .repository import PrescriptionRepository
from .document_store import DocumentStore, InMemoryDocumentStore, SQLiteDocumentStore
from .identity import (
    IdentityProvider,
    UserIdentity,
    StaticIdentityProvider,
    AnonymousIdentityProvider,
)
from .audit import AuditLogger
from .locks import KeyedLock
from .retry import retry_async

__all__ = [
    "PipelineOrchestrator",
    "PrescriptionRepository",
    "DocumentStore",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
    "IdentityProvider",
    "UserIdentity",
    "StaticIdentityProvider",
    "AnonymousIdentityProvider",
    "AuditLogger",
    "KeyedLock",
    "retry_async",
]
