# ============================================================================
# src/prescription_pipeline/constants/__init__.py
# ============================================================================

from .medications import HIGH_RISK_MEDICATIONS
from .layout import (
    PRESCRIPTIONS_COLLECTION,
    ARTIFACT_LAYOUT,
    sub_collection_path,
    IDENTITY_COLLECTION,
    ANONYMOUS_USER_DOCUMENT,
)

__all__ = [
    "HIGH_RISK_MEDICATIONS",
    "PRESCRIPTIONS_COLLECTION",
    "ARTIFACT_LAYOUT",
    "sub_collection_path",
    "IDENTITY_COLLECTION",
    "ANONYMOUS_USER_DOCUMENT",
]
