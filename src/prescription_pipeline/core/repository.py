# ============================================================================
# src/prescription_pipeline/core/repository.py
# ============================================================================
"""
Prescription Repository

Maps prescriptions and their derived artifacts onto the document store:

    prescriptions/{id}                           prescription + status
    prescriptions/{id}/schedule/schedule         reminder sets
    prescriptions/{id}/safety/safetyInfo         safety profile
    prescriptions/{id}/calendarEvents/eventIds   calendar event refs
    prescriptions/{id}/flags/flags               manual review flags
    prescriptions/{id}/checklist/checklist       dose checklist

Every store call is bounded by STORE_TIMEOUT. Writes are independent per
document; there is no cross-document transaction.
"""

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from ..config.pipeline_config import pipeline_settings
from ..constants.layout import (
    ARTIFACT_LAYOUT,
    PRESCRIPTIONS_COLLECTION,
    sub_collection_path,
)
from ..utils.exceptions import (
    PersistenceError,
    PersistenceNotFoundError,
    PersistenceUnauthenticatedError,
    PersistenceWriteError,
)
from .context.artifacts import (
    CalendarSyncResult,
    ChecklistItem,
    FlagEntry,
    ReminderSet,
    SafetyProfile,
)
from .context.enums import ProcessingStatus
from .context.medication import Prescription
from .document_store import DocumentStore
from .identity import IdentityProvider, UserIdentity

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PrescriptionRepository:

    def __init__(
        self,
        store: DocumentStore,
        identity: IdentityProvider,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.identity = identity
        self.timeout = timeout if timeout is not None else pipeline_settings.STORE_TIMEOUT

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------
    async def _bounded(self, awaitable: Awaitable[T], description: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"{description} timed out after {self.timeout}s")

    async def _write(self, collection_path: str, document_id: str, payload: Dict[str, Any], artifact: str):
        description = f"write {collection_path}/{document_id}"
        try:
            await self._bounded(self.store.save(collection_path, document_id, payload), description)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceWriteError(f"{description} failed: {e}", {artifact: str(e)}) from e

    async def _read(self, collection_path: str, document_id: str) -> Optional[Dict[str, Any]]:
        description = f"read {collection_path}/{document_id}"
        try:
            return await self._bounded(self.store.get(collection_path, document_id), description)
        except (PersistenceError, TimeoutError):
            raise
        except Exception as e:
            raise PersistenceError(f"{description} failed: {e}") from e

    async def _require_user(self) -> UserIdentity:
        user = await self.identity.current_user()
        if user is None:
            raise PersistenceUnauthenticatedError("No signed-in user to persist under")
        return user

    async def _save_artifact(self, prescription_id: str, artifact: str, payload: Dict[str, Any]):
        await self._require_user()
        sub_collection, document_id = ARTIFACT_LAYOUT[artifact]
        await self._write(sub_collection_path(prescription_id, sub_collection), document_id, payload, artifact)

    async def _get_artifact(self, prescription_id: str, artifact: str) -> Optional[Dict[str, Any]]:
        sub_collection, document_id = ARTIFACT_LAYOUT[artifact]
        return await self._read(sub_collection_path(prescription_id, sub_collection), document_id)

    # ------------------------------------------------------------------
    # Prescription document
    # ------------------------------------------------------------------
    async def save_prescription(
        self,
        prescription: Prescription,
        status: Optional[ProcessingStatus] = None,
    ) -> Prescription:
        """
        Create or update the prescription document under its own id.

        The owning user is stamped on first save and never changes. When
        status is None the stored status is kept (new documents start at
        `extracted`).
        """
        user = await self._require_user()

        existing = await self._read(PRESCRIPTIONS_COLLECTION, prescription.id)
        owner = existing.get("userId") if existing else None
        if owner and owner != user.uid:
            raise PersistenceError(
                f"Prescription {prescription.id} belongs to another user"
            )

        prescription.user_id = owner or user.uid
        if status is None:
            status = ProcessingStatus(existing["status"]) if existing and existing.get("status") \
                else ProcessingStatus.EXTRACTED

        payload = prescription.to_dict()
        payload["status"] = status.value
        await self._write(PRESCRIPTIONS_COLLECTION, prescription.id, payload, "prescription")
        logger.info(f"Saved prescription {prescription.id} (status={status.value})")
        return prescription

    async def get_prescription(self, prescription_id: str) -> Optional[Prescription]:
        payload = await self._read(PRESCRIPTIONS_COLLECTION, prescription_id)
        return Prescription.from_dict(payload) if payload else None

    async def get_status(self, prescription_id: str) -> Optional[ProcessingStatus]:
        payload = await self._read(PRESCRIPTIONS_COLLECTION, prescription_id)
        if not payload or not payload.get("status"):
            return None
        return ProcessingStatus(payload["status"])

    async def set_status(self, prescription_id: str, status: ProcessingStatus):
        await self._require_user()
        payload = await self._read(PRESCRIPTIONS_COLLECTION, prescription_id)
        if payload is None:
            raise PersistenceNotFoundError(PRESCRIPTIONS_COLLECTION, prescription_id)
        payload["status"] = status.value
        await self._write(PRESCRIPTIONS_COLLECTION, prescription_id, payload, "status")
        logger.info(f"Prescription {prescription_id} status -> {status.value}")

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------
    async def save_flags(self, prescription_id: str, flags: List[FlagEntry]):
        await self._save_artifact(prescription_id, "flags", {"flags": [f.to_dict() for f in flags]})

    async def get_flags(self, prescription_id: str) -> Optional[List[FlagEntry]]:
        payload = await self._get_artifact(prescription_id, "flags")
        if payload is None:
            return None
        return [FlagEntry.from_dict(f) for f in payload.get("flags", [])]

    async def save_schedule(self, prescription_id: str, schedule: List[ReminderSet]):
        await self._save_artifact(prescription_id, "schedule", {"entries": [e.to_dict() for e in schedule]})

    async def get_schedule(self, prescription_id: str) -> Optional[List[ReminderSet]]:
        payload = await self._get_artifact(prescription_id, "schedule")
        if payload is None:
            return None
        return [ReminderSet.from_dict(e) for e in payload.get("entries", [])]

    async def save_calendar_events(self, prescription_id: str, result: CalendarSyncResult):
        await self._save_artifact(prescription_id, "calendarEvents", result.to_dict())

    async def get_calendar_events(self, prescription_id: str) -> Optional[CalendarSyncResult]:
        payload = await self._get_artifact(prescription_id, "calendarEvents")
        return CalendarSyncResult.from_dict(payload) if payload is not None else None

    async def save_safety_profile(self, prescription_id: str, profile: SafetyProfile):
        await self._save_artifact(prescription_id, "safety", profile.to_dict())

    async def get_safety_profile(self, prescription_id: str) -> Optional[SafetyProfile]:
        payload = await self._get_artifact(prescription_id, "safety")
        return SafetyProfile.from_dict(payload) if payload is not None else None

    async def save_checklist(self, prescription_id: str, items: List[ChecklistItem]):
        await self._save_artifact(prescription_id, "checklist", {"items": [i.to_dict() for i in items]})

    async def get_checklist(self, prescription_id: str) -> Optional[Dict[str, Any]]:
        return await self._get_artifact(prescription_id, "checklist")
