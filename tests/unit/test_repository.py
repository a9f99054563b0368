# ============================================================================
# tests/unit/test_repository.py
# ============================================================================
"""
Tests for the prescription repository and its document layout
"""

import asyncio
from datetime import timedelta

import pytest

from prescription_pipeline.core.context.artifacts import FlagEntry
from prescription_pipeline.core.context.enums import ProcessingStatus
from prescription_pipeline.core.context.medication import Medication, Prescription
from prescription_pipeline.core.document_store import InMemoryDocumentStore, SQLiteDocumentStore
from prescription_pipeline.core.identity import (
    AnonymousIdentityProvider,
    StaticIdentityProvider,
    UserIdentity,
)
from prescription_pipeline.core.repository import PrescriptionRepository
from prescription_pipeline.processors.schedule_builder import ScheduleBuilder
from prescription_pipeline.processors.summary import build_checklist
from prescription_pipeline.utils.exceptions import (
    PersistenceError,
    PersistenceNotFoundError,
    PersistenceUnauthenticatedError,
    PersistenceWriteError,
)

from conftest import FIXED_NOW


class SlowStore(InMemoryDocumentStore):
    async def get(self, collection_path, document_id):
        await asyncio.sleep(1)
        return None


class TestPrescriptionDocument:

    @pytest.mark.asyncio
    async def test_save_stamps_user_and_status(self, repository, store, prescription):
        await repository.save_prescription(prescription)

        stored = await store.get("prescriptions", prescription.id)
        assert stored["userId"] == "user-1"
        assert stored["status"] == "extracted"
        assert prescription.user_id == "user-1"

    @pytest.mark.asyncio
    async def test_round_trip(self, repository, prescription):
        await repository.save_prescription(prescription, ProcessingStatus.SCHEDULED)

        loaded = await repository.get_prescription(prescription.id)

        assert loaded.medications == prescription.medications
        assert loaded.date == prescription.date
        assert await repository.get_status(prescription.id) == ProcessingStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_resave_keeps_status_when_not_given(self, repository, prescription):
        await repository.save_prescription(prescription, ProcessingStatus.CALENDAR_ADDED)
        await repository.save_prescription(prescription)

        assert await repository.get_status(prescription.id) == ProcessingStatus.CALENDAR_ADDED

    @pytest.mark.asyncio
    async def test_requires_identity(self, store, prescription):
        repository = PrescriptionRepository(store, StaticIdentityProvider(None))

        with pytest.raises(PersistenceUnauthenticatedError):
            await repository.save_prescription(prescription)
        assert store.paths() == []

    @pytest.mark.asyncio
    async def test_other_users_prescription_is_refused(self, store, prescription):
        await PrescriptionRepository(store, StaticIdentityProvider(UserIdentity("alice"))).save_prescription(prescription)

        with pytest.raises(PersistenceError):
            await PrescriptionRepository(store, StaticIdentityProvider(UserIdentity("bob"))).save_prescription(prescription)

    @pytest.mark.asyncio
    async def test_set_status_on_missing_prescription(self, repository):
        with pytest.raises(PersistenceNotFoundError):
            await repository.set_status("nope", ProcessingStatus.COMPLETED)

    @pytest.mark.asyncio
    async def test_missing_prescription_reads_as_none(self, repository):
        assert await repository.get_prescription("nope") is None
        assert await repository.get_status("nope") is None


class TestArtifacts:

    @pytest.mark.asyncio
    async def test_layout(self, repository, store, prescription):
        pid = prescription.id
        schedule = ScheduleBuilder().build(prescription.medications, FIXED_NOW)

        await repository.save_prescription(prescription)
        await repository.save_flags(pid, [FlagEntry(name="Amoxicillin", reason="uncertain")])
        await repository.save_schedule(pid, schedule)
        await repository.save_checklist(pid, build_checklist(schedule))

        assert store.paths() == sorted([
            f"prescriptions/{pid}",
            f"prescriptions/{pid}/flags/flags",
            f"prescriptions/{pid}/schedule/schedule",
            f"prescriptions/{pid}/checklist/checklist",
        ])

    @pytest.mark.asyncio
    async def test_schedule_round_trip(self, repository, prescription):
        schedule = ScheduleBuilder().build(prescription.medications, FIXED_NOW)

        await repository.save_schedule(prescription.id, schedule)
        loaded = await repository.get_schedule(prescription.id)

        assert loaded == schedule
        assert loaded[0].reminder_keys() == schedule[0].reminder_keys()

    @pytest.mark.asyncio
    async def test_checklist_starts_untaken(self, repository, prescription):
        schedule = ScheduleBuilder().build(prescription.medications, FIXED_NOW)

        await repository.save_checklist(prescription.id, build_checklist(schedule))
        items = (await repository.get_checklist(prescription.id))["items"]

        assert items[0]["medName"] == "Amoxicillin"
        assert items[0]["taken"] == [False, False]
        assert items[0]["scheduledTimes"][1] == (FIXED_NOW + timedelta(hours=12)).isoformat()

    @pytest.mark.asyncio
    async def test_artifact_writes_require_identity(self, store):
        repository = PrescriptionRepository(store, StaticIdentityProvider(None))

        with pytest.raises(PersistenceUnauthenticatedError):
            await repository.save_flags("rx-1", [])

    @pytest.mark.asyncio
    async def test_store_failure_becomes_write_error(self, repository, store):
        store.fail_writes.append("/flags/")

        with pytest.raises(PersistenceWriteError) as exc_info:
            await repository.save_flags("rx-1", [])

        assert "flags" in exc_info.value.failed_artifacts


class TestTimeoutsAndIdentity:

    @pytest.mark.asyncio
    async def test_store_calls_are_bounded(self, identity):
        repository = PrescriptionRepository(SlowStore(), identity, timeout=0.01)

        with pytest.raises(TimeoutError):
            await repository.get_status("rx-1")

    @pytest.mark.asyncio
    async def test_anonymous_identity_is_stable(self):
        provider = AnonymousIdentityProvider()

        first = await provider.current_user()
        second = await provider.current_user()

        assert first == second
        assert first.is_anonymous
        assert first.uid.startswith("anon-")

    @pytest.mark.asyncio
    async def test_anonymous_identity_prefers_signed_in_user(self):
        provider = AnonymousIdentityProvider(StaticIdentityProvider(UserIdentity("user-1")))
        assert (await provider.current_user()).uid == "user-1"

    @pytest.mark.asyncio
    async def test_anonymous_identity_survives_restart(self, tmp_path):
        db_path = tmp_path / "prescriptions.db"

        first = await AnonymousIdentityProvider(store=SQLiteDocumentStore(db_path)).current_user()
        second = await AnonymousIdentityProvider(store=SQLiteDocumentStore(db_path)).current_user()

        assert first.uid == second.uid
        assert second.is_anonymous


def test_medication_serialization_omits_absent_fields():
    med = Medication(name="Ibuprofen", id="med-1", dosage="", confidence=None)

    assert med.to_dict() == {"id": "med-1", "name": "Ibuprofen", "uncertain": False}
    assert Medication.from_dict(med.to_dict()) == med


def test_prescription_snapshot_is_frozen(prescription):
    snapshot = prescription.snapshot()
    prescription.medications.append(Medication(name="Later"))

    assert len(snapshot) == 1
    assert isinstance(snapshot, tuple)
    assert Prescription.from_dict(prescription.to_dict()).medication_names() == ["Amoxicillin", "Later"]
